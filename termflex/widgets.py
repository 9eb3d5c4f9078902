# termflex/widgets.py
"""
Built-in components.

Every widget satisfies the ``Component`` contract, keeps its interactive
state (cursor, scroll offset, typed text) on the instance so it survives
re-renders, and reports what the application should know through state
deltas and ``ActionMsg`` events.
"""

import logging
from abc import abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from rich.cells import cell_len, set_cell_size

from .base import Component, RenderConfig, Response
from .controllers import TextEditingController
from .events import ActionMsg, FocusMsg, KeyMsg, MouseMsg, ResizeMsg
from .props import BIND_DATA_KEY, stringify
from .registry import ComponentCatalog

logger = logging.getLogger(__name__)


def _align_line(line: str, width: int, align: str) -> str:
    if width <= 0:
        return ""
    used = cell_len(line)
    if used >= width or align not in ("center", "right"):
        return line
    free = width - used
    if align == "right":
        return " " * free + line
    return " " * (free // 2) + line


def _fit(text: str, width: int) -> str:
    """Pad or crop ``text`` to exactly ``width`` cells."""
    return set_cell_size(text, max(0, width))


def _item_label(item: Any) -> str:
    if isinstance(item, Mapping):
        for key in ("title", "label", "name", "text", "value"):
            if key in item:
                return stringify(item[key])
    return stringify(item)


class TextWidget(Component):
    """
    Static or bound text: ``text``, ``header``, ``footer`` and ``static``.

    Props: ``content`` (or ``text``), ``align`` (left, center, right).
    """

    def _content(self) -> str:
        for key in ("content", "text"):
            if key in self.props:
                return stringify(self.props[key])
        return stringify(self.props.get(BIND_DATA_KEY, ""))

    def handle_message(self, msg: Any) -> Response:
        return Response.IGNORED

    def measure(self, max_width: int, max_height: int) -> Optional[Tuple[int, int]]:
        lines = self._content().split("\n")
        width = max((cell_len(line) for line in lines), default=0)
        return min(width, max_width), min(len(lines), max_height)

    def view(self, width: int, height: int) -> str:
        align = str(self.props.get("align", "left")).lower()
        lines = self._content().split("\n")[:max(0, height)]
        return "\n".join(_align_line(line, width, align) for line in lines)


class _CursorWidget(Component):
    """Shared cursor and scrolling for row-based widgets."""

    focusable = True

    def __init__(self, id: str, config: Optional[RenderConfig] = None):
        super().__init__(id, config)
        self.index = 0
        self.offset = 0

    @abstractmethod
    def rows(self) -> List[Any]:
        """The items the cursor moves over."""

    def visible_rows(self) -> int:
        return max(1, self.height)

    def update_render_config(self, config: RenderConfig) -> None:
        super().update_render_config(config)
        count = len(self.rows())
        self.index = max(0, min(self.index, count - 1)) if count else 0
        self._scroll()

    def _scroll(self) -> None:
        visible = self.visible_rows()
        if self.index < self.offset:
            self.offset = self.index
        elif self.index >= self.offset + visible:
            self.offset = self.index - visible + 1
        self.offset = max(0, self.offset)

    def _move(self, index: int) -> None:
        count = len(self.rows())
        if not count:
            return
        index = max(0, min(index, count - 1))
        if index != self.index:
            self.index = index
            self._scroll()
            self.report_state(f"{self.id}_index", index)

    @property
    def selected(self) -> Any:
        rows = self.rows()
        return rows[self.index] if 0 <= self.index < len(rows) else None

    def _select(self) -> None:
        item = self.selected
        if item is None:
            return
        self.report_state(f"{self.id}_selected", item)
        self.report_state(f"{self.id}_index", self.index)
        self.emit(ActionMsg(source_id=self.id, event="select", data={"item": item, "index": self.index}))

    def handle_message(self, msg: Any) -> Response:
        if isinstance(msg, FocusMsg):
            return Response.HANDLED
        if isinstance(msg, MouseMsg):
            if not msg.is_press:
                return Response.IGNORED
            row = msg.y - self.header_rows() + self.offset
            if 0 <= row < len(self.rows()):
                self._move(row)
                self._select()
                return Response.HANDLED
            return Response.IGNORED
        if not isinstance(msg, KeyMsg):
            return Response.IGNORED
        key = msg.key
        if key in ("up", "k"):
            self._move(self.index - 1)
        elif key in ("down", "j"):
            self._move(self.index + 1)
        elif key == "home":
            self._move(0)
        elif key == "end":
            self._move(len(self.rows()) - 1)
        elif key == "pgup":
            self._move(self.index - self.visible_rows())
        elif key == "pgdown":
            self._move(self.index + self.visible_rows())
        elif key == "enter":
            self._select()
        else:
            return Response.IGNORED
        return Response.HANDLED

    def header_rows(self) -> int:
        return 0

    def action_context(self) -> Dict[str, Any]:
        context = super().action_context()
        context["index"] = self.index
        if self.selected is not None:
            context["selected"] = self.selected
        return context


class ListWidget(_CursorWidget):
    """
    Selectable list.

    Props: ``items`` (strings or maps with a ``title``/``label``/``name``),
    or the state value bound with ``bind``.
    """

    def rows(self) -> List[Any]:
        items = self.props.get(BIND_DATA_KEY)
        if items is None:
            items = self.props.get("items")
        return list(items) if isinstance(items, (list, tuple)) else []

    def measure(self, max_width: int, max_height: int) -> Optional[Tuple[int, int]]:
        rows = self.rows()
        width = max((cell_len(_item_label(r)) + 2 for r in rows), default=0)
        return min(width, max_width), min(len(rows), max_height)

    def view(self, width: int, height: int) -> str:
        rows = self.rows()
        if not rows:
            return stringify(self.props.get("empty", ""))
        lines = []
        for index in range(self.offset, min(len(rows), self.offset + max(0, height))):
            marker = ("> " if self.focused else "* ") if index == self.index else "  "
            lines.append(_fit(marker + _item_label(rows[index]), width))
        return "\n".join(lines)


class TableWidget(_CursorWidget):
    """
    Table with a row cursor.

    Props: ``columns`` (strings or ``{key, title, width}`` maps) and
    ``rows`` (maps or lists), or the state value bound with ``bind``.
    """

    def columns(self) -> List[Dict[str, Any]]:
        columns = []
        for index, column in enumerate(self.props.get("columns") or []):
            if isinstance(column, Mapping):
                key = column.get("key", index)
                columns.append({
                    "key": key,
                    "title": stringify(column.get("title", key)),
                    "width": column.get("width"),
                })
            else:
                columns.append({"key": column, "title": stringify(column), "width": None})
        if not columns:
            rows = self.rows()
            if rows and isinstance(rows[0], Mapping):
                columns = [{"key": k, "title": stringify(k), "width": None} for k in rows[0]]
        return columns

    def rows(self) -> List[Any]:
        rows = self.props.get(BIND_DATA_KEY)
        if rows is None:
            rows = self.props.get("rows", self.props.get("data"))
        return list(rows) if isinstance(rows, (list, tuple)) else []

    def header_rows(self) -> int:
        return 2

    def visible_rows(self) -> int:
        return max(1, self.height - self.header_rows())

    @staticmethod
    def _cell(row: Any, key: Any, index: int) -> str:
        if isinstance(row, Mapping):
            return stringify(row.get(key))
        if isinstance(row, (list, tuple)):
            return stringify(row[index]) if index < len(row) else ""
        return stringify(row) if index == 0 else ""

    def _widths(self, columns: Sequence[Dict[str, Any]], width: int) -> List[int]:
        rows = self.rows()
        widths = []
        for index, column in enumerate(columns):
            if column["width"]:
                widths.append(int(column["width"]))
                continue
            cells = [cell_len(self._cell(row, column["key"], index)) for row in rows]
            widths.append(max([cell_len(column["title"])] + cells))
        # shrink the widest columns until the row fits (one space between columns)
        budget = max(0, width - 2 - max(0, len(widths) - 1))
        while widths and sum(widths) > budget and max(widths) > 1:
            widest = widths.index(max(widths))
            widths[widest] -= 1
        return widths

    def view(self, width: int, height: int) -> str:
        columns = self.columns()
        if not columns:
            return ""
        widths = self._widths(columns, width)
        header = "  " + " ".join(_fit(c["title"], w) for c, w in zip(columns, widths))
        lines = [_fit(header, width), _fit("  " + "-" * max(0, sum(widths) + len(widths) - 1), width)]
        rows = self.rows()
        for row_index in range(self.offset, min(len(rows), self.offset + max(0, height - 2))):
            row = rows[row_index]
            marker = "> " if row_index == self.index and self.focused else "  "
            cells = [_fit(self._cell(row, c["key"], i), w) for i, (c, w) in enumerate(zip(columns, widths))]
            lines.append(_fit(marker + " ".join(cells), width))
        return "\n".join(lines[:max(0, height)])


class InputWidget(Component):
    """
    Single line text input.

    Props: ``value``, ``placeholder``, ``prompt`` (default ``"> "``).
    Every edit reports the text under the component ID; enter publishes
    ``submit``.
    """

    focusable = True

    def __init__(self, id: str, config: Optional[RenderConfig] = None):
        super().__init__(id, config)
        self._declared_value = self.props.get("value")
        self.controller = TextEditingController(stringify(self._declared_value))
        self.controller.add_listener(self._on_change)

    def _on_change(self) -> None:
        self.report_state(self.id, self.controller.text)

    @property
    def value(self) -> str:
        return self.controller.text

    def update_render_config(self, config: RenderConfig) -> None:
        super().update_render_config(config)
        declared = self.props.get("value")
        if declared != self._declared_value:
            # state moved the value, e.g. a reset after submit
            self._declared_value = declared
            self.controller.text = stringify(declared)
            self.controller.end()

    def cleanup(self) -> None:
        self.controller.remove_listener(self._on_change)

    def handle_message(self, msg: Any) -> Response:
        if isinstance(msg, FocusMsg):
            return Response.HANDLED
        if isinstance(msg, MouseMsg):
            return Response.HANDLED if msg.is_press else Response.IGNORED
        if not isinstance(msg, KeyMsg) or not self.focused:
            return Response.IGNORED
        key = msg.key
        controller = self.controller
        if key == "enter":
            self.emit(ActionMsg(source_id=self.id, event="submit", data={"value": controller.text}))
        elif key == "backspace":
            controller.backspace()
        elif key == "delete":
            controller.delete()
        elif key == "left":
            controller.move_left()
        elif key == "right":
            controller.move_right()
        elif key in ("home", "ctrl+a"):
            controller.home()
        elif key in ("end", "ctrl+e"):
            controller.end()
        elif key == "ctrl+u":
            controller.clear()
        elif msg.text and msg.text.isprintable():
            controller.insert(msg.text)
        else:
            return Response.IGNORED
        return Response.HANDLED

    def measure(self, max_width: int, max_height: int) -> Optional[Tuple[int, int]]:
        return max_width, min(1, max_height)

    def view(self, width: int, height: int) -> str:
        prompt = stringify(self.props.get("prompt", "> "))
        text = self.controller.text
        if not text and not self.focused:
            return _fit(prompt + stringify(self.props.get("placeholder", "")), width)
        if self.focused:
            cursor = self.controller.cursor
            text = text[:cursor] + "█" + text[cursor + 1:] if cursor < len(text) else text + "█"
        return _fit(prompt + text, width)

    def action_context(self) -> Dict[str, Any]:
        context = super().action_context()
        context["value"] = self.controller.text
        return context


class ProgressWidget(Component):
    """Props: ``value``, ``max`` (default 100), ``label``."""

    subscriptions = ("resize",)

    def handle_message(self, msg: Any) -> Response:
        return Response.HANDLED if isinstance(msg, ResizeMsg) else Response.IGNORED

    def ratio(self) -> float:
        try:
            value = float(self.props.get("value") or 0)
            maximum = float(self.props.get("max") or 100)
        except (TypeError, ValueError):
            return 0.0
        if maximum <= 0:
            return 0.0
        return max(0.0, min(1.0, value / maximum))

    def measure(self, max_width: int, max_height: int) -> Optional[Tuple[int, int]]:
        return max_width, min(1, max_height)

    def view(self, width: int, height: int) -> str:
        label = stringify(self.props.get("label", ""))
        percent = f" {int(self.ratio() * 100):3d}%"
        prefix = f"{label} " if label else ""
        bar_width = max(0, width - cell_len(prefix) - len(percent) - 2)
        filled = int(round(bar_width * self.ratio()))
        return _fit(f"{prefix}[{'#' * filled}{'-' * (bar_width - filled)}]{percent}", width)


class SpacerWidget(Component):
    def handle_message(self, msg: Any) -> Response:
        return Response.IGNORED

    def view(self, width: int, height: int) -> str:
        return ""


class PlaceholderWidget(Component):
    """Stands in for a component that could not be created."""

    def __init__(self, id: str, config: Optional[RenderConfig] = None, message: str = ""):
        super().__init__(id, config)
        self.message = message

    def handle_message(self, msg: Any) -> Response:
        return Response.IGNORED

    def measure(self, max_width: int, max_height: int) -> Optional[Tuple[int, int]]:
        return min(cell_len(self.message), max_width), min(1, max_height)

    def view(self, width: int, height: int) -> str:
        return _fit(self.message, width)


def unknown_component(type_name: str) -> Callable[[RenderConfig, str], Component]:
    def factory(config: RenderConfig, component_id: str) -> Component:
        return PlaceholderWidget(component_id, config, f"[unknown component: {type_name}]")
    return factory


def error_component(type_name: str, reason: str) -> Callable[[RenderConfig, str], Component]:
    def factory(config: RenderConfig, component_id: str) -> Component:
        return PlaceholderWidget(component_id, config, f"[error: {type_name} {component_id}: {reason}]")
    return factory


def _factory(cls: Type[Component]) -> Callable[[RenderConfig, str], Component]:
    def factory(config: RenderConfig, component_id: str) -> Component:
        return cls(component_id, config)
    factory.__name__ = f"create_{cls.__name__}"
    return factory


def default_catalog() -> ComponentCatalog:
    """A fresh catalog holding the built-in widgets."""
    catalog = ComponentCatalog()
    catalog.register("text", _factory(TextWidget), aliases=("header", "footer", "static", "label"))
    catalog.register("list", _factory(ListWidget), focusable=True)
    catalog.register("table", _factory(TableWidget), focusable=True)
    catalog.register("input", _factory(InputWidget), focusable=True)
    catalog.register("progress", _factory(ProgressWidget))
    catalog.register("spacer", _factory(SpacerWidget))
    return catalog


__all__ = [
    "TextWidget",
    "ListWidget",
    "TableWidget",
    "InputWidget",
    "ProgressWidget",
    "SpacerWidget",
    "PlaceholderWidget",
    "unknown_component",
    "error_component",
    "default_catalog",
]
