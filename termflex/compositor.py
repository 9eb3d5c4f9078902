# termflex/compositor.py
"""
Turns a layout result into one frame of text.

Component boxes are painted in z-index order, then document order, so a
later or higher box overwrites what lies beneath it. Each box asks its
component for a view at the allocated size and pastes it at the box's
absolute offset, clipped to the box and to any ``overflow: hidden``
ancestor.
"""

import logging
from typing import Callable, List, Optional, Tuple, Union

from rich.cells import get_character_cell_size
from rich.style import Style as RichStyle
from rich.text import Text

from .node import LayoutBox, LayoutResult

logger = logging.getLogger(__name__)

Content = Union[str, Text]
Render = Callable[[LayoutBox], Optional[Content]]

# marks the right half of a double width character
_CONTINUATION = ""


def _line_cells(line: Union[str, Text]) -> List[Tuple[str, Optional[RichStyle]]]:
    """Split one line into (character, style) pairs, one per character."""
    if isinstance(line, str):
        return [(ch, None) for ch in line]
    plain = line.plain
    styles: List[Optional[RichStyle]] = [None] * len(plain)
    base = line.style or None
    if base:
        styles = [RichStyle.parse(base) if isinstance(base, str) else base] * len(plain)
    for span in line.spans:
        span_style = RichStyle.parse(span.style) if isinstance(span.style, str) else span.style
        for i in range(max(0, span.start), min(len(plain), span.end)):
            styles[i] = span_style if styles[i] is None else styles[i] + span_style
    return list(zip(plain, styles))


class Canvas:
    """A width x height grid of cells holding a character and an optional style."""

    def __init__(self, width: int, height: int):
        self.width = max(0, width)
        self.height = max(0, height)
        self.chars = [[" "] * self.width for _ in range(self.height)]
        self.styles: List[List[Optional[RichStyle]]] = [[None] * self.width for _ in range(self.height)]

    def fill(self, x: int, y: int, w: int, h: int) -> None:
        """Blank a rectangle, clipped to the canvas."""
        for row in range(max(0, y), min(self.height, y + h)):
            for col in range(max(0, x), min(self.width, x + w)):
                self.chars[row][col] = " "
                self.styles[row][col] = None

    def paste(
        self,
        x: int,
        y: int,
        content: Content,
        width: int,
        height: int,
        clip: Optional[Tuple[int, int, int, int]] = None,
    ) -> None:
        """
        Paste ``content`` with its top-left corner at ``(x, y)``, cut to
        ``width`` x ``height`` cells and to ``clip``.
        """
        left, top, right, bottom = x, y, x + width, y + height
        if clip is not None:
            left = max(left, clip[0])
            top = max(top, clip[1])
            right = min(right, clip[0] + clip[2])
            bottom = min(bottom, clip[1] + clip[3])
        left, top = max(left, 0), max(top, 0)
        right, bottom = min(right, self.width), min(bottom, self.height)
        if left >= right or top >= bottom:
            return

        self.fill(left, top, right - left, bottom - top)
        lines = content.split("\n") if isinstance(content, Text) else str(content).split("\n")
        for offset, line in enumerate(lines[:height]):
            row = y + offset
            if row < top or row >= bottom:
                continue
            col = x
            for ch, style in _line_cells(line):
                cells = get_character_cell_size(ch)
                if cells == 0:
                    continue
                if col + cells > x + width:
                    break
                if col >= left and col + cells <= right:
                    self.chars[row][col] = ch
                    self.styles[row][col] = style
                    for extra in range(1, cells):
                        self.chars[row][col + extra] = _CONTINUATION
                        self.styles[row][col + extra] = style
                col += cells

    def lines(self) -> List[str]:
        return ["".join(row) for row in self.chars]

    def to_text(self) -> Text:
        text = Text(no_wrap=True, overflow="crop", end="")
        for index, (chars, styles) in enumerate(zip(self.chars, self.styles)):
            if index:
                text.append("\n")
            run: List[str] = []
            run_style: Optional[RichStyle] = None
            for ch, style in zip(chars, styles):
                if style != run_style and run:
                    text.append("".join(run), style=run_style)
                    run = []
                run_style = style
                run.append(ch)
            if run:
                text.append("".join(run), style=run_style)
        return text

    def __str__(self) -> str:
        return "\n".join(self.lines())


def composite(result: LayoutResult, render: Render, width: int = 0, height: int = 0) -> Canvas:
    """
    Paint every component box of ``result`` onto a fresh canvas.

    :param render: Returns the view of the component behind a box, or None
                   to leave the box blank.
    """
    canvas = Canvas(width or result.root_width, height or result.root_height)
    for box in result.paint_order():
        if not box.is_component or box.w <= 0 or box.h <= 0:
            continue
        content = render(box)
        if content is None:
            continue
        canvas.paste(box.x, box.y, content, box.w, box.h, box.clip)
    return canvas


__all__ = ["Canvas", "composite"]
