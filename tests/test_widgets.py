"""Tests for the built-in widgets and the text editing controller."""

import pytest

from termflex.base import RenderConfig, Response
from termflex.controllers import TextEditingController
from termflex.events import ActionMsg, FocusKind, FocusMsg, KeyMsg, MouseMsg
from termflex.props import BIND_DATA_KEY
from termflex.widgets import (
    InputWidget,
    ListWidget,
    PlaceholderWidget,
    ProgressWidget,
    TableWidget,
    TextWidget,
    _CursorWidget,
    default_catalog,
    error_component,
    unknown_component,
)


def config(width=20, height=5, **props):
    return RenderConfig(data=props, width=width, height=height)


class TestTextWidget:
    def test_content_and_alignment(self):
        widget = TextWidget("t", config(content="hi", align="right"))
        assert widget.view(6, 1) == "    hi"
        widget.update_render_config(config(content="hi", align="center"))
        assert widget.view(6, 1) == "  hi"

    def test_bound_value(self):
        widget = TextWidget("t", config(**{BIND_DATA_KEY: 42}))
        assert widget.view(10, 1) == "42"

    def test_measure_and_height_crop(self):
        widget = TextWidget("t", config(text="one\nthree"))
        assert widget.measure(80, 24) == (5, 2)
        assert widget.view(10, 1) == "one"


class TestListWidget:
    def make(self, items=("a", "b", "c", "d"), height=2):
        widget = ListWidget("todos", config(height=height, **{BIND_DATA_KEY: list(items)}))
        widget.set_focus(True)
        return widget

    def test_navigation_reports_index(self):
        widget = self.make()
        assert widget.handle_message(KeyMsg("down")) is Response.HANDLED
        assert widget.get_state_changes() == ({"todos_index": 1}, True)
        widget.handle_message(KeyMsg("end"))
        assert widget.index == 3
        widget.handle_message(KeyMsg("up"))
        assert widget.index == 2

    def test_cursor_does_not_move_past_ends(self):
        widget = self.make()
        widget.handle_message(KeyMsg("up"))
        assert widget.index == 0
        assert widget.get_state_changes() == ({}, False)

    def test_scrolling_keeps_cursor_visible(self):
        widget = self.make(height=2)
        widget.handle_message(KeyMsg("j"))
        widget.handle_message(KeyMsg("j"))
        assert widget.offset == 1
        assert widget.view(6, 2).split("\n") == ["  b   ", "> c   "]

    def test_enter_selects(self):
        widget = self.make()
        widget.handle_message(KeyMsg("down"))
        widget.get_state_changes()
        widget.handle_message(KeyMsg("enter"))
        changes, _ = widget.get_state_changes()
        assert changes == {"todos_selected": "b", "todos_index": 1}
        emitted = widget.take_messages()
        assert emitted == [ActionMsg("todos", "select", {"item": "b", "index": 1})]

    def test_mouse_press_selects_row(self):
        widget = self.make(height=4)
        assert widget.handle_message(MouseMsg(1, 2)) is Response.HANDLED
        assert widget.selected == "c"
        assert widget.handle_message(MouseMsg(1, 9)) is Response.IGNORED

    def test_unfocused_marker_and_item_labels(self):
        widget = ListWidget("l", config(items=[{"title": "first"}, {"name": "second"}]))
        assert widget.view(10, 2).split("\n") == ["* first   ", "  second  "]

    def test_empty_list(self):
        widget = ListWidget("l", config(empty="nothing here"))
        assert widget.view(20, 3) == "nothing here"
        assert widget.handle_message(KeyMsg("down")) is Response.HANDLED
        assert widget.selected is None

    def test_shrinking_items_clamps_cursor(self):
        widget = self.make()
        widget.handle_message(KeyMsg("end"))
        widget.update_render_config(config(height=2, **{BIND_DATA_KEY: ["only"]}))
        assert widget.index == 0
        assert widget.action_context() == {"componentID": "todos", "index": 0, "selected": "only"}

    def test_unhandled_key(self):
        assert self.make().handle_message(KeyMsg("x", "x")) is Response.IGNORED


class TestTableWidget:
    def test_header_and_rows(self):
        widget = TableWidget("t", config(
            height=4,
            columns=["name", {"key": "qty", "title": "Qty"}],
            rows=[{"name": "milk", "qty": 2}, {"name": "eggs", "qty": 12}],
        ))
        lines = widget.view(20, 4).split("\n")
        assert lines[0].startswith("  name Qty")
        assert lines[1].startswith("  --------")
        assert lines[2].startswith("  milk 2")
        assert len(lines) == 4

    def test_columns_default_to_first_row_keys(self):
        widget = TableWidget("t", config(**{BIND_DATA_KEY: [{"a": 1, "b": 2}]}))
        assert [c["title"] for c in widget.columns()] == ["a", "b"]

    def test_mouse_accounts_for_header(self):
        widget = TableWidget("t", config(height=5, rows=[["x"], ["y"]], columns=["c"]))
        widget.handle_message(MouseMsg(0, 3))
        assert widget.selected == ["y"]


class TestInputWidget:
    def make(self, **props):
        widget = InputWidget("name", config(**props))
        widget.set_focus(True)
        return widget

    def type(self, widget, text):
        for ch in text:
            widget.handle_message(KeyMsg(ch, ch))

    def test_typing_reports_value(self):
        widget = self.make()
        self.type(widget, "abc")
        assert widget.value == "abc"
        assert widget.get_state_changes() == ({"name": "abc"}, True)

    def test_editing_keys(self):
        widget = self.make(value="hello")
        widget.handle_message(KeyMsg("home"))
        widget.handle_message(KeyMsg("delete"))
        widget.handle_message(KeyMsg("end"))
        widget.handle_message(KeyMsg("backspace"))
        widget.handle_message(KeyMsg("left"))
        self.type(widget, "!")
        assert widget.value == "el!l"

    def test_enter_submits(self):
        widget = self.make(value="x")
        widget.handle_message(KeyMsg("enter"))
        assert widget.take_messages() == [ActionMsg("name", "submit", {"value": "x"})]

    def test_ignores_keys_when_not_focused(self):
        widget = InputWidget("name", config())
        assert widget.handle_message(KeyMsg("a", "a")) is Response.IGNORED

    def test_declared_value_change_resets_text(self):
        widget = self.make(value="draft")
        self.type(widget, "!")
        widget.update_render_config(config(value=""))
        assert widget.value == ""

    def test_view(self):
        widget = InputWidget("name", config(placeholder="type here"))
        assert widget.view(12, 1) == "> type here "
        widget.set_focus(True)
        self.type(widget, "ab")
        assert widget.view(8, 1) == "> ab█   "

    def test_focus_message_is_handled(self):
        assert self.make().handle_message(FocusMsg(FocusKind.GAINED)) is Response.HANDLED


class TestMisc:
    def test_progress_bar(self):
        widget = ProgressWidget("p", config(value=50, max=100))
        assert widget.ratio() == 0.5
        assert widget.view(17, 1) == "[#####-----]  50%"
        assert widget.get_subscribed_message_types() == ["resize"]

    def test_progress_handles_bad_values(self):
        assert ProgressWidget("p", config(value="lots")).ratio() == 0.0

    def test_placeholders(self):
        unknown = unknown_component("sparkline")(RenderConfig(), "s1")
        broken = error_component("list", "bad")(RenderConfig(), "l1")
        assert isinstance(unknown, PlaceholderWidget)
        assert unknown.view(40, 1).strip() == "[unknown component: sparkline]"
        assert broken.view(40, 1).strip() == "[error: list l1: bad]"

    def test_default_catalog(self):
        catalog = default_catalog()
        for name in ("text", "header", "footer", "list", "table", "input", "progress", "spacer"):
            assert catalog.has(name)
        assert catalog.is_focusable("list") and not catalog.is_focusable("text")

    def test_cursor_widget_subclass_must_supply_rows(self):
        class Bare(_CursorWidget):
            def view(self, width, height):
                return ""

        with pytest.raises(TypeError, match="rows"):
            Bare("bare")


class TestTextEditingController:
    def test_insert_and_cursor(self):
        controller = TextEditingController("ac")
        controller.cursor = 1
        controller.insert("b")
        assert (controller.text, controller.cursor) == ("abc", 2)

    def test_listeners(self):
        controller = TextEditingController()
        calls = []
        listener = lambda: calls.append(controller.text)  # noqa: E731
        controller.add_listener(listener)
        controller.add_listener(listener)
        controller.insert("x")
        controller.text = "x"
        controller.remove_listener(listener)
        controller.clear()
        assert calls == ["x"]

    def test_cursor_is_clamped(self):
        controller = TextEditingController("ab")
        controller.cursor = 10
        assert controller.cursor == 2
        controller.move_left()
        controller.move_left()
        controller.move_left()
        assert controller.cursor == 0
        controller.backspace()
        assert controller.text == "ab"
