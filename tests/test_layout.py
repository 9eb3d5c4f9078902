"""Tests for the flex layout engine."""

import pytest

from termflex.layout import LayoutEngine, compute_layout, hit_test
from termflex.node import LayoutNode, NodeType
from termflex.style import BoxConstraints, Insets, Style


def leaf(id, **style):
    return LayoutNode(id, NodeType.TEXT, Style.from_dict(style), component_type="text")


def row(id, *children, **style):
    node = LayoutNode(id, NodeType.ROW, Style.from_dict(style, default_direction="row"))
    for child in children:
        node.add_child(child)
    return node


def column(id, *children, **style):
    node = LayoutNode(id, NodeType.COLUMN, Style.from_dict(style))
    for child in children:
        node.add_child(child)
    return node


def boxes(result):
    return {box.node_id: box for box in result.boxes}


class TestTwoColumnScenario:
    @pytest.mark.parametrize("total", [80, 81])
    def test_halves_and_gap(self, total):
        root = row("root", leaf("a", width="50%"), leaf("b", width="50%"), height=10, gap=2)
        result = compute_layout(root, BoxConstraints.tight(total, 24))
        by_id = boxes(result)
        a, b = by_id["a"], by_id["b"]
        assert abs(a.w - total // 2) <= 1
        assert abs(b.w - total // 2) <= 1
        assert a.h == 10 and b.h == 10
        assert b.x == a.x + a.w + 2

    def test_without_gap_boxes_touch(self):
        root = row("root", leaf("a", width="50%"), leaf("b", width="50%"), height=10)
        by_id = boxes(compute_layout(root, BoxConstraints.tight(80, 24)))
        assert (by_id["a"].x, by_id["a"].w) == (0, 40)
        assert (by_id["b"].x, by_id["b"].w) == (40, 40)


class TestFlex:
    def test_flex_children_share_remaining_space(self):
        root = row("root", leaf("fixed", width=20), leaf("one", flex=1), leaf("two", flex=3))
        by_id = boxes(compute_layout(root, BoxConstraints.tight(100, 5)))
        assert by_id["fixed"].w == 20
        assert by_id["one"].w == 20
        assert by_id["two"].w == 60
        assert by_id["two"].x == 40

    def test_auto_children_without_measure_split_evenly(self):
        root = column("root", leaf("a"), leaf("b"))
        by_id = boxes(compute_layout(root, BoxConstraints.tight(10, 10)))
        assert by_id["a"].h == 5 and by_id["b"].h == 5
        assert by_id["b"].y == 5

    def test_measured_leaf_uses_intrinsic_size(self):
        root = column("root", leaf("title"), leaf("body", height="flex"))

        def measure(node, max_w, max_h):
            return (5, 1) if node.id == "title" else None

        by_id = boxes(compute_layout(root, BoxConstraints.tight(20, 10), measure))
        assert by_id["title"].h == 1
        assert by_id["body"].y == 1
        assert by_id["body"].h == 9

    def test_min_and_max_are_honoured(self):
        root = row("root", leaf("a", flex=1, maxWidth=10), leaf("b", width=2, minWidth=6))
        by_id = boxes(compute_layout(root, BoxConstraints.tight(50, 3)))
        assert by_id["a"].w == 10
        assert by_id["b"].w == 6

    def test_failing_measure_is_treated_as_auto(self):
        root = column("root", leaf("a"))

        def measure(node, max_w, max_h):
            raise RuntimeError("boom")

        by_id = boxes(compute_layout(root, BoxConstraints.tight(10, 4), measure))
        assert by_id["a"].h == 4


class TestJustifyAndAlign:
    def test_justify_end(self):
        root = row("root", leaf("a", width=10), justify="end")
        assert boxes(compute_layout(root, BoxConstraints.tight(30, 1)))["a"].x == 20

    def test_justify_center(self):
        root = row("root", leaf("a", width=10), justify="center")
        assert boxes(compute_layout(root, BoxConstraints.tight(30, 1)))["a"].x == 10

    def test_space_between(self):
        root = row("root", leaf("a", width=5), leaf("b", width=5), leaf("c", width=5), justify="space-between")
        by_id = boxes(compute_layout(root, BoxConstraints.tight(25, 1)))
        assert [by_id[i].x for i in "abc"] == [0, 10, 20]

    def test_align_center_on_cross_axis(self):
        root = row("root", leaf("a", width=4, height=2), alignItems="center")
        box = boxes(compute_layout(root, BoxConstraints.tight(10, 10)))["a"]
        assert (box.y, box.h) == (4, 2)

    def test_stretch_is_the_default(self):
        root = row("root", leaf("a", width=4))
        assert boxes(compute_layout(root, BoxConstraints.tight(10, 7)))["a"].h == 7


class TestBoxModel:
    def test_padding_and_border_offset_children(self):
        root = column("root", leaf("a"), padding=1, border="single")
        box = boxes(compute_layout(root, BoxConstraints.tight(20, 10)))["a"]
        assert (box.x, box.y, box.w, box.h) == (2, 2, 16, 6)

    def test_margins_advance_the_cursor(self):
        root = column("root", leaf("a", height=2, margin=[1, 0]), leaf("b", height=2))
        by_id = boxes(compute_layout(root, BoxConstraints.tight(10, 10)))
        assert by_id["a"].y == 1
        assert by_id["b"].y == 4

    def test_insets_parse_css_order(self):
        assert Insets.parse([1, 2]).to_tuple() == (1, 2, 1, 2)
        assert Insets.parse({"left": 3}).to_tuple() == (0, 0, 0, 3)


class TestStyleFromDict:
    def test_aliases_and_nulls(self):
        style = Style.from_dict({
            "flexGrow": 2,
            "min_width": 3,
            "alignItems": "flex-end",
            "maxWidth": None,
            "border": "round",
        })
        assert style.flex_grow == 2.0
        assert style.min_width == 3
        assert style.align_items == "end"
        assert style.max_width is None
        assert style.border == Insets.all(1)

    def test_fraction_size_sets_grow(self):
        style = Style.from_dict({"width": "2fr"})
        assert (style.width, style.flex_grow) == (None, 2.0)

    def test_invalid_values_raise_value_error(self):
        with pytest.raises(ValueError, match="invalid alignment"):
            Style.from_dict({"align": "diagonal"})
        with pytest.raises(ValueError, match="insets list must have 1-4 values"):
            Style.from_dict({"padding": [1, 2, 3, 4, 5]})
        with pytest.raises(ValueError):
            Style.from_dict({"margin": {"top": [1]}})


class TestAbsoluteAndStacking:
    def test_absolute_child_is_offset_from_content_box(self):
        overlay = leaf("overlay", position="absolute", top=1, left=2, width=5, height=2, zIndex=3)
        root = column("root", leaf("a", height=3), overlay, leaf("b", height=3), padding=1)
        by_id = boxes(compute_layout(root, BoxConstraints.tight(20, 10)))
        assert (by_id["overlay"].x, by_id["overlay"].y) == (3, 2)
        # absolute children do not move the flow cursor
        assert by_id["b"].y == by_id["a"].y + 3
        assert by_id["overlay"].z_index == 3

    def test_z_index_is_relative_to_parent(self):
        inner = column("inner", leaf("a", zIndex=1), zIndex=5)
        result = compute_layout(column("root", inner), BoxConstraints.tight(10, 10))
        assert boxes(result)["a"].z_index == 6

    def test_hit_test_prefers_highest_z_index(self):
        overlay = leaf("overlay", position="absolute", top=0, left=0, width=5, height=5, zIndex=1)
        root = column("root", leaf("a"), overlay)
        result = compute_layout(root, BoxConstraints.tight(10, 10))
        assert hit_test(result, 1, 1).node_id == "overlay"
        assert hit_test(result, 8, 8).node_id == "a"
        assert hit_test(result, 50, 50) is None


class TestEdgeCases:
    def test_none_root_gives_empty_result(self):
        result = compute_layout(None, BoxConstraints.tight(10, 10))
        assert result.boxes == []

    def test_empty_container_has_zero_size(self):
        root = column("root", column("empty"), leaf("a"))
        by_id = boxes(compute_layout(root, BoxConstraints.tight(10, 10)))
        assert by_id["empty"].h == 0
        assert by_id["a"].h == 10

    def test_layout_is_repeatable(self):
        root = row("root", leaf("a", flex=1), leaf("b", width="30%"), gap=1)
        first = compute_layout(root, BoxConstraints.tight(33, 7))
        second = compute_layout(root, BoxConstraints.tight(33, 7))
        assert [b.to_dict() for b in first.boxes] == [b.to_dict() for b in second.boxes]

    def test_siblings_do_not_overlap(self):
        root = row("root", leaf("a", width=7), leaf("b", flex=2), leaf("c", width="20%"), gap=1)
        result = compute_layout(root, BoxConstraints.tight(60, 5))
        children = sorted((b for b in result.boxes if b.node_id != "root"), key=lambda b: b.x)
        for left, right in zip(children, children[1:]):
            assert left.x + left.w <= right.x

    def test_boxes_are_post_order(self):
        root = column("root", column("inner", leaf("a")))
        assert [b.node_id for b in compute_layout(root, BoxConstraints.tight(5, 5)).boxes] == ["a", "inner", "root"]


class TestLayoutEngine:
    def test_clean_tree_reuses_result(self):
        engine = LayoutEngine(column("root", leaf("a")), 10, 5)
        assert engine.layout().dirty is True
        again = engine.layout()
        assert again.dirty is False
        assert again.find_box("a").h == 5

    def test_resize_marks_dirty(self):
        engine = LayoutEngine(column("root", leaf("a")), 10, 5)
        engine.layout()
        assert engine.set_window_size(20, 8) is True
        assert engine.set_window_size(20, 8) is False
        result = engine.layout()
        assert result.dirty is True
        assert result.find_box("a").w == 20

    def test_zero_size_selects_defaults(self):
        engine = LayoutEngine(column("root", leaf("a")))
        assert (engine.width, engine.height) == (80, 24)

    def test_hit_test_before_layout(self):
        assert LayoutEngine(column("root", leaf("a"))).hit_test(0, 0) is None
