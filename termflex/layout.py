# termflex/layout.py
"""
Constraint-based flex layout.

``compute_layout`` turns a ``LayoutNode`` tree plus root ``BoxConstraints``
into absolute cell rectangles. It is a pure function of its inputs apart
from writing the computed geometry back onto the nodes, so running it
twice over the same tree and constraints yields identical boxes.

Per container the pass works like this:

1. Main-axis sizes: fixed and percentage children first, then measured
   leaves, then the remaining space (minus gaps) is split between flex
   children in proportion to ``flex_grow``. Auto children without an
   intrinsic size take an equal share as if they had ``flex_grow=1``.
2. Main-axis positions follow ``justify`` starting at the content-box
   origin (origin + border + padding); each child advances the cursor by
   its size, its margins and the container's gap.
3. Cross-axis size and offset follow ``align_self`` or ``align_items``.
4. Absolute children use their ``top/right/bottom/left`` offsets relative
   to the content box, or the flow cursor when unset, and never move it.
5. Children are visited recursively; boxes are collected in post-order.

Child constraints are not narrowed per child: every node is clamped only
by its own min/max bounds and the root envelope.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .node import LayoutBox, LayoutNode, LayoutResult, NodeType
from .style import BoxConstraints, Style, resolve_size

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 24

# (node, max_width, max_height) -> (width, height) or None when the
# component has no intrinsic size
Measure = Callable[[LayoutNode, int, int], Optional[Tuple[int, int]]]

Rect = Tuple[int, int, int, int]


def _intersect(a: Optional[Rect], b: Rect) -> Rect:
    if a is None:
        return b
    x1 = max(a[0], b[0])
    y1 = max(a[1], b[1])
    x2 = min(a[0] + a[2], b[0] + b[2])
    y2 = min(a[1] + a[3], b[1] + b[3])
    return (x1, y1, max(0, x2 - x1), max(0, y2 - y1))


def _spread(total: int, slots: int) -> List[int]:
    """Split ``total`` cells over ``slots`` as evenly as integers allow."""
    if slots <= 0:
        return []
    return [(total * (i + 1)) // slots - (total * i) // slots for i in range(slots)]


def _distribute(remaining: int, weights: Sequence[float]) -> List[int]:
    """Proportional integer shares; leftover cells go to the earliest weights."""
    total = sum(weights)
    if remaining <= 0 or total <= 0:
        return [0] * len(weights)
    shares = [int(remaining * w / total) if w > 0 else 0 for w in weights]
    leftover = remaining - sum(shares)
    for i, w in enumerate(weights):
        if leftover <= 0:
            break
        if w > 0:
            shares[i] += 1
            leftover -= 1
    return shares


def _justify(free: int, count: int, mode: str) -> Tuple[int, List[int]]:
    """
    Leading offset and the extra space after each of the first ``count - 1``
    children for a justify mode.
    """
    none = [0] * max(0, count - 1)
    if count == 0 or free <= 0:
        return 0, none
    if mode == "end":
        return free, none
    if mode == "center":
        return free // 2, none
    if mode == "space-between":
        if count == 1:
            return 0, []
        return 0, _spread(free, count - 1)
    if mode == "space-around":
        halves = _spread(free, count * 2)
        return halves[0], [halves[2 * i + 1] + halves[2 * i + 2] for i in range(count - 1)]
    if mode == "space-evenly":
        slots = _spread(free, count + 1)
        return slots[0], slots[1:count]
    return 0, none


def _direction(node: LayoutNode) -> str:
    if node.node_type == NodeType.ROW:
        return "row"
    if node.node_type == NodeType.COLUMN:
        return "column"
    return node.style.direction


def _is_empty(node: LayoutNode) -> bool:
    """No children and no component content."""
    return not node.children and not node.is_component


def _clamp(style: Style, row: bool, size: int) -> int:
    return style.clamp_width(size) if row else style.clamp_height(size)


class _LayoutPass:
    """State of a single layout run."""

    def __init__(self, constraints: BoxConstraints, measure: Optional[Measure]):
        self.constraints = constraints
        self.measure = measure
        self.boxes: List[LayoutBox] = []
        self._order = 0
        self._measured: Dict[int, Optional[Tuple[int, int]]] = {}

    def _measure(self, node: LayoutNode, max_w: int, max_h: int) -> Optional[Tuple[int, int]]:
        if self.measure is None or not node.is_component:
            return None
        key = id(node)
        if key not in self._measured:
            try:
                size = self.measure(node, max(0, max_w), max(0, max_h))
            except Exception:
                logger.exception("Measuring component %s failed; treating it as auto", node.id)
                size = None
            self._measured[key] = size
        return self._measured[key]

    # --- Recursion ---

    def visit(self, node: LayoutNode, clip: Optional[Rect], z_base: int) -> None:
        order = self._order
        self._order += 1
        z_index = z_base + node.style.z_index

        node.width = max(0, min(node.width, self.constraints.max_width))
        node.height = max(0, min(node.height, self.constraints.max_height))

        if node.children:
            self._arrange(node, clip, z_index)

        node.dirty = False
        self.boxes.append(
            LayoutBox(
                node_id=node.id,
                x=node.x,
                y=node.y,
                w=node.width,
                h=node.height,
                z_index=z_index,
                order=order,
                is_component=node.is_component,
                clip=clip,
            )
        )

    def _arrange(self, node: LayoutNode, clip: Optional[Rect], z_index: int) -> None:
        s = node.style
        cx, cy, cw, ch = node.inner_bounds()
        child_clip = _intersect(clip, (cx, cy, cw, ch)) if s.overflow == "hidden" else clip
        row = _direction(node) == "row"
        main_avail = cw if row else ch
        cross_avail = ch if row else cw

        flow = [c for c in node.children if not c.style.is_absolute]
        sizes, margins = self._main_sizes(flow, row, main_avail, cross_avail, s.gap)

        gap_total = s.gap * max(0, len(flow) - 1)
        free = max(0, main_avail - sum(sizes) - sum(margins) - gap_total)
        lead, between = _justify(free, len(flow), s.justify)

        cursor = lead
        flow_index = 0
        for child in node.children:
            if child.style.is_absolute:
                if row:
                    self._place_absolute(child, (cx, cy, cw, ch), cx + cursor, cy)
                else:
                    self._place_absolute(child, (cx, cy, cw, ch), cx, cy + cursor)
                continue

            i = flow_index
            flow_index += 1
            cs = child.style
            start_margin = cs.margin.left if row else cs.margin.top
            end_margin = cs.margin.right if row else cs.margin.bottom
            main_pos = cursor + start_margin
            cross_size, cross_off = self._cross(child, row, main_avail, cross_avail, sizes[i], s.align_items)

            if row:
                child.x, child.y = cx + main_pos, cy + cross_off
                child.width, child.height = sizes[i], cross_size
            else:
                child.x, child.y = cx + cross_off, cy + main_pos
                child.width, child.height = cross_size, sizes[i]

            cursor = main_pos + sizes[i] + end_margin
            if i < len(flow) - 1:
                cursor += s.gap + between[i]

        for child in node.children:
            self.visit(child, child_clip, z_index)

    def _main_sizes(
        self,
        flow: List[LayoutNode],
        row: bool,
        main_avail: int,
        cross_avail: int,
        gap: int,
    ) -> Tuple[List[int], List[int]]:
        sizes: List[Optional[int]] = []
        margins: List[int] = []
        grows: List[float] = []

        for child in flow:
            cs = child.style
            margins.append(cs.margin.horizontal if row else cs.margin.vertical)
            size = resolve_size(cs.width if row else cs.height, main_avail)
            grow = 0.0
            if size is None:
                if cs.flex_grow > 0:
                    grow = cs.flex_grow
                elif _is_empty(child):
                    size = 0
                else:
                    measured = (
                        self._measure(child, main_avail, cross_avail)
                        if row
                        else self._measure(child, cross_avail, main_avail)
                    )
                    if measured is not None:
                        size = measured[0] if row else measured[1]
                    else:
                        grow = 1.0
            if size is not None:
                size = _clamp(cs, row, size)
            sizes.append(size)
            grows.append(grow)

        fixed = sum(s for s in sizes if s is not None)
        remaining = main_avail - fixed - sum(margins) - gap * max(0, len(flow) - 1)
        shares = _distribute(max(0, remaining), grows)
        resolved: List[int] = []
        for child, size, grow, share in zip(flow, sizes, grows, shares):
            if size is None:
                size = _clamp(child.style, row, share) if grow > 0 else 0
            resolved.append(max(0, size))
        return resolved, margins

    def _cross(
        self,
        child: LayoutNode,
        row: bool,
        main_avail: int,
        cross_avail: int,
        main_size: int,
        parent_align: str,
    ) -> Tuple[int, int]:
        cs = child.style
        start_margin = cs.margin.top if row else cs.margin.left
        avail = max(0, cross_avail - (cs.margin.vertical if row else cs.margin.horizontal))
        align = cs.align_self or parent_align

        size = resolve_size(cs.height if row else cs.width, cross_avail)
        if size is None:
            if _is_empty(child):
                size = 0
            elif align == "stretch":
                size = avail
            else:
                measured = (
                    self._measure(child, main_size, avail) if row else self._measure(child, avail, main_size)
                )
                if measured is None:
                    size = avail
                else:
                    size = min(avail, measured[1] if row else measured[0])
        size = max(0, _clamp(cs, not row, size))

        if align == "center":
            offset = (avail - size) // 2
        elif align == "end":
            offset = avail - size
        else:
            offset = 0
        return size, start_margin + max(0, offset)

    def _place_absolute(self, child: LayoutNode, content: Rect, cursor_x: int, cursor_y: int) -> None:
        cx, cy, cw, ch = content
        cs = child.style

        width = resolve_size(cs.width, cw)
        if width is None:
            if _is_empty(child):
                width = 0
            elif cs.left is not None and cs.right is not None:
                width = cw - cs.left - cs.right
            else:
                measured = self._measure(child, cw, ch)
                width = measured[0] if measured is not None else cw
        height = resolve_size(cs.height, ch)
        if height is None:
            if _is_empty(child):
                height = 0
            elif cs.top is not None and cs.bottom is not None:
                height = ch - cs.top - cs.bottom
            else:
                measured = self._measure(child, width, ch)
                height = measured[1] if measured is not None else ch
        width = cs.clamp_width(width)
        height = cs.clamp_height(height)

        if cs.left is not None:
            x = cx + cs.left
        elif cs.right is not None:
            x = cx + cw - cs.right - width
        else:
            x = cursor_x
        if cs.top is not None:
            y = cy + cs.top
        elif cs.bottom is not None:
            y = cy + ch - cs.bottom - height
        else:
            y = cursor_y

        child.x = x + cs.margin.left
        child.y = y + cs.margin.top
        child.width = width
        child.height = height


def compute_layout(
    root: Optional[LayoutNode],
    constraints: BoxConstraints,
    measure: Optional[Measure] = None,
) -> LayoutResult:
    """
    Lay out ``root`` inside ``constraints``.

    A ``None`` root yields an empty result. Z-index is relative to the
    parent's stacking level.
    """
    if root is None:
        return LayoutResult(boxes=[], dirty=True, root_width=0, root_height=0)

    s = root.style
    avail_w = max(0, constraints.max_width - s.margin.horizontal)
    avail_h = max(0, constraints.max_height - s.margin.vertical)

    if _is_empty(root):
        width = resolve_size(s.width, avail_w) or 0
        height = resolve_size(s.height, avail_h) or 0
    else:
        # declared sizes win over the envelope minimum, never over its maximum
        width = resolve_size(s.width, avail_w)
        height = resolve_size(s.height, avail_h)
        width = min(s.clamp_width(avail_w if width is None else width), constraints.max_width)
        height = min(s.clamp_height(avail_h if height is None else height), constraints.max_height)

    root.x = s.margin.left
    root.y = s.margin.top
    root.width = width
    root.height = height

    layout_pass = _LayoutPass(constraints, measure)
    layout_pass.visit(root, None, 0)
    return LayoutResult(
        boxes=layout_pass.boxes,
        dirty=True,
        root_width=constraints.max_width,
        root_height=constraints.max_height,
    )


def hit_test(result: LayoutResult, x: int, y: int) -> Optional[LayoutBox]:
    """
    Topmost component box under ``(x, y)``: highest z-index wins, then the
    later node in document order. Container boxes are never hit.
    """
    best: Optional[LayoutBox] = None
    for box in result.boxes:
        if not box.is_component or not box.contains(x, y):
            continue
        if box.clip is not None:
            clip_x, clip_y, clip_w, clip_h = box.clip
            if not (clip_x <= x < clip_x + clip_w and clip_y <= y < clip_y + clip_h):
                continue
        if best is None or (box.z_index, box.order) > (best.z_index, best.order):
            best = box
    return best


class LayoutEngine:
    """
    Holds the layout tree and root constraints between frames and re-runs
    ``compute_layout`` only when something is dirty.

    :param root: Root of the layout tree.
    :param width: Window width; 0 selects the 80 column default.
    :param height: Window height; 0 selects the 24 row default.
    :param measure: Intrinsic-size callback for component leaves.
    """

    def __init__(
        self,
        root: Optional[LayoutNode] = None,
        width: int = 0,
        height: int = 0,
        measure: Optional[Measure] = None,
    ):
        self.root = root
        self.measure = measure
        self._constraints = BoxConstraints.tight(width or DEFAULT_WIDTH, height or DEFAULT_HEIGHT)
        self._result: Optional[LayoutResult] = None
        self._dirty = True

    @property
    def constraints(self) -> BoxConstraints:
        return self._constraints

    @property
    def width(self) -> int:
        return self._constraints.max_width

    @property
    def height(self) -> int:
        return self._constraints.max_height

    @property
    def last_result(self) -> Optional[LayoutResult]:
        return self._result

    def set_root(self, root: Optional[LayoutNode]) -> None:
        self.root = root
        self.invalidate()

    def set_window_size(self, width: int, height: int) -> bool:
        """
        Update the root constraint. Returns True when the size changed, in
        which case the whole tree is marked dirty.
        """
        constraints = BoxConstraints.tight(width or DEFAULT_WIDTH, height or DEFAULT_HEIGHT)
        if constraints == self._constraints:
            return False
        self._constraints = constraints
        self.invalidate()
        return True

    def invalidate(self) -> None:
        self._dirty = True
        if self.root is not None:
            self.root.mark_dirty(propagate=True)

    def is_dirty(self) -> bool:
        if self._dirty or self._result is None:
            return True
        return self.root is not None and self.root.is_dirty()

    def layout(self, force: bool = False) -> LayoutResult:
        """Return the current layout, recomputing it when dirty."""
        if not force and not self.is_dirty():
            cached = self._result
            return LayoutResult(
                boxes=cached.boxes,
                dirty=False,
                root_width=cached.root_width,
                root_height=cached.root_height,
            )
        result = compute_layout(self.root, self._constraints, self.measure)
        self._result = result
        self._dirty = False
        logger.debug("Layout computed: %d boxes at %dx%d", len(result.boxes), self.width, self.height)
        return result

    def hit_test(self, x: int, y: int) -> Optional[LayoutBox]:
        if self._result is None:
            return None
        return hit_test(self._result, x, y)


__all__ = [
    "DEFAULT_WIDTH",
    "DEFAULT_HEIGHT",
    "Measure",
    "compute_layout",
    "hit_test",
    "LayoutEngine",
]
