# termflex/node.py
"""
The layout tree: nodes, computed boxes and the flat layout result.

A node owns its children. The back-reference to the parent is a weak
reference used only for upward queries, so the tree never holds a second
strong owner of any node.
"""

import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .style import Style


class NodeType(str, Enum):
    ROW = "row"
    COLUMN = "column"
    FLEX = "flex"
    TEXT = "text"
    CUSTOM = "custom"


_TYPE_MAP = {
    "row": NodeType.ROW,
    "hbox": NodeType.ROW,
    "flex": NodeType.ROW,
    "column": NodeType.COLUMN,
    "vbox": NodeType.COLUMN,
    "layout": NodeType.COLUMN,
    "text": NodeType.TEXT,
    "header": NodeType.TEXT,
    "footer": NodeType.TEXT,
    "static": NodeType.TEXT,
}

CONTAINER_TYPES = frozenset(("row", "hbox", "flex", "column", "vbox", "layout"))


def node_type_for(declared: Optional[str]) -> NodeType:
    """Map a declared ``type`` string to the node kind the engine lays out."""
    if not declared:
        return NodeType.COLUMN
    return _TYPE_MAP.get(declared.lower(), NodeType.CUSTOM)


def is_container_type(declared: Optional[str]) -> bool:
    return not declared or declared.lower() in CONTAINER_TYPES


class LayoutNode:
    """
    A node in the resolved layout tree.

    Container nodes (row/column/flex) only arrange children. Every other
    node is a leaf that references a component instance by its ``id``; the
    instance itself lives in the component registry.

    :param id: Stable identifier, unique within one configuration.
    :param node_type: Layout kind.
    :param style: Layout style.
    :param component_type: Declared component type for leaf nodes.
    :param props: Declared (unresolved) component properties.
    :param bind: State key whose value is handed to the component whole.
    :param actions: Component event name -> binding descriptor.
    :param bindings: Key name -> binding descriptor, handled while focused.
    """

    def __init__(
        self,
        id: str,
        node_type: NodeType = NodeType.COLUMN,
        style: Optional[Style] = None,
        component_type: Optional[str] = None,
        props: Optional[Dict[str, Any]] = None,
        bind: Optional[str] = None,
        actions: Optional[Dict[str, Any]] = None,
        bindings: Optional[Dict[str, Any]] = None,
    ):
        self.id = id
        self.node_type = node_type
        self.style = style or Style()
        self.component_type = component_type
        self.props: Dict[str, Any] = props or {}
        self.bind = bind
        self.actions: Dict[str, Any] = actions or {}
        self.bindings: Dict[str, Any] = bindings or {}
        self.children: List["LayoutNode"] = []
        self._parent_ref: Optional[weakref.ref] = None

        # computed output, in character cells
        self.x = 0
        self.y = 0
        self.width = 0
        self.height = 0
        self.dirty = True

    # --- Tree structure ---

    @property
    def parent(self) -> Optional["LayoutNode"]:
        return self._parent_ref() if self._parent_ref is not None else None

    def add_child(self, child: "LayoutNode") -> "LayoutNode":
        """Append ``child`` and point its parent link at this node."""
        if child.parent is not None and child.parent is not self:
            child.parent.remove_child(child)
        child._parent_ref = weakref.ref(self)
        self.children.append(child)
        self.mark_dirty(propagate=False)
        return child

    def remove_child(self, child: "LayoutNode") -> bool:
        for i, existing in enumerate(self.children):
            if existing is child:
                del self.children[i]
                child._parent_ref = None
                self.mark_dirty(propagate=False)
                return True
        return False

    @property
    def is_component(self) -> bool:
        return self.component_type is not None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def walk(self) -> Iterator["LayoutNode"]:
        """Pre-order traversal including this node."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, node_id: str) -> Optional["LayoutNode"]:
        for node in self.walk():
            if node.id == node_id:
                return node
        return None

    def ancestors(self) -> Iterator["LayoutNode"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def depth(self) -> int:
        return sum(1 for _ in self.ancestors())

    # --- Dirty tracking ---

    def mark_dirty(self, propagate: bool = True) -> None:
        """
        Flag this node for re-layout. With ``propagate`` every descendant is
        flagged as well.
        """
        self.dirty = True
        if propagate:
            for child in self.children:
                child.mark_dirty(propagate=True)

    def clear_dirty(self) -> None:
        for node in self.walk():
            node.dirty = False

    def is_dirty(self) -> bool:
        return any(node.dirty for node in self.walk())

    # --- Geometry ---

    def bounds(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    def inner_bounds(self) -> Tuple[int, int, int, int]:
        """The content box: the node's box minus border and padding."""
        s = self.style
        left = s.padding.left + s.border.left
        top = s.padding.top + s.border.top
        return (
            self.x + left,
            self.y + top,
            max(0, self.width - left - s.padding.right - s.border.right),
            max(0, self.height - top - s.padding.bottom - s.border.bottom),
        )

    def contains_point(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height

    def __repr__(self) -> str:
        kind = self.component_type or self.node_type.value
        return (
            f"LayoutNode(id={self.id!r}, type={kind!r}, "
            f"box=({self.x}, {self.y}, {self.width}, {self.height}), children={len(self.children)})"
        )


@dataclass(frozen=True)
class LayoutBox:
    """Absolute screen rectangle computed for one node."""
    node_id: str
    x: int
    y: int
    w: int
    h: int
    z_index: int = 0
    order: int = 0  # pre-order (document) index of the node
    is_component: bool = False
    clip: Optional[Tuple[int, int, int, int]] = None

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.w and self.y <= y < self.y + self.h

    @property
    def area(self) -> int:
        return self.w * self.h

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.node_id,
            "x": self.x,
            "y": self.y,
            "w": self.w,
            "h": self.h,
            "z": self.z_index,
        }


@dataclass
class LayoutResult:
    """Flat output of a layout pass, boxes in post-order."""
    boxes: List[LayoutBox] = field(default_factory=list)
    dirty: bool = False
    root_width: int = 0
    root_height: int = 0

    def find_box(self, node_id: str) -> Optional[LayoutBox]:
        for box in self.boxes:
            if box.node_id == node_id:
                return box
        return None

    def paint_order(self) -> List[LayoutBox]:
        """Boxes sorted by z-index, then document order."""
        return sorted(self.boxes, key=lambda b: (b.z_index, b.order))

    def component_boxes(self) -> List[LayoutBox]:
        return [b for b in self.boxes if b.is_component]


def validate_tree(root: Optional[LayoutNode]) -> List[str]:
    """
    Check parent links and ID uniqueness.

    :return: A list of human readable problems; empty when the tree is sound.
    """
    problems: List[str] = []
    if root is None:
        return problems
    if root.parent is not None:
        problems.append(f"root {root.id!r} has a parent {root.parent.id!r}")
    seen = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if node.id in seen:
            problems.append(f"duplicate node id {node.id!r}")
        seen.add(node.id)
        for child in node.children:
            if child.parent is not node:
                actual = child.parent.id if child.parent is not None else None
                problems.append(
                    f"node {child.id!r} is a child of {node.id!r} but its parent is {actual!r}"
                )
            stack.append(child)
    return problems


__all__ = [
    "NodeType",
    "LayoutNode",
    "LayoutBox",
    "LayoutResult",
    "node_type_for",
    "is_container_type",
    "validate_tree",
    "CONTAINER_TYPES",
]
