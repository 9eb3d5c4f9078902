# termflex/focus.py
"""
Keyboard focus bookkeeping.

``FocusNavigator`` owns the current focus ID and the ordered list of
focusable IDs. It never touches component instances: every operation
returns the notifications to deliver, a ``FocusMsg(LOST)`` for the old
holder followed by a ``FocusMsg(GAINED)`` for the new one, each wrapped in
its own ``TargetedMsg``.
"""

import logging
from typing import Iterable, List, Optional

from .events import FocusKind, FocusMsg, TargetedMsg
from .log import trace
from .node import LayoutResult

logger = logging.getLogger(__name__)


def order_by_geometry(ids: Iterable[str], result: Optional[LayoutResult]) -> List[str]:
    """
    Sort focusable IDs by on-screen position: top to bottom, then left to
    right. IDs without a box keep their registration order and go last.

    Python's sort is stable, so with no geometry at all the registration
    order is returned unchanged.
    """
    ids = list(dict.fromkeys(ids))
    if result is None:
        return ids
    placed = []
    unplaced = []
    for index, component_id in enumerate(ids):
        box = result.find_box(component_id)
        if box is None:
            unplaced.append(component_id)
        else:
            placed.append(((box.y, box.x, index), component_id))
    placed.sort(key=lambda item: item[0])
    return [component_id for _, component_id in placed] + unplaced


class FocusNavigator:
    """
    :param cycles: Whether next/previous wrap around at either end.
    """

    def __init__(self, cycles: bool = True):
        self.cycles = cycles
        self.current = ""
        self._order: List[str] = []

    @property
    def focusable_ids(self) -> List[str]:
        return list(self._order)

    def update_order(self, ids: Iterable[str], result: Optional[LayoutResult] = None) -> List[str]:
        """
        Recompute the tab order after a layout pass. Focus on an ID that is
        no longer focusable is kept as-is; the next navigation step resolves it.
        """
        self._order = order_by_geometry(ids, result)
        return self.focusable_ids

    def is_focusable(self, component_id: str) -> bool:
        return component_id in self._order

    def set_focus(self, component_id: str, reason: str = "") -> List[TargetedMsg]:
        if not component_id:
            return self.clear_focus(reason)
        if component_id == self.current:
            return []
        previous = self.current
        self.current = component_id
        trace(logger, "Focus %s -> %s (%s)", previous or "<none>", component_id, reason)
        notifications = []
        if previous:
            notifications.append(TargetedMsg(previous, FocusMsg(FocusKind.LOST, reason, previous, component_id)))
        notifications.append(TargetedMsg(component_id, FocusMsg(FocusKind.GAINED, reason, previous, component_id)))
        return notifications

    def clear_focus(self, reason: str = "") -> List[TargetedMsg]:
        if not self.current:
            return []
        previous = self.current
        self.current = ""
        trace(logger, "Focus cleared from %s (%s)", previous, reason)
        return [TargetedMsg(previous, FocusMsg(FocusKind.LOST, reason, previous, ""))]

    def focus_first(self, reason: str = "first") -> List[TargetedMsg]:
        if not self._order:
            return []
        return self.set_focus(self._order[0], reason)

    def focus_next(self, reason: str = "next") -> List[TargetedMsg]:
        return self._move(1, reason)

    def focus_previous(self, reason: str = "previous") -> List[TargetedMsg]:
        return self._move(-1, reason)

    def _move(self, step: int, reason: str) -> List[TargetedMsg]:
        order = self._order
        if not order:
            return []
        if self.current not in order:
            return self.set_focus(order[0] if step > 0 else order[-1], reason)
        index = order.index(self.current) + step
        if index < 0 or index >= len(order):
            if not self.cycles:
                trace(logger, "Focus stays on %s, cycling disabled", self.current)
                return []
            index %= len(order)
        return self.set_focus(order[index], reason)


__all__ = ["FocusNavigator", "order_by_geometry"]
