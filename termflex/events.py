# termflex/events.py
"""
Message types flowing through the main loop, their routing categories and
the geometry/component/system classification used by the dispatcher.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

# --- Input messages ---


@dataclass(frozen=True)
class KeyMsg:
    """
    A key press.

    :param key: Normalized key name: a single character, or names such as
                ``"enter"``, ``"tab"``, ``"shift+tab"``, ``"ctrl+c"``, ``"up"``.
    :param text: Printable text carried by the key, empty for control keys.
    """
    key: str
    text: str = ""

    @property
    def is_rune(self) -> bool:
        return len(self.text) == 1

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class MouseMsg:
    """A mouse event at absolute cell coordinates."""
    x: int
    y: int
    action: str = "press"  # press, release, motion, wheel
    button: str = "left"

    @property
    def is_press(self) -> bool:
        return self.action == "press"


@dataclass(frozen=True)
class ResizeMsg:
    width: int
    height: int


# --- Routing and focus ---


@dataclass(frozen=True)
class TargetedMsg:
    """A message addressed to one component ID, bypassing focus routing."""
    target_id: str
    inner: Any


class FocusKind(str, Enum):
    GAINED = "gained"
    LOST = "lost"


@dataclass(frozen=True)
class FocusMsg:
    kind: FocusKind
    reason: str = ""
    from_id: str = ""
    to_id: str = ""


@dataclass(frozen=True)
class FocusFirstMsg:
    """Focus the first focusable component once, after initialization."""


# --- Actions and results ---


@dataclass
class ActionMsg:
    """A named event published by a component, such as ``select`` or ``submit``."""
    source_id: str
    event: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExecuteActionMsg:
    """Ask the loop to execute an action descriptor on behalf of a component."""
    action: Any
    source_id: str = ""


@dataclass
class ProcessResultMsg:
    """
    Completion of a deferred action: data for ``target`` or an error.

    ``fallback`` names the key that keeps a non-map result when no target
    is set; ``onLoad`` uses ``__onLoadResult``.
    """
    target: str = ""
    data: Any = None
    error: Optional[BaseException] = None
    fallback: str = ""


@dataclass
class StateUpdateMsg:
    key: str
    value: Any


@dataclass
class StateBatchUpdateMsg:
    updates: Dict[str, Any]


@dataclass(frozen=True)
class TickMsg:
    timer_id: str = ""


@dataclass(frozen=True)
class RefreshMsg:
    pass


@dataclass(frozen=True)
class QuitMsg:
    pass


# --- Classification ---


class EventClass(str, Enum):
    GEOMETRY = "geometry"
    COMPONENT = "component"
    SYSTEM = "system"


def classify_message(msg: Any) -> EventClass:
    """Mouse events are geometry, resize is system, everything else component."""
    if isinstance(msg, MouseMsg):
        return EventClass.GEOMETRY
    if isinstance(msg, ResizeMsg):
        return EventClass.SYSTEM
    return EventClass.COMPONENT


_CATEGORIES = {
    KeyMsg: "key",
    MouseMsg: "mouse",
    ResizeMsg: "resize",
    FocusMsg: "focus",
    ActionMsg: "action",
    TickMsg: "tick",
}


def message_category(msg: Any) -> str:
    """Subscription category of a message; custom messages use their class name."""
    if msg is None:
        return "none"
    return _CATEGORIES.get(type(msg), type(msg).__name__)


# --- Key decoding ---

_SEQUENCES = {
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    "\x1b[Z": "shift+tab",
    "\x1b": "esc",
    "\x7f": "backspace",
    "\x08": "backspace",
    " ": "space",
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
    "\x1b[3~": "delete",
    "\x1b[5~": "pgup",
    "\x1b[6~": "pgdown",
    # windows console scan codes as returned by click.getchar
    "\xe0H": "up",
    "\xe0P": "down",
    "\xe0M": "right",
    "\xe0K": "left",
    "\x00H": "up",
    "\x00P": "down",
    "\x00M": "right",
    "\x00K": "left",
}


def decode_key(sequence: str) -> KeyMsg:
    """Turn a raw terminal sequence into a ``KeyMsg``."""
    if sequence in _SEQUENCES:
        name = _SEQUENCES[sequence]
        return KeyMsg(key=name, text=" " if name == "space" else "")
    if len(sequence) == 1:
        code = ord(sequence)
        if 1 <= code <= 26:
            return KeyMsg(key="ctrl+" + chr(code + 96))
        return KeyMsg(key=sequence, text=sequence)
    if len(sequence) == 2 and sequence[0] == "\x1b":
        return KeyMsg(key="alt+" + sequence[1])
    return KeyMsg(key=sequence, text="")


__all__ = [
    "KeyMsg",
    "MouseMsg",
    "ResizeMsg",
    "TargetedMsg",
    "FocusKind",
    "FocusMsg",
    "FocusFirstMsg",
    "ActionMsg",
    "ExecuteActionMsg",
    "ProcessResultMsg",
    "StateUpdateMsg",
    "StateBatchUpdateMsg",
    "TickMsg",
    "RefreshMsg",
    "QuitMsg",
    "EventClass",
    "classify_message",
    "message_category",
    "decode_key",
]
