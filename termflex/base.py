# termflex/base.py
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

# A deferred effect: a callable or coroutine whose return value, when not
# None, is delivered back to the main loop as a message.
Command = Union[Callable[[], Any], Awaitable[Any]]


class Response(Enum):
    """Answer of a component to a delivered message."""
    HANDLED = "handled"
    IGNORED = "ignored"


@dataclass
class RenderConfig:
    """
    Everything a component needs for one render pass.

    :param data: Resolved property map.
    :param width: Allocated width in cells.
    :param height: Allocated height in cells.
    """
    data: Dict[str, Any] = field(default_factory=dict)
    width: int = 0
    height: int = 0

    def with_size(self, width: int, height: int) -> "RenderConfig":
        return RenderConfig(data=self.data, width=width, height=height)


def values_equal(a: Any, b: Any) -> bool:
    """
    Structural equality for nested maps and lists.

    A bool never equals a number, at any depth, so ``1`` and ``True`` are
    different values. Used to decide whether reconfiguration is necessary,
    so any failure to compare counts as "different".
    """
    if a is b:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return len(a) == len(b) and all(key in b and values_equal(value, b[key]) for key, value in a.items())
    if isinstance(a, (list, tuple)) and type(a) is type(b):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    try:
        return bool(a == b)
    except Exception:
        return False


def configs_equal(a: Optional[RenderConfig], b: Optional[RenderConfig]) -> bool:
    if a is None or b is None:
        return a is b
    return a.width == b.width and a.height == b.height and values_equal(a.data, b.data)


class Component(ABC):
    """
    The contract every widget satisfies, including externally supplied ones.

    Subclasses implement ``handle_message`` and ``view``. Everything else has
    a working default:

    - ``init`` may return a deferred follow-up command.
    - ``report_state`` records a state delta that the dispatcher pulls with
      ``get_state_changes`` after each delivered message.
    - ``emit`` queues a message (for instance an ``ActionMsg``) that the
      dispatcher processes right after the current one.
    - ``subscriptions`` lists the message categories the component wants
      delivered when a message is broadcast.

    :param id: Node ID the instance is registered under.
    :param config: Initial render configuration.
    """

    #: Whether the type may receive keyboard focus.
    focusable: bool = False
    #: Message categories delivered on broadcast.
    subscriptions: Tuple[str, ...] = ()

    def __init__(self, id: str, config: Optional[RenderConfig] = None):
        self.id = id
        self.config = config or RenderConfig()
        self.props: Dict[str, Any] = dict(self.config.data)
        self.width = self.config.width
        self.height = self.config.height
        self._focused = False
        self._pending_state: Dict[str, Any] = {}
        self._outbox: List[Any] = []

    # --- Lifecycle ---

    def init(self) -> Optional[Command]:
        """Called once after creation. May return a deferred command."""
        return None

    def update_render_config(self, config: RenderConfig) -> None:
        """
        Reconfigure from fresh resolved props. Raise to signal failure; the
        registry keeps serving the current instance in that case.
        """
        self.config = config
        self.props = dict(config.data)
        self.set_size(config.width, config.height)

    def cleanup(self) -> None:
        """Release resources before the instance is dropped."""

    # --- Events ---

    @abstractmethod
    def handle_message(self, msg: Any) -> Response:
        """Handle a delivered message and say whether it was consumed."""

    def get_subscribed_message_types(self) -> List[str]:
        return list(self.subscriptions)

    def emit(self, msg: Any) -> None:
        self._outbox.append(msg)

    def take_messages(self) -> List[Any]:
        messages, self._outbox = self._outbox, []
        return messages

    # --- Rendering ---

    @abstractmethod
    def view(self, width: int, height: int) -> str:
        """Render to text for the allocated size."""

    def measure(self, max_width: int, max_height: int) -> Optional[Tuple[int, int]]:
        """Intrinsic size, or None to fill whatever the layout gives."""
        return None

    def set_size(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    # --- Focus ---

    @property
    def focused(self) -> bool:
        return self._focused

    def set_focus(self, focused: bool) -> None:
        self._focused = focused

    # --- State deltas ---

    def report_state(self, key: str, value: Any) -> None:
        self._pending_state[key] = value

    def get_state_changes(self) -> Tuple[Dict[str, Any], bool]:
        """Pending deltas since the last call, and whether there were any."""
        changes, self._pending_state = self._pending_state, {}
        return changes, bool(changes)

    def action_context(self) -> Dict[str, Any]:
        """Context passed as the argument of actions fired by this component."""
        return {"componentID": self.id}

    def __repr__(self):
        return f"{self.__class__.__name__}(id={self.id!r})"


ComponentFactory = Callable[[RenderConfig, str], Component]


@dataclass
class ComponentInstance:
    """A live component plus the bookkeeping the registry needs."""
    id: str
    type: str
    instance: Component
    last_config: RenderConfig


__all__ = [
    "Command",
    "Response",
    "RenderConfig",
    "Component",
    "ComponentFactory",
    "ComponentInstance",
    "values_equal",
    "configs_equal",
]
