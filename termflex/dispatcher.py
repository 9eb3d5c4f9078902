# termflex/dispatcher.py
"""
Routes one message at a time to the component instances.

Messages are classified first:

- geometry (mouse): hit-test the last layout, focus the hit component on a
  press when it is focusable, deliver with box-local coordinates;
- system (resize): update the root constraint, invalidate the whole layout
  tree and deliver to every instance;
- component (everything else): targeted messages go straight to their
  target; keys run through global bindings, the focused component and
  focus navigation before falling back to subscribers.

After every delivery the component's reported state deltas are merged into
the store and the messages it emitted are processed before the dispatch
returns, so nothing is reordered by routing.
"""

import logging
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional

from .actions import Action, ActionExecutor, ComponentBinding, is_builtin
from .base import Command, Response
from .events import (
    ActionMsg,
    EventClass,
    ExecuteActionMsg,
    FocusFirstMsg,
    FocusKind,
    FocusMsg,
    KeyMsg,
    MouseMsg,
    ProcessResultMsg,
    QuitMsg,
    RefreshMsg,
    ResizeMsg,
    StateBatchUpdateMsg,
    StateUpdateMsg,
    TargetedMsg,
    classify_message,
    message_category,
)
from .exceptions import ActionError
from .focus import FocusNavigator
from .layout import LayoutEngine
from .log import trace
from .node import LayoutNode
from .props import PropsResolver
from .registry import ComponentInstanceRegistry
from .state import ERROR_KEY, StateStore, apply_result
from .subscriptions import MessageSubscriptionManager

logger = logging.getLogger(__name__)

NAVIGATION_KEYS = ("tab", "shift+tab")


class EventDispatcher:
    """
    :param registry: Live component instances.
    :param store: Application state.
    :param resolver: Props resolver whose cache is invalidated on state changes.
    :param focus: Focus navigator.
    :param subscriptions: Broadcast routing table.
    :param layout: Layout engine holding the tree and the last result.
    :param executor: Builds deferred commands for process/script actions.
    :param bindings: Global key bindings.
    :param navigation_mode: ``native`` keeps tab/shift+tab for focus
                            navigation; ``bindable`` lets bindings claim them.
    """

    def __init__(
        self,
        registry: ComponentInstanceRegistry,
        store: StateStore,
        resolver: PropsResolver,
        focus: FocusNavigator,
        subscriptions: MessageSubscriptionManager,
        layout: LayoutEngine,
        executor: Optional[ActionExecutor] = None,
        bindings: Optional[Mapping[str, Action]] = None,
        navigation_mode: str = "native",
    ):
        self.registry = registry
        self.store = store
        self.resolver = resolver
        self.focus = focus
        self.subscriptions = subscriptions
        self.layout = layout
        self.executor = executor or ActionExecutor()
        self.bindings: Dict[str, Action] = dict(bindings or {})
        self.navigation_mode = navigation_mode

        self.quit_requested = False
        self.needs_render = True
        self._queue: Deque[Any] = deque()
        self._commands: List[Command] = []

    # --- Entry point ---

    def dispatch(self, msg: Any) -> List[Command]:
        """
        Process ``msg`` and everything it causes synchronously.

        :return: Deferred commands to schedule, in issue order.
        """
        self._queue.append(msg)
        return self._drain()

    def run_action(self, action: Optional[Action], source_id: str = "", fallback: str = "") -> List[Command]:
        """Execute an action outside of message handling, e.g. ``onLoad``."""
        self.execute_action(action, source_id, fallback=fallback)
        return self._drain()

    def _drain(self) -> List[Command]:
        while self._queue:
            current = self._queue.popleft()
            try:
                self._process(current)
            except Exception:
                logger.exception("Dispatching %s failed", type(current).__name__)
        commands, self._commands = self._commands, []
        return commands

    def _process(self, msg: Any) -> None:
        if msg is None:
            return
        if isinstance(msg, TargetedMsg):
            self._deliver(msg.target_id, msg.inner)
        elif isinstance(msg, QuitMsg):
            self.quit_requested = True
        elif isinstance(msg, RefreshMsg):
            self._invalidate()
        elif isinstance(msg, FocusFirstMsg):
            self._apply_focus(self.focus.focus_first("init"))
        elif isinstance(msg, StateUpdateMsg):
            self._merge({msg.key: msg.value})
        elif isinstance(msg, StateBatchUpdateMsg):
            self._merge(msg.updates)
        elif isinstance(msg, ProcessResultMsg):
            self._process_result(msg)
        elif isinstance(msg, ExecuteActionMsg):
            self._execute_declared(msg)
        elif isinstance(msg, ActionMsg):
            self._action(msg)
        else:
            kind = classify_message(msg)
            if kind is EventClass.GEOMETRY:
                self._geometry(msg)
            elif kind is EventClass.SYSTEM:
                self._system(msg)
            elif isinstance(msg, KeyMsg):
                self._key(msg)
            else:
                self._component(msg)

    # --- Delivery ---

    def _deliver(self, component_id: str, msg: Any) -> Response:
        entry = self.registry.get(component_id)
        if entry is None:
            logger.debug("No component %r for %s", component_id, type(msg).__name__)
            return Response.IGNORED
        instance = entry.instance
        if isinstance(msg, FocusMsg):
            instance.set_focus(msg.kind is FocusKind.GAINED)
            self.needs_render = True
        try:
            response = instance.handle_message(msg)
        except Exception:
            logger.exception("Component %s (%s) failed handling %s", entry.id, entry.type, type(msg).__name__)
            response = Response.IGNORED
        self._collect(component_id, instance)
        return response if isinstance(response, Response) else Response.IGNORED

    def _collect(self, component_id: str, instance: Any) -> None:
        changes, has_changes = instance.get_state_changes()
        if has_changes:
            self._merge(changes)
        emitted = instance.take_messages()
        if emitted:
            self.needs_render = True
            self._queue.extend(emitted)

    def _broadcast(self, msg: Any, exclude: Iterable[str] = (), everyone: bool = False) -> None:
        skip = set(exclude)
        if everyone:
            targets = self.registry.ids()
        else:
            targets = self.subscriptions.get_subscribers(message_category(msg))
        for component_id in targets:
            if component_id not in skip:
                self._deliver(component_id, msg)

    def _publish(self, msg: Any, exclude: Iterable[str] = ()) -> None:
        """Broadcast to subscribers of the category, or to everyone when it has none."""
        everyone = not self.subscriptions.get_subscribers(message_category(msg))
        self._broadcast(msg, exclude, everyone=everyone)

    # --- State ---

    def _merge(self, updates: Mapping[str, Any]) -> None:
        if updates and self.store.batch_set(updates):
            self._invalidate()

    def _invalidate(self) -> None:
        """State changed or a refresh was requested: resolve props and lay out again."""
        self.resolver.invalidate()
        self.layout.invalidate()
        self.needs_render = True

    def _process_result(self, msg: ProcessResultMsg) -> None:
        if msg.error is not None:
            key = msg.target or ERROR_KEY
            logger.error("Action failed, storing error under %r: %s", key, msg.error)
            self.store.set(key, str(msg.error))
        else:
            apply_result(self.store, msg.data, msg.target, msg.fallback)
        self._invalidate()

    # --- Paths ---

    def _geometry(self, msg: MouseMsg) -> None:
        box = self.layout.hit_test(msg.x, msg.y)
        if box is None:
            return
        if msg.is_press and self.focus.is_focusable(box.node_id):
            self._apply_focus(self.focus.set_focus(box.node_id, "mouse"))
        local = MouseMsg(x=msg.x - box.x, y=msg.y - box.y, action=msg.action, button=msg.button)
        self._deliver(box.node_id, local)

    def _system(self, msg: Any) -> None:
        if isinstance(msg, ResizeMsg):
            self.layout.set_window_size(msg.width, msg.height)
            self.layout.invalidate()
            self.needs_render = True
        self._broadcast(msg, everyone=True)

    def _key(self, msg: KeyMsg) -> None:
        key = msg.key
        bindable = key not in NAVIGATION_KEYS or self.navigation_mode == "bindable"

        if bindable and key in self.bindings:
            trace(logger, "Global binding %s -> %s", key, self.bindings[key].process or self.bindings[key].script)
            self.execute_action(self.bindings[key], self.focus.current)
            return
        if key == "ctrl+c":
            self.quit_requested = True
            return

        focused = self.focus.current
        if focused and focused in self.registry:
            if self._component_binding(focused, msg):
                return
            if self._deliver(focused, msg) is Response.HANDLED:
                return

        if key == "esc" and focused:
            self._apply_focus(self.focus.clear_focus("esc"))
            return
        if key == "tab":
            self._apply_focus(self.focus.focus_next("tab"))
            return
        if key == "shift+tab":
            self._apply_focus(self.focus.focus_previous("shift+tab"))
            return

        self._broadcast(msg, exclude=[focused] if focused else ())

    def _component_binding(self, component_id: str, msg: KeyMsg) -> bool:
        """Run the focused node's own binding for ``msg``. True when consumed."""
        node = self._node(component_id)
        if node is None:
            return False
        binding = node.bindings.get(msg.key)
        if not isinstance(binding, ComponentBinding) or not binding.enabled:
            return False
        mode = binding.mode
        if mode == "action":
            self.execute_action(binding.action, component_id)
            return True
        if mode == "event":
            data = self._context(component_id)
            data["key"] = msg.key
            self._queue.append(ActionMsg(source_id=component_id, event=binding.event, data=data))
            return True
        return False

    def _component(self, msg: Any) -> None:
        focused = self.focus.current
        if focused and focused in self.registry:
            if self._deliver(focused, msg) is Response.HANDLED:
                return
        self._publish(msg, exclude=[focused] if focused else ())

    def _action(self, msg: ActionMsg) -> None:
        node = self._node(msg.source_id)
        binding = node.actions.get(msg.event) if node is not None else None
        if isinstance(binding, ComponentBinding) and binding.enabled:
            mode = binding.mode
            if mode == "action":
                self.execute_action(binding.action, msg.source_id, msg.data)
                return
            if mode == "event" and binding.event != msg.event:
                self._queue.append(ActionMsg(source_id=msg.source_id, event=binding.event, data=msg.data))
                return
        self._publish(msg, exclude=[msg.source_id])

    # --- Focus ---

    def _apply_focus(self, notifications: List[TargetedMsg]) -> None:
        for notification in notifications:
            self._deliver(notification.target_id, notification.inner)
        if notifications:
            self.needs_render = True

    # --- Actions ---

    def _node(self, component_id: str) -> Optional[LayoutNode]:
        if not component_id or self.layout.root is None:
            return None
        return self.layout.root.find(component_id)

    def _context(self, component_id: str) -> Dict[str, Any]:
        entry = self.registry.get(component_id) if component_id else None
        if entry is None:
            return {"componentID": component_id}
        try:
            return dict(entry.instance.action_context())
        except Exception:
            logger.exception("Component %s failed building its action context", component_id)
            return {"componentID": component_id}

    def _execute_declared(self, msg: ExecuteActionMsg) -> None:
        try:
            action = Action.from_dict(msg.action)
        except ActionError as e:
            target = ""
            if isinstance(msg.action, Mapping):
                target = msg.action.get("onError") or msg.action.get("on_error") or ""
            self._queue.append(ProcessResultMsg(target=str(target), error=e))
            return
        self.execute_action(action, msg.source_id)

    def execute_action(
        self,
        action: Optional[Action],
        source_id: str = "",
        data: Optional[Mapping[str, Any]] = None,
        fallback: str = "",
    ) -> None:
        """
        Run ``action`` on behalf of ``source_id``.

        Payload and built-in actions apply immediately; process and script
        actions become deferred commands. Problems are routed as an error
        result rather than raised.
        """
        if action is None:
            return

        snapshot = self.store.snapshot()
        if action.payload:
            self._merge(self.resolver.resolve_value(action.payload, snapshot))
            return

        if action.args:
            args = self.resolver.resolve_value(list(action.args), snapshot)
        else:
            context = self._context(source_id)
            context.update(data or {})
            args = [context]

        if action.process and is_builtin(action.process):
            try:
                self._builtin(action, args, source_id)
            except ActionError as e:
                self._queue.append(ProcessResultMsg(target=action.on_error, error=e))
            return

        self._commands.append(self.executor.command(action, args, fallback=fallback))

    def _builtin(self, action: Action, args: List[Any], source_id: str) -> None:
        name = action.process
        first = args[0] if args else None
        if name in ("tui.quit", "tui.exit"):
            self.quit_requested = True
        elif name == "tui.refresh":
            self._invalidate()
        elif name == "tui.focus.next":
            self._apply_focus(self.focus.focus_next("action"))
        elif name == "tui.focus.prev":
            self._apply_focus(self.focus.focus_previous("action"))
        elif name == "tui.focus.set":
            if not isinstance(first, str):
                raise ActionError("tui.focus.set expects a component ID")
            self._apply_focus(self.focus.set_focus(first, "action"))
        elif name == "tui.focus.clear":
            self._apply_focus(self.focus.clear_focus("action"))
        elif name == "tui.state.set":
            if not isinstance(first, str) or len(args) < 2:
                raise ActionError("tui.state.set expects a key and a value")
            self._merge({first: args[1]})
        elif name == "tui.state.batch":
            if not isinstance(first, Mapping):
                raise ActionError("tui.state.batch expects a map")
            self._merge(dict(first))
        elif name == "tui.message.targeted":
            if not isinstance(first, str) or len(args) < 2:
                raise ActionError("tui.message.targeted expects a component ID and a message")
            inner = args[1]
            if isinstance(inner, str):
                inner = KeyMsg(key=inner, text=inner if len(inner) == 1 else "")
            self._queue.append(TargetedMsg(first, inner))
        elif name == "tui.event.publish":
            if not isinstance(first, str):
                raise ActionError("tui.event.publish expects an event name")
            payload = args[1] if len(args) > 1 and isinstance(args[1], Mapping) else {}
            self._queue.append(ActionMsg(source_id=source_id, event=first, data=dict(payload)))
        else:
            raise ActionError(f"unknown built-in process: {name}")


__all__ = ["EventDispatcher", "NAVIGATION_KEYS"]
