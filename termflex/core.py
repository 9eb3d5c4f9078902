# termflex/core.py
"""
The application runtime: init -> update -> view over one message queue.

``Application`` owns every per-application object (state store, component
registry, layout engine, focus, dispatcher). Messages are processed one at
a time; deferred work runs as asyncio tasks (coroutines) or in the default
executor (plain callables) and its completion messages are put back on the
queue in completion order.
"""

import asyncio
import inspect
import logging
import threading
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set, Union

import click
from rich.console import Console
from rich.live import Live

from .actions import ActionExecutor, ProcessRegistry
from .base import Command, RenderConfig
from .compositor import Canvas, composite
from .dispatcher import EventDispatcher
from .dsl import AppConfig, build_layout_tree, load_file, validate_config
from .events import (
    FocusFirstMsg,
    ResizeMsg,
    StateBatchUpdateMsg,
    StateUpdateMsg,
    decode_key,
)
from .exceptions import ComponentError
from .expressions import ExpressionCache
from .focus import FocusNavigator
from .layout import LayoutEngine
from .node import LayoutBox, LayoutNode, LayoutResult
from .props import PropsResolver
from .registry import ComponentCatalog, ComponentInstanceRegistry
from .config import Settings
from .state import ON_LOAD_RESULT_KEY, StateStore, prepare_initial_state
from .subscriptions import MessageSubscriptionManager
from .widgets import default_catalog, error_component, unknown_component

logger = logging.getLogger(__name__)

Renderer = Callable[[Canvas], None]

# ends the main loop
_STOP = object()


class Application:
    """
    A running declarative terminal application.

    :param config: Loaded application description.
    :param catalog: Component types; the built-in widgets by default.
    :param settings: Runtime settings.
    :param external_data: Caller supplied data, merged over ``config.data``.
    :param processes: Python callables available to ``process`` actions.
    """

    def __init__(
        self,
        config: AppConfig,
        catalog: Optional[ComponentCatalog] = None,
        settings: Optional[Settings] = None,
        external_data: Optional[Dict[str, Any]] = None,
        processes: Optional[ProcessRegistry] = None,
    ):
        self.config = config
        self.catalog = catalog if catalog is not None else default_catalog()
        self.settings = settings if settings is not None else Settings()
        self.external_data = dict(external_data or {})
        self.processes = processes if processes is not None else ProcessRegistry()

        self.store = StateStore()
        self.resolver = PropsResolver(ExpressionCache(
            max_size=int(self.settings.get_nested("expression_cache.max_size", 1024)),
            ttl_seconds=float(self.settings.get_nested("expression_cache.ttl", 300)),
        ))
        self.registry = ComponentInstanceRegistry()
        self.subscriptions = MessageSubscriptionManager()
        self.focus = FocusNavigator(cycles=config.tab_cycles)
        self.layout = LayoutEngine(
            width=int(self.settings.get("default_width") or 0),
            height=int(self.settings.get("default_height") or 0),
            measure=self._measure,
        )
        self.dispatcher = EventDispatcher(
            registry=self.registry,
            store=self.store,
            resolver=self.resolver,
            focus=self.focus,
            subscriptions=self.subscriptions,
            layout=self.layout,
            executor=ActionExecutor(self.processes),
            bindings=config.bindings,
            navigation_mode=config.navigation_mode,
        )

        self.initialized = False
        self._frame: Optional[Canvas] = None
        self._frame_dirty = True

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._running = False
        self._pending: List[Any] = []
        self._pending_lock = threading.Lock()
        self._tasks: Set[asyncio.Future] = set()

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> "Application":
        return cls(load_file(path), **kwargs)

    # --- init ---

    def initialize(self) -> List[Command]:
        """
        Validate, seed state, build the tree and create every component.

        :raises ValidationError: when the configuration has errors.
        :return: Deferred commands from component ``init`` and ``onLoad``.
        """
        if self.initialized:
            return []
        validate_config(self.config, self.catalog, strict=True)

        self.store.batch_set(prepare_initial_state(
            self.config.data,
            self.external_data,
            self.settings.get("defaults") or {},
        ))
        self.layout.set_root(build_layout_tree(self.config.layout))

        commands = self._sync_components(None)
        result = self.layout.layout()
        commands.extend(self._sync_components(result))
        self.focus.update_order(self._focusable_ids(), result)
        self.initialized = True
        logger.info(
            "Initialized %r: %d components, focus order %s",
            self.config.name, len(self.registry), self.focus.focusable_ids,
        )

        if self.config.on_load is not None:
            commands.extend(self.dispatcher.run_action(self.config.on_load, fallback=ON_LOAD_RESULT_KEY))
        if self.config.auto_focus:
            commands.extend(self.dispatcher.dispatch(FocusFirstMsg()))
        return commands

    def _factory_for(self, type_name: str):
        if not self.catalog.has(type_name):
            logger.warning("Unknown component type %r, rendering a placeholder", type_name)
            return unknown_component(type_name)

        def factory(config: RenderConfig, component_id: str):
            return self.catalog.create(type_name, config, component_id)

        return factory

    def _sync_components(self, result: Optional[LayoutResult]) -> List[Command]:
        """
        Resolve props for every component node and create or reconfigure
        its instance at the size ``result`` allocated.
        """
        commands: List[Command] = []
        root = self.layout.root
        if root is None:
            return commands
        seen = set()
        for node in root.walk():
            if not node.is_component:
                continue
            seen.add(node.id)
            box = result.find_box(node.id) if result is not None else None
            config = RenderConfig(
                data=self.resolver.resolve_props(node.id, node.props, self.store, node.bind),
                width=box.w if box is not None else 0,
                height=box.h if box is not None else 0,
            )
            try:
                entry, created = self.registry.get_or_create(
                    node.id, node.component_type, self._factory_for(node.component_type), config,
                )
            except ComponentError as e:
                logger.error("Cannot create component %s: %s", node.id, e)
                entry, created = self.registry.get_or_create(
                    node.id, node.component_type, error_component(node.component_type, e.reason), config,
                )
            if created:
                commands.extend(self._start_component(node, entry.instance))

        for stale in [cid for cid in self.registry.ids() if cid not in seen]:
            self.subscriptions.unsubscribe(stale)
            self.registry.remove(stale)
        return commands

    def _start_component(self, node: LayoutNode, instance: Any) -> List[Command]:
        self.subscriptions.subscribe(node.id, instance.get_subscribed_message_types())
        try:
            command = instance.init()
        except Exception:
            logger.exception("Component %s failed to initialize", node.id)
            return []
        return [command] if command is not None else []

    def _is_focusable(self, node: LayoutNode) -> bool:
        if self.catalog.is_focusable(node.component_type):
            return True
        entry = self.registry.get(node.id)
        return entry is not None and bool(getattr(entry.instance, "focusable", False))

    def _focusable_ids(self) -> List[str]:
        root = self.layout.root
        if root is None:
            return []
        return [node.id for node in root.walk() if node.is_component and self._is_focusable(node)]

    def _measure(self, node: LayoutNode, max_width: int, max_height: int):
        entry = self.registry.get(node.id)
        if entry is None:
            return None
        return entry.instance.measure(max_width, max_height)

    # --- update ---

    def update(self, msg: Any) -> List[Command]:
        """Process one message; returns the deferred commands it produced."""
        if not self.initialized:
            self.initialize()
        self._frame_dirty = True
        return self.dispatcher.dispatch(msg)

    @property
    def quit_requested(self) -> bool:
        return self.dispatcher.quit_requested

    # --- view ---

    def render_frame(self) -> Canvas:
        """
        Lay out and composite the current frame. The previous frame is
        returned as-is when no message, state change or layout change
        happened since it was made.
        """
        if not self.initialized:
            self.initialize()
        if (
            self._frame is not None
            and not self._frame_dirty
            and not self.dispatcher.needs_render
            and not self.layout.is_dirty()
        ):
            return self._frame

        commands = self._sync_components(self.layout.last_result)
        result = self.layout.layout()
        if result.dirty:
            commands.extend(self._sync_components(result))
            self.focus.update_order(self._focusable_ids(), result)
        for command in commands:
            self._schedule(command)

        self._frame = composite(result, self._render_box, result.root_width, result.root_height)
        self._frame_dirty = False
        self.dispatcher.needs_render = False
        return self._frame

    def view(self) -> str:
        return str(self.render_frame())

    def _render_box(self, box: LayoutBox):
        entry = self.registry.get(box.node_id)
        if entry is None:
            return None
        try:
            return entry.instance.view(box.w, box.h)
        except Exception as e:
            logger.exception("Component %s (%s) failed to render", entry.id, entry.type)
            return f"[error: {entry.type} {entry.id}: {e}]"

    def render_to_console(self, console: Optional[Console] = None) -> None:
        """Print one frame, for non-interactive use."""
        (console or Console()).print(self.render_frame().to_text())

    # --- messages from outside the loop ---

    def send(self, msg: Any) -> None:
        """Enqueue a message. Safe to call from any thread."""
        loop = self._loop
        if loop is not None and self._running and not loop.is_closed():
            loop.call_soon_threadsafe(self._put, msg)
        else:
            with self._pending_lock:
                self._pending.append(msg)

    def set_state(self, key: str, value: Any) -> None:
        self.send(StateUpdateMsg(key, value))

    def update_state(self, updates: Dict[str, Any]) -> None:
        self.send(StateBatchUpdateMsg(dict(updates)))

    def stop(self) -> None:
        """End ``run`` after the message being processed."""
        loop = self._loop
        if loop is not None and self._running and not loop.is_closed():
            loop.call_soon_threadsafe(self._put, _STOP)
        self._running = False

    def _put(self, msg: Any) -> None:
        if self._queue is not None:
            self._queue.put_nowait(msg)

    # --- deferred work ---

    def _schedule(self, command: Command) -> None:
        loop = self._loop
        if loop is None or not self._running:
            # outside of ``run`` there is nothing to deliver completions to
            with self._pending_lock:
                self._pending.append(command)
            return
        if inspect.isawaitable(command):
            task = asyncio.ensure_future(self._await(command))
        elif callable(command):
            task = asyncio.ensure_future(self._call(command))
        else:
            logger.warning("Ignoring command of type %s", type(command).__name__)
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _await(self, awaitable) -> None:
        try:
            result = await awaitable
        except Exception:
            logger.exception("Deferred command failed")
            return
        self._complete(result)

    async def _call(self, func: Callable[[], Any]) -> None:
        try:
            result = await self._loop.run_in_executor(None, func)
        except Exception:
            logger.exception("Deferred command failed")
            return
        self._complete(result)

    def _complete(self, result: Any) -> None:
        if not self._running:
            logger.debug("Dropping completion %r, loop has stopped", type(result).__name__)
            return
        if result is None:
            return
        for msg in result if isinstance(result, list) else [result]:
            self._put(msg)

    # --- main loop ---

    async def run(
        self,
        input_source: Optional[AsyncIterator[Any]] = None,
        renderer: Optional[Renderer] = None,
        stop_event: Optional[asyncio.Event] = None,
        frame_interval: Optional[float] = None,
    ) -> None:
        """
        Run until quit, ``stop()`` or ``stop_event``.

        :param input_source: Async iterator of input messages.
        :param renderer: Called with each new frame.
        :param stop_event: External cancellation signal.
        :param frame_interval: Minimum seconds between two frames.
        """
        if frame_interval is None:
            frame_interval = float(self.settings.get("frame_interval") or 0)
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._running = True
        self.dispatcher.quit_requested = False

        helpers: List[asyncio.Future] = []
        try:
            commands = self.initialize()
            with self._pending_lock:
                pending, self._pending = self._pending, []
            for item in pending:
                if inspect.isawaitable(item) or callable(item):
                    self._schedule(item)
                else:
                    self._put(item)
            for command in commands:
                self._schedule(command)

            if input_source is not None:
                helpers.append(asyncio.ensure_future(self._pump(input_source)))
            if stop_event is not None:
                helpers.append(asyncio.ensure_future(self._watch(stop_event)))

            last_render = 0.0
            render_pending = True
            while self._running:
                timeout = None
                if render_pending:
                    timeout = max(0.0, last_render + frame_interval - self._loop.time())
                    if timeout == 0.0:
                        self._draw(renderer)
                        last_render = self._loop.time()
                        render_pending = False
                        timeout = None
                try:
                    if timeout is None:
                        msg = await self._queue.get()
                    else:
                        msg = await asyncio.wait_for(self._queue.get(), timeout)
                except asyncio.TimeoutError:
                    continue
                if msg is _STOP:
                    break
                for command in self.update(msg):
                    self._schedule(command)
                if self.quit_requested:
                    break
                render_pending = True
        finally:
            self._running = False
            for helper in helpers:
                helper.cancel()
            self.registry.clear()
            self.subscriptions.clear()
            logger.info("Application %r stopped", self.config.name)

    def _draw(self, renderer: Optional[Renderer]) -> None:
        frame = self.render_frame()
        if renderer is not None:
            try:
                renderer(frame)
            except Exception:
                logger.exception("Renderer failed")

    async def _pump(self, source: AsyncIterator[Any]) -> None:
        async for msg in source:
            if msg is not None:
                self._put(msg)

    async def _watch(self, stop_event: asyncio.Event) -> None:
        await stop_event.wait()
        self._put(_STOP)


# --- terminal driver ---


READER_JOIN_TIMEOUT = 0.2


def _read_keys(app: Application, stop: threading.Event) -> None:
    """Blocking key reader, run on a daemon thread."""
    while not stop.is_set():
        try:
            sequence = click.getchar()
        except KeyboardInterrupt:
            sequence = "\x03"
        except EOFError:
            return
        if stop.is_set():
            # read after quit; the loop is gone
            return
        app.send(decode_key(sequence))


async def _poll_size(app: Application, console: Console, interval: float) -> None:
    width, height = console.size
    while True:
        await asyncio.sleep(interval)
        size = console.size
        if (size.width, size.height) != (width, height):
            width, height = size.width, size.height
            app.send(ResizeMsg(width, height))


async def run_terminal(app: Application, console: Optional[Console] = None) -> None:
    """
    Run ``app`` full-screen on the terminal: rich draws the frames, a
    thread reads keys and a task polls the window size.
    """
    console = console or Console()
    width, height = console.size
    app.send(ResizeMsg(width, height))
    interval = float(app.settings.get("resize_poll_interval") or 0.25)

    stop = threading.Event()
    reader = threading.Thread(target=_read_keys, args=(app, stop), name="termflex-keys", daemon=True)

    with Live(console=console, screen=True, auto_refresh=False, transient=True) as live:

        def draw(frame: Canvas) -> None:
            live.update(frame.to_text(), refresh=True)

        reader.start()
        poller = asyncio.ensure_future(_poll_size(app, console, interval))
        try:
            await app.run(renderer=draw)
        finally:
            stop.set()
            poller.cancel()
            reader.join(timeout=READER_JOIN_TIMEOUT)
            if reader.is_alive():
                logger.debug("Key reader is blocked on input; it ends with the process")


__all__ = ["Application", "run_terminal", "Renderer"]
