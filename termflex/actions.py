# termflex/actions.py
"""
Declarative actions and the executor that turns them into deferred work.

An ``Action`` is exactly one of:

- ``process`` + ``args``: a named process. ``tui.*`` names are handled by
  the dispatcher inside the loop; anything else is a Python callable
  registered on a ``ProcessRegistry``.
- ``script`` + ``method``: a function looked up with ``importlib``.
- ``payload``: a literal map merged into state.

Process and script actions never run on the main loop. The executor wraps
them in a command whose completion is a ``ProcessResultMsg`` carrying the
result for ``onSuccess`` or the error for ``onError``.
"""

import importlib
import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .base import Command
from .events import ProcessResultMsg
from .exceptions import ActionError, summarize_pydantic

logger = logging.getLogger(__name__)

BUILTIN_PREFIX = "tui."

BUILTIN_PROCESSES = (
    "tui.quit",
    "tui.exit",
    "tui.refresh",
    "tui.focus.next",
    "tui.focus.prev",
    "tui.focus.set",
    "tui.focus.clear",
    "tui.state.set",
    "tui.state.batch",
    "tui.message.targeted",
    "tui.event.publish",
)


def is_builtin(process: str) -> bool:
    return process.startswith(BUILTIN_PREFIX)


def _text(value: Any) -> Any:
    return "" if value is None else value


class Action(BaseModel):
    """
    A declared action. Validation enforces the one-of rule, so every
    instance is runnable as far as its shape goes.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    process: str = ""
    script: str = ""
    method: str = ""
    args: List[Any] = Field(default_factory=list)
    on_success: str = Field("", alias="onSuccess")
    on_error: str = Field("", alias="onError")
    payload: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _shorthand(cls, data: Any) -> Any:
        # a bare string names a process
        if isinstance(data, str):
            return {"process": data}
        return data

    @field_validator("process", "script", "method", "on_success", "on_error", mode="before")
    @classmethod
    def _blank(cls, value: Any) -> Any:
        return _text(value)

    @field_validator("args", mode="before")
    @classmethod
    def _args(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return list(value)
        return [value]

    @field_validator("payload", mode="before")
    @classmethod
    def _payload(cls, value: Any) -> Any:
        return {} if value is None else value

    @model_validator(mode="after")
    def _one_mode(self) -> "Action":
        issues = self.problems()
        if issues:
            raise ValueError("; ".join(issues))
        return self

    @classmethod
    def from_dict(cls, data: Any) -> "Action":
        """
        Build an action from its declared form. A bare string is shorthand
        for a process name.

        :raises ActionError: when the declaration is not a valid action.
        """
        if isinstance(data, Action):
            return data
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as e:
            raise ActionError(summarize_pydantic(e)) from e

    @property
    def kind(self) -> str:
        if self.process:
            return "process"
        if self.script:
            return "script"
        if self.payload:
            return "payload"
        return ""

    def problems(self) -> List[str]:
        """Structural problems, empty when the action is usable."""
        modes = [name for name in ("process", "script", "payload") if getattr(self, name)]
        if not modes:
            return ["action must specify one of 'process', 'script' or 'payload'"]
        issues = []
        if len(modes) > 1:
            issues.append(f"action specifies more than one of {', '.join(modes)}")
        if self.script and not self.method:
            issues.append("action with 'script' must also specify 'method'")
        return issues

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_defaults=True)


class ComponentBinding(BaseModel):
    """
    What a key or component event does.

    Priority when more than one is set: ``action`` > ``event`` >
    ``use_default``.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    key: str = ""
    action: Optional[Action] = None
    event: str = ""
    use_default: bool = Field(False, alias="useDefault")
    enabled: bool = True
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"action": data}
        if isinstance(data, Mapping) and any(name in data for name in ("process", "script", "payload")):
            # the binding is itself an action
            return {"action": dict(data), "description": data.get("description")}
        return data

    @field_validator("key", "event", "description", mode="before")
    @classmethod
    def _blank(cls, value: Any) -> Any:
        return _text(value)

    @field_validator("action", mode="before")
    @classmethod
    def _no_action(cls, value: Any) -> Any:
        return value or None

    @classmethod
    def from_dict(cls, key: str, data: Any) -> "ComponentBinding":
        """:raises ActionError: when the declaration is not a valid binding."""
        if isinstance(data, ComponentBinding):
            return data
        try:
            binding = cls.model_validate(data)
        except pydantic.ValidationError as e:
            raise ActionError(f"binding for {key!r}: {summarize_pydantic(e)}") from e
        binding.key = binding.key or key
        return binding

    @property
    def mode(self) -> str:
        if self.action is not None:
            return "action"
        if self.event:
            return "event"
        if self.use_default:
            return "default"
        return ""


def parse_bindings(data: Optional[Mapping[str, Any]]) -> Dict[str, ComponentBinding]:
    return {str(key): ComponentBinding.from_dict(str(key), value) for key, value in (data or {}).items()}


class ProcessRegistry:
    """Named Python callables available as ``process`` actions."""

    def __init__(self):
        self._processes: Dict[str, Callable[..., Any]] = {}

    def register(self, name: str, func: Optional[Callable[..., Any]] = None):
        """
        Register ``func`` under ``name``. Without ``func`` returns a decorator::

            @processes.register("todo.load")
            def load():
                ...
        """
        if is_builtin(name):
            raise ActionError(f"process names starting with {BUILTIN_PREFIX!r} are reserved: {name}")

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self._processes[name] = fn
            return fn

        if func is None:
            return decorator
        return decorator(func)

    def unregister(self, name: str) -> None:
        self._processes.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._processes

    def get(self, name: str) -> Callable[..., Any]:
        try:
            return self._processes[name]
        except KeyError:
            raise ActionError(f"unknown process: {name}") from None

    def names(self) -> List[str]:
        return sorted(self._processes)


def resolve_script(script: str, method: str = "") -> Callable[..., Any]:
    """
    Import ``script`` and return its ``method``. ``module:function`` is
    accepted as a single reference.
    """
    module_name, _, attr = script.partition(":")
    attr = method or attr
    if not attr:
        raise ActionError(f"script {script!r} has no method")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ActionError(f"cannot import script {module_name!r}: {e}") from e
    func = getattr(module, attr, None)
    if not callable(func):
        raise ActionError(f"script {module_name!r} has no callable {attr!r}")
    return func


class ActionExecutor:
    """
    Builds deferred commands for process and script actions.

    :param processes: Registry consulted for process names.
    """

    def __init__(self, processes: Optional[ProcessRegistry] = None):
        self.processes = processes or ProcessRegistry()

    def resolve(self, action: Action) -> Callable[..., Any]:
        if action.process:
            return self.processes.get(action.process)
        if action.script:
            return resolve_script(action.script, action.method)
        raise ActionError("action has no process or script")

    def command(self, action: Action, args: List[Any], fallback: str = "") -> Command:
        """
        Wrap the action in a command. Coroutine functions produce a
        coroutine, plain callables a function for a worker thread. Both
        complete with a ``ProcessResultMsg`` and never raise.
        """
        name = action.process or f"{action.script}.{action.method}"
        try:
            func = self.resolve(action)
        except ActionError as e:
            logger.error("Action %s cannot run: %s", name, e)
            error = e

            def failed() -> ProcessResultMsg:
                return ProcessResultMsg(target=action.on_error, error=error)

            return failed

        if inspect.iscoroutinefunction(func):
            async def run_async() -> ProcessResultMsg:
                try:
                    result = await func(*args)
                except Exception as e:
                    logger.error("Action %s failed: %s", name, e)
                    return ProcessResultMsg(target=action.on_error, error=e)
                return ProcessResultMsg(target=action.on_success, data=result, fallback=fallback)

            return run_async()

        def run() -> ProcessResultMsg:
            try:
                result = func(*args)
            except Exception as e:
                logger.error("Action %s failed: %s", name, e)
                return ProcessResultMsg(target=action.on_error, error=e)
            return ProcessResultMsg(target=action.on_success, data=result, fallback=fallback)

        return run


__all__ = [
    "Action",
    "ComponentBinding",
    "ProcessRegistry",
    "ActionExecutor",
    "BUILTIN_PROCESSES",
    "is_builtin",
    "parse_bindings",
    "resolve_script",
]
