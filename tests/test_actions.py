"""Tests for action descriptors, bindings and the executor."""

import asyncio

import pydantic
import pytest

from termflex.actions import (
    Action,
    ActionExecutor,
    ComponentBinding,
    ProcessRegistry,
    is_builtin,
    parse_bindings,
    resolve_script,
)
from termflex.events import ProcessResultMsg
from termflex.exceptions import ActionError


class TestAction:
    def test_string_is_process_shorthand(self):
        action = Action.from_dict("tui.quit")
        assert action.process == "tui.quit"
        assert action.kind == "process"
        assert is_builtin(action.process)

    def test_camel_and_snake_keys(self):
        camel = Action.from_dict({"process": "load", "onSuccess": "rows", "onError": "err", "args": "x"})
        snake = Action.from_dict({"process": "load", "on_success": "rows", "on_error": "err", "args": ["x"]})
        assert camel == snake
        assert camel.args == ["x"]

    def test_exactly_one_mode(self):
        with pytest.raises(ActionError, match="must specify one of 'process', 'script' or 'payload'"):
            Action.from_dict({})
        with pytest.raises(ActionError, match="more than one of process, payload"):
            Action.from_dict({"process": "a", "payload": {"x": 1}})
        with pytest.raises(ActionError, match="must also specify 'method'"):
            Action.from_dict({"script": "mod"})
        assert Action(payload={"x": 1}).problems() == []

    def test_constructor_checks_the_same_rules(self):
        with pytest.raises(pydantic.ValidationError):
            Action(script="mod")

    def test_unknown_keys_are_ignored(self):
        assert Action.from_dict({"process": "p", "retries": 3}).to_dict() == {"process": "p"}

    def test_invalid_shapes(self):
        with pytest.raises(ActionError):
            Action.from_dict(42)
        with pytest.raises(ActionError, match="payload"):
            Action.from_dict({"payload": [1]})

    def test_to_dict_skips_empty_fields(self):
        assert Action(process="p", on_success="out").to_dict() == {"process": "p", "onSuccess": "out"}


class TestComponentBinding:
    def test_string_binding_is_action(self):
        binding = ComponentBinding.from_dict("q", "tui.quit")
        assert binding.mode == "action"

    def test_inline_action_map(self):
        binding = ComponentBinding.from_dict("enter", {"process": "save", "description": "Save"})
        assert binding.action.process == "save"
        assert binding.description == "Save"

    def test_event_and_default_modes(self):
        assert ComponentBinding.from_dict("x", {"event": "delete"}).mode == "event"
        assert ComponentBinding.from_dict("x", {"useDefault": True}).mode == "default"
        assert ComponentBinding.from_dict("x", {}).mode == ""

    def test_action_wins_over_event(self):
        binding = ComponentBinding.from_dict("x", {"action": "tui.quit", "event": "ignored"})
        assert binding.mode == "action"

    def test_invalid_binding(self):
        with pytest.raises(ActionError, match="binding for 'x'"):
            ComponentBinding.from_dict("x", 5)
        with pytest.raises(ActionError, match="action"):
            ComponentBinding.from_dict("x", {"action": {"script": "mod"}})

    def test_parse_bindings(self):
        bindings = parse_bindings({"d": {"event": "delete", "enabled": False}})
        assert bindings["d"].key == "d"
        assert bindings["d"].enabled is False


class TestProcessRegistry:
    def test_decorator_registration(self):
        processes = ProcessRegistry()

        @processes.register("todo.load")
        def load():
            return []

        assert processes.get("todo.load") is load
        assert processes.names() == ["todo.load"]

    def test_builtin_prefix_is_reserved(self):
        with pytest.raises(ActionError):
            ProcessRegistry().register("tui.mine", lambda: None)

    def test_unknown_process(self):
        with pytest.raises(ActionError, match="unknown process"):
            ProcessRegistry().get("missing")


class TestResolveScript:
    def test_module_and_method(self):
        assert resolve_script("json", "dumps")([1]) == "[1]"

    def test_colon_reference(self):
        assert resolve_script("os.path:join")("a", "b").endswith("b")

    def test_missing_module_or_attribute(self):
        with pytest.raises(ActionError):
            resolve_script("no_such_module_here", "f")
        with pytest.raises(ActionError):
            resolve_script("json", "no_such_function")


class TestActionExecutor:
    def setup_method(self):
        self.processes = ProcessRegistry()
        self.executor = ActionExecutor(self.processes)

    def test_sync_success(self):
        self.processes.register("add", lambda a, b: a + b)
        command = self.executor.command(Action(process="add", on_success="sum"), [1, 2])
        assert command() == ProcessResultMsg(target="sum", data=3)

    def test_sync_failure_targets_on_error(self):
        def fail():
            raise ValueError("nope")

        self.processes.register("fail", fail)
        result = self.executor.command(Action(process="fail", on_error="err"), [])()
        assert result.target == "err"
        assert isinstance(result.error, ValueError)

    def test_async_process_returns_coroutine(self):
        async def fetch(n):
            await asyncio.sleep(0)
            return {"n": n}

        self.processes.register("fetch", fetch)
        command = self.executor.command(Action(process="fetch"), [5], fallback="__onLoadResult")
        result = asyncio.run(command)
        assert result.data == {"n": 5}
        assert result.fallback == "__onLoadResult"

    def test_unresolvable_action_fails_when_run(self):
        command = self.executor.command(Action(process="missing", on_error="err"), [])
        result = command()
        assert result.target == "err"
        assert isinstance(result.error, ActionError)

    def test_script_action(self):
        command = self.executor.command(Action(script="json", method="dumps", on_success="out"), [{"a": 1}])
        assert command().data == '{"a": 1}'
