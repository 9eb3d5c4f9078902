"""Tests for template expressions and props resolution."""

import pytest

from termflex.exceptions import ExpressionError
from termflex.expressions import ExpressionCache, compile_expression, to_python_source
from termflex.props import BIND_DATA_KEY, PropsCache, PropsResolver, stringify
from termflex.state import StateStore


def evaluate(source, **state):
    return compile_expression(source).evaluate(state)


class TestExpressions:
    def test_arithmetic_and_comparison(self):
        assert evaluate("count + 1", count=41) == 42
        assert evaluate("count * 2 >= 10", count=5) is True

    def test_logical_operators_and_words(self):
        assert evaluate("a && !b", a=True, b=False) is True
        assert evaluate("a || b", a=False, b="x") == "x"
        assert evaluate("x == nil", x=None) is True
        assert evaluate("true && false") is False

    def test_conditional(self):
        assert evaluate("n > 0 ? 'some' : 'none'", n=3) == "some"
        assert evaluate("n > 0 ? 'some' : n < 0 ? 'neg' : 'none'", n=-1) == "neg"

    def test_member_and_index_access(self):
        state = {"user": {"name": "ada"}, "items": ["a", "b"]}
        assert compile_expression("user.name").evaluate(state) == "ada"
        assert compile_expression("items[1]").evaluate(state) == "b"
        assert compile_expression("items.0").evaluate(state) == "a"
        assert compile_expression("items[9]").evaluate(state) is None

    def test_state_root(self):
        assert evaluate("$['my-key']", **{"my-key": 7}) == 7

    def test_undefined_variable_is_nil(self):
        assert evaluate("missing") is None
        assert evaluate("missing.field") is None

    def test_functions(self):
        assert evaluate("len(items)", items=[1, 2, 3]) == 3
        assert evaluate("len(nothing)") == 0
        assert evaluate("Empty(items)", items=[]) is True
        assert evaluate("NotNil(x)", x=0) is True
        assert evaluate("index(m, 'k')", m={"k": "v"}) == "v"
        assert evaluate("True('true')") is True

    def test_rewrite(self):
        assert to_python_source("a && b") == "a and b"

    @pytest.mark.parametrize("source", [
        "__import__('os')",
        "open('x')",
        "x.__class__",
        "lambda: 1",
        "a = 1",
        "(1",
    ])
    def test_rejects_unsafe_or_broken_source(self, source):
        with pytest.raises(ExpressionError):
            compile_expression(source)

    def test_runtime_errors_are_expression_errors(self):
        with pytest.raises(ExpressionError):
            evaluate("'a' + 1")
        with pytest.raises(ExpressionError):
            evaluate("2 ** 1000")


class TestExpressionCache:
    def test_compiled_once_evaluated_per_state(self):
        cache = ExpressionCache(max_size=8)
        assert cache.evaluate("n + 1", {"n": 1}) == 2
        assert cache.evaluate("n + 1", {"n": 2}) == 3
        assert len(cache) == 1
        stats = cache.stats()
        assert stats.hits == 1 and stats.misses == 1


class TestStringify:
    @pytest.mark.parametrize("value, expected", [
        (None, ""),
        (True, "true"),
        (False, "false"),
        (42, "42"),
        ({"a": 1}, '{"a": 1}'),
        ([1, "x"], '[1, "x"]'),
    ])
    def test_forms(self, value, expected):
        assert stringify(value) == expected


class TestPropsResolver:
    def setup_method(self):
        self.resolver = PropsResolver()

    def test_whole_expression_keeps_type(self):
        assert self.resolver.resolve({"n": "{{count}}"}, {"count": 42}) == {"n": 42}

    def test_whitespace_around_whole_expression(self):
        assert self.resolver.resolve({"n": "  {{ count }} "}, {"count": 42}) == {"n": 42}

    def test_mixed_text_interpolates(self):
        assert self.resolver.resolve({"t": "n={{count}}"}, {"count": 42}) == {"t": "n=42"}

    def test_multiple_spans(self):
        resolved = self.resolver.resolve({"t": "{{a}}/{{b}} done={{ok}}"}, {"a": 1, "b": 2, "ok": True})
        assert resolved == {"t": "1/2 done=true"}

    def test_nested_structures(self):
        props = {"items": ["{{a}}", {"label": "x{{b}}"}], "plain": 3}
        resolved = self.resolver.resolve(props, {"a": 1, "b": 2})
        assert resolved == {"items": [1, {"label": "x2"}], "plain": 3}

    def test_failing_expression_keeps_literal(self):
        assert self.resolver.resolve({"t": "{{ 1 + }}"}, {}) == {"t": "{{ 1 + }}"}
        assert self.resolver.resolve({"t": "x {{ (1 }} y"}, {}) == {"t": "x {{ (1 }} y"}

    def test_missing_value_interpolates_empty(self):
        assert self.resolver.resolve({"t": "[{{missing}}]"}, {}) == {"t": "[]"}

    def test_dotted_flat_key(self):
        state = {"features.0": "fast"}
        assert self.resolver.resolve({"f": "{{features.0}}"}, state) == {"f": "fast"}

    def test_bind_injects_state_value(self):
        resolved = self.resolver.resolve({}, {"items": [1, 2]}, bind="items")
        assert resolved == {BIND_DATA_KEY: [1, 2]}

    def test_bind_walks_nested_path(self):
        resolved = self.resolver.resolve({}, {"data": {"rows": [1]}}, bind="data.rows")
        assert resolved[BIND_DATA_KEY] == [1]

    def test_resolve_props_is_cached_per_version(self, monkeypatch):
        store = StateStore({"count": 1})
        first = self.resolver.resolve_props("c", {"n": "{{count}}"}, store)
        calls = []
        resolve = self.resolver.resolve

        def counting(*args, **kwargs):
            calls.append(args)
            return resolve(*args, **kwargs)

        monkeypatch.setattr(self.resolver, "resolve", counting)
        assert self.resolver.resolve_props("c", {"n": "{{count}}"}, store) == first
        assert calls == []
        store.set("count", 2)
        assert self.resolver.resolve_props("c", {"n": "{{count}}"}, store) == {"n": 2}
        assert len(calls) == 1

    def test_cached_props_are_not_shared_with_callers(self):
        store = StateStore({"count": 1})
        first = self.resolver.resolve_props("c", {"n": "{{count}}"}, store)
        first["n"] = "edited"
        second = self.resolver.resolve_props("c", {"n": "{{count}}"}, store)
        assert second == {"n": 1}
        second["extra"] = True
        assert self.resolver.resolve_props("c", {"n": "{{count}}"}, store) == {"n": 1}

    def test_changed_props_bypass_cache(self):
        store = StateStore({"count": 1})
        self.resolver.resolve_props("c", {"n": "{{count}}"}, store)
        assert self.resolver.resolve_props("c", {"n": "{{count + 1}}"}, store) == {"n": 2}

    def test_invalidate(self):
        cache = PropsCache()
        cache.set("a", {}, None, 1, {"x": 1})
        cache.set("b", {}, None, 1, {"x": 2})
        assert cache.get("a", {}, None, 1) == {"x": 1}
        assert cache.get("a", {}, "bound", 1) is None
        cache.invalidate("a")
        assert cache.get("a", {}, None, 1) is None
        assert len(cache) == 1
