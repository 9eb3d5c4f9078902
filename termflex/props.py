# termflex/props.py
"""
Props resolution: declared component properties + state -> concrete values.

- A value that is exactly one ``{{ ... }}`` span evaluates to the typed
  result, so ``"{{count}}"`` with ``count = 42`` yields the number 42.
- A string mixing literal text with expressions interpolates each
  expression's string form and keeps the literal segments verbatim.
- Maps and lists are resolved recursively.
- A failing expression degrades to its original literal text.
- A node's ``bind`` key injects the bound state value under ``__bind_data``.

Resolved maps are memoized per component ID keyed by the declared props
and the state version; either one changing forces a fresh resolution.
"""

import json
import logging
import threading
from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple

from .base import values_equal
from .exceptions import ExpressionError
from .expressions import STATEMENT_RE, ExpressionCache
from .state import StateStore

logger = logging.getLogger(__name__)

BIND_DATA_KEY = "__bind_data"


def stringify(value: Any) -> str:
    """String form used when interpolating an expression into literal text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str, ensure_ascii=False)
    return str(value)


class PropsCache:
    """
    Per-component memo of resolved props.

    Written by the main loop and cleared by completions of deferred work,
    so access is locked. Entries are shallow copies both ways, so a
    component that edits its props cannot change what the next lookup sees.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._entries: Dict[str, Tuple[Any, Optional[str], int, Dict[str, Any]]] = {}

    def get(self, component_id: str, props: Any, bind: Optional[str], version: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(component_id)
            if entry is None:
                return None
            cached_props, cached_bind, cached_version, resolved = entry
            if cached_version != version or cached_bind != bind or not values_equal(cached_props, props):
                return None
            return dict(resolved)

    def set(self, component_id: str, props: Any, bind: Optional[str], version: int, resolved: Dict[str, Any]) -> None:
        with self._lock:
            if isinstance(props, Mapping):
                props = dict(props)
            self._entries[component_id] = (props, bind, version, dict(resolved))

    def invalidate(self, component_id: str) -> None:
        with self._lock:
            self._entries.pop(component_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class PropsResolver:
    """
    Evaluates template expressions in declared props against state.

    :param expressions: Compiled-expression cache, shared across components.
    :param cache: Resolved-props cache.
    """

    def __init__(self, expressions: Optional[ExpressionCache] = None, cache: Optional[PropsCache] = None):
        self.expressions = expressions or ExpressionCache()
        self.cache = cache or PropsCache()

    def evaluate(self, expression: str, state: Mapping) -> Any:
        """
        Evaluate one expression body (without braces).

        A dotted expression that names an existing flattened key, such as
        ``features.0``, is read directly.

        :raises ExpressionError: when the expression cannot be evaluated.
        """
        expression = expression.strip()
        if not expression:
            raise ExpressionError(expression, "empty expression")
        if "." in expression and expression in state:
            return state[expression]
        return self.expressions.evaluate(expression, state)

    def resolve_string(self, text: str, state: Mapping) -> Any:
        matches = list(STATEMENT_RE.finditer(text))
        if not matches:
            return text

        stripped = text.strip()
        if len(matches) == 1 and matches[0].group(0) == stripped:
            try:
                return self.evaluate(matches[0].group(1), state)
            except ExpressionError as e:
                logger.debug("Falling back to literal %r: %s", text, e)
                return text

        parts = []
        last = 0
        for match in matches:
            parts.append(text[last:match.start()])
            try:
                parts.append(stringify(self.evaluate(match.group(1), state)))
            except ExpressionError as e:
                logger.debug("Falling back to literal %r: %s", match.group(0), e)
                parts.append(match.group(0))
            last = match.end()
        parts.append(text[last:])
        return "".join(parts)

    def resolve_value(self, value: Any, state: Mapping) -> Any:
        if isinstance(value, str):
            return self.resolve_string(value, state)
        if isinstance(value, Mapping):
            return {k: self.resolve_value(v, state) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.resolve_value(v, state) for v in value]
        return value

    def resolve(self, props: Optional[Mapping], state: Mapping, bind: Optional[str] = None) -> Dict[str, Any]:
        """Resolve a property map against a state snapshot without caching."""
        resolved = {k: self.resolve_value(v, state) for k, v in (props or {}).items()}
        if bind:
            if bind in state:
                resolved[BIND_DATA_KEY] = state[bind]
            else:
                resolved[BIND_DATA_KEY] = _lookup_path(state, bind)
        return resolved

    def resolve_props(
        self,
        component_id: str,
        props: Optional[Mapping],
        store: StateStore,
        bind: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Resolve a component's props, reusing the cached map when neither props nor state changed."""
        version = store.version
        cached = self.cache.get(component_id, props, bind, version)
        if cached is not None:
            return cached
        resolved = self.resolve(props, store.snapshot(), bind)
        self.cache.set(component_id, props, bind, version, resolved)
        return resolved

    def invalidate(self, component_id: Optional[str] = None) -> None:
        if component_id is None:
            self.cache.clear()
        else:
            self.cache.invalidate(component_id)


def _lookup_path(state: Mapping, path: str) -> Any:
    current: Any = state
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None
    return current


__all__ = ["BIND_DATA_KEY", "PropsCache", "PropsResolver", "stringify"]
