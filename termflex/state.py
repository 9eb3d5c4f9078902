# termflex/state.py
"""
Reactive state store.

State is a single mapping from key to value. Nested maps and lists are
additionally flattened into dot-notation keys when they are written, so
``{"user": {"name": "x"}}`` is readable both as ``state["user"]`` (whole
object hand-off to a widget) and ``state["user.name"]`` (scalar template
interpolation).

The store is shared with deferred work completing off the main loop, so
every access holds a short re-entrant lock and never performs I/O under it.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .base import values_equal

logger = logging.getLogger(__name__)

_MISSING = object()

ON_LOAD_RESULT_KEY = "__onLoadResult"
ERROR_KEY = "__error"


def _flatten_into(value: Any, prefix: str, out: Dict[str, Any]) -> None:
    if isinstance(value, Mapping):
        items: Iterable[Tuple[Any, Any]] = value.items()
    elif isinstance(value, (list, tuple)):
        items = enumerate(value)
    else:
        return
    for key, child in items:
        dotted = f"{prefix}.{key}"
        out[dotted] = child
        _flatten_into(child, dotted, out)


def flatten_data(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Return a copy of ``data`` with dot keys added for every nested map
    entry and list item. Original nested values are kept, so flattening an
    already-flat map returns it unchanged.
    """
    if not data:
        return dict(data or {})
    result = dict(data)
    for key, value in data.items():
        _flatten_into(value, str(key), result)
    return result


def merge_data(
    existing: Optional[Mapping[str, Any]],
    external: Optional[Mapping[str, Any]],
    priority_higher: bool = True,
) -> Dict[str, Any]:
    """
    Merge ``external`` into a copy of ``existing``.

    :param priority_higher: When True external values override existing
                            ones, otherwise external only adds new keys.
    """
    merged = dict(existing or {})
    for key, value in (external or {}).items():
        if priority_higher or key not in merged:
            merged[key] = value
    return merged


def prepare_initial_state(
    static: Optional[Mapping[str, Any]] = None,
    external: Optional[Mapping[str, Any]] = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Seed data for the store: external data over static declared data over
    packaged defaults, then flattened.
    """
    merged = merge_data(defaults, static, priority_higher=True)
    merged = merge_data(merged, external, priority_higher=True)
    return flatten_data(merged)


class StateStore:
    """
    Thread-safe key/value state.

    ``version`` increases on every write that actually changes a value and
    stands in for a snapshot identity in the props cache.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._lock = threading.RLock()
        self._data: Dict[str, Any] = flatten_data(initial)
        self._version = 0
        self._listeners: List[Callable[[List[str]], None]] = []

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a value. A dotted key missing from the flat map is resolved by
        walking nested maps and lists.
        """
        with self._lock:
            value = self._data.get(key, _MISSING)
            if value is not _MISSING:
                return value
            if "." not in key:
                return default
            parts = key.split(".")
            current = self._data.get(parts[0], _MISSING)
            for part in parts[1:]:
                if isinstance(current, Mapping):
                    current = current.get(part, _MISSING)
                elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
                    current = current[int(part)]
                else:
                    return default
                if current is _MISSING:
                    return default
            return current

    def has(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def set(self, key: str, value: Any) -> bool:
        """Write one key. Returns True when the stored value changed."""
        with self._lock:
            changed = self._apply(key, value)
            if changed:
                self._version += 1
        if changed:
            self._notify([key])
        return changed

    def batch_set(self, updates: Mapping[str, Any]) -> bool:
        """Write several keys under one lock. Returns True if any changed."""
        changed_keys = []
        with self._lock:
            for key, value in updates.items():
                if self._apply(key, value):
                    changed_keys.append(key)
            if changed_keys:
                self._version += 1
        if changed_keys:
            self._notify(changed_keys)
        return bool(changed_keys)

    def merge(self, data: Mapping[str, Any], priority_higher: bool = True) -> bool:
        with self._lock:
            if priority_higher:
                updates = dict(data)
            else:
                updates = {k: v for k, v in data.items() if k not in self._data}
        return self.batch_set(updates)

    def _apply(self, key: str, value: Any) -> bool:
        old = self._data.get(key, _MISSING)
        if old is not _MISSING and values_equal(old, value):
            return False
        prefix = key + "."
        for stale in [k for k in self._data if k.startswith(prefix)]:
            del self._data[stale]
        self._data[key] = value
        flat: Dict[str, Any] = {}
        _flatten_into(value, key, flat)
        self._data.update(flat)
        return True

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._data)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data)

    def add_listener(self, listener: Callable[[List[str]], None]) -> None:
        """Register a callable invoked with the changed keys after each write."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[List[str]], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, keys: List[str]) -> None:
        for listener in list(self._listeners):
            listener(keys)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __repr__(self):
        return f"StateStore(keys={len(self)}, version={self.version})"


def apply_result(store: StateStore, result: Any, target: str = "", fallback: str = "") -> bool:
    """
    Store the successful result of an action.

    With ``target`` the result lands under that key. Otherwise a map result
    is merged into state and anything else is kept under ``fallback``, or
    dropped when there is none. A ``None`` result never writes.
    """
    if result is None:
        return False
    if target:
        return store.set(target, result)
    if isinstance(result, Mapping):
        return store.batch_set(dict(result))
    if not fallback:
        return False
    return store.set(fallback, result)


def apply_on_load_result(store: StateStore, result: Any, on_success: str = "") -> bool:
    """Store the result of the ``onLoad`` action; non-map results go to ``__onLoadResult``."""
    return apply_result(store, result, on_success, ON_LOAD_RESULT_KEY)


__all__ = [
    "StateStore",
    "flatten_data",
    "merge_data",
    "prepare_initial_state",
    "apply_result",
    "apply_on_load_result",
    "ON_LOAD_RESULT_KEY",
    "ERROR_KEY",
]
