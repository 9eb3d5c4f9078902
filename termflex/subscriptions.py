# termflex/subscriptions.py
import threading
from typing import Dict, Iterable, List


class MessageSubscriptionManager:
    """
    Routing table from message category to the component IDs that asked to
    receive it on broadcast.

    The dispatcher consults it instead of delivering every broadcast message
    to every component. Lookups return copies, so callers may iterate while
    components subscribe or unsubscribe.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._subscribers: Dict[str, List[str]] = {}
        self._by_component: Dict[str, List[str]] = {}

    def subscribe(self, component_id: str, categories: Iterable[str]) -> None:
        """Replace the subscriptions of ``component_id`` with ``categories``."""
        categories = list(dict.fromkeys(categories))
        with self._lock:
            self._drop(component_id)
            if not categories:
                return
            self._by_component[component_id] = categories
            for category in categories:
                ids = self._subscribers.setdefault(category, [])
                if component_id not in ids:
                    ids.append(component_id)

    def unsubscribe(self, component_id: str) -> None:
        with self._lock:
            self._drop(component_id)

    def _drop(self, component_id: str) -> None:
        for category in self._by_component.pop(component_id, []):
            ids = self._subscribers.get(category, [])
            if component_id in ids:
                ids.remove(component_id)
            if not ids:
                self._subscribers.pop(category, None)

    def get_subscribers(self, category: str) -> List[str]:
        with self._lock:
            return list(self._subscribers.get(category, []))

    def get_all_subscribed_components(self) -> List[str]:
        with self._lock:
            return list(self._by_component)

    def get_component_subscriptions(self, component_id: str) -> List[str]:
        with self._lock:
            return list(self._by_component.get(component_id, []))

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()
            self._by_component.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_component)


__all__ = ["MessageSubscriptionManager"]
