# termflex/registry.py
"""
Component catalog and live-instance registry.

The catalog maps a declared ``type`` string to a factory and records
whether that type may receive keyboard focus. The instance registry keeps
one live instance per node ID across renders, so state a widget holds
internally (cursor position, scroll offset, typed text) survives re-renders:

    created  -> factory(config, id), remember config
    same     -> deep-equal config, return the instance untouched
    changed  -> instance.update_render_config(config); on error keep the
                stale instance and the previous config
    mismatch -> the ID is reused for another type: clean up and recreate
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .base import Component, ComponentFactory, ComponentInstance, RenderConfig, configs_equal
from .exceptions import ComponentError

logger = logging.getLogger(__name__)


class ComponentCatalog:
    """Type string -> factory table, plus per-type focus eligibility."""

    def __init__(self):
        self._factories: Dict[str, ComponentFactory] = {}
        self._focusable: Dict[str, bool] = {}

    def register(
        self,
        type_name: str,
        factory: ComponentFactory,
        focusable: bool = False,
        aliases: Iterable[str] = (),
    ) -> None:
        for name in (type_name, *aliases):
            key = name.lower()
            if key in self._factories:
                logger.debug("Replacing factory for component type %r", key)
            self._factories[key] = factory
            self._focusable[key] = bool(focusable)

    def unregister(self, type_name: str) -> None:
        key = type_name.lower()
        self._factories.pop(key, None)
        self._focusable.pop(key, None)

    def has(self, type_name: str) -> bool:
        return type_name.lower() in self._factories

    def get_factory(self, type_name: str) -> Optional[ComponentFactory]:
        return self._factories.get(type_name.lower())

    def is_focusable(self, type_name: str) -> bool:
        return self._focusable.get(type_name.lower(), False)

    def types(self) -> List[str]:
        return sorted(self._factories)

    def create(self, type_name: str, config: RenderConfig, component_id: str) -> Component:
        factory = self.get_factory(type_name)
        if factory is None:
            raise ComponentError(component_id, type_name, "unknown component type")
        try:
            return factory(config, component_id)
        except ComponentError:
            raise
        except Exception as e:
            raise ComponentError(component_id, type_name, f"factory failed: {e}") from e

    def __contains__(self, type_name: str) -> bool:
        return self.has(type_name)

    def __len__(self) -> int:
        return len(self._factories)


class ComponentInstanceRegistry:
    """
    Owns every live component instance, keyed by node ID.

    Only the main loop touches the registry, so it is not locked.
    """

    def __init__(self):
        self._instances: Dict[str, ComponentInstance] = {}

    def get_or_create(
        self,
        component_id: str,
        component_type: str,
        factory: ComponentFactory,
        config: RenderConfig,
    ) -> Tuple[ComponentInstance, bool]:
        """
        Return the live instance for ``component_id``, creating it if needed.

        :return: ``(instance, created)``.
        """
        existing = self._instances.get(component_id)

        if existing is not None and existing.type != component_type:
            logger.warning(
                "Component %s was registered as %r but is now declared as %r; recreating it",
                component_id, existing.type, component_type,
            )
            self._dispose(existing)
            del self._instances[component_id]
            existing = None

        if existing is None:
            instance = factory(config, component_id)
            entry = ComponentInstance(
                id=component_id,
                type=component_type,
                instance=instance,
                last_config=config,
            )
            self._instances[component_id] = entry
            logger.debug("Created component %s (%s)", component_id, component_type)
            return entry, True

        if configs_equal(existing.last_config, config):
            return existing, False

        self._reconfigure(existing, config)
        return existing, False

    def update_config(self, component_id: str, config: RenderConfig) -> bool:
        """Force reconfiguration of an existing instance. Returns success."""
        entry = self._instances.get(component_id)
        if entry is None:
            return False
        return self._reconfigure(entry, config)

    def _reconfigure(self, entry: ComponentInstance, config: RenderConfig) -> bool:
        try:
            entry.instance.update_render_config(config)
        except Exception:
            logger.exception(
                "Reconfiguring component %s (%s) failed; keeping the previous instance",
                entry.id, entry.type,
            )
            return False
        entry.last_config = config
        return True

    def _dispose(self, entry: ComponentInstance) -> None:
        try:
            entry.instance.cleanup()
        except Exception:
            logger.exception("Cleanup of component %s (%s) failed", entry.id, entry.type)

    def get(self, component_id: str) -> Optional[ComponentInstance]:
        return self._instances.get(component_id)

    def remove(self, component_id: str) -> bool:
        entry = self._instances.pop(component_id, None)
        if entry is None:
            return False
        self._dispose(entry)
        return True

    def clear(self) -> None:
        entries = list(self._instances.values())
        self._instances.clear()
        for entry in entries:
            self._dispose(entry)

    def all(self) -> List[ComponentInstance]:
        return list(self._instances.values())

    def ids(self) -> List[str]:
        return list(self._instances)

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, component_id: str) -> bool:
        return component_id in self._instances


__all__ = ["ComponentCatalog", "ComponentInstanceRegistry"]
