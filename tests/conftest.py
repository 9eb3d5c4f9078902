"""Pytest fixtures for termflex tests."""

from typing import Any, Dict, Optional

import pytest

from termflex.base import Component, RenderConfig, Response
from termflex.config import Settings
from termflex.core import Application
from termflex.dsl import load_config
from termflex.registry import ComponentCatalog
from termflex.widgets import default_catalog


class Recorder(Component):
    """Widget that records every message it receives."""

    focusable = True

    def __init__(self, id: str, config: Optional[RenderConfig] = None, consume=()):
        super().__init__(id, config)
        self.received = []
        self.consume = tuple(consume)
        self.cleaned_up = False
        self.reconfigured = 0

    def handle_message(self, msg: Any) -> Response:
        self.received.append(msg)
        key = getattr(msg, "key", None)
        if key is not None and key in self.consume:
            return Response.HANDLED
        return Response.IGNORED

    def update_render_config(self, config: RenderConfig) -> None:
        super().update_render_config(config)
        self.reconfigured += 1

    def cleanup(self) -> None:
        self.cleaned_up = True

    def view(self, width: int, height: int) -> str:
        return str(self.props.get("label", self.id))


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    """Settings isolated from any termflex.yaml in the working directory."""
    monkeypatch.chdir(tmp_path)
    return Settings(overrides={"default_width": 40, "default_height": 10})


@pytest.fixture
def catalog() -> ComponentCatalog:
    """Built-in widgets plus a focusable ``recorder`` type."""
    catalog = default_catalog()
    catalog.register("recorder", lambda config, cid: Recorder(cid, config), focusable=True)
    return catalog


@pytest.fixture
def make_app(settings, catalog):
    """Build an initialized application from a configuration map."""

    def build(data: Dict[str, Any], **kwargs) -> Application:
        app = Application(load_config(data), catalog=catalog, settings=settings, **kwargs)
        app.initialize()
        return app

    return build


@pytest.fixture
def todo_config() -> Dict[str, Any]:
    return {
        "name": "todo",
        "data": {"title": "Todos", "items": ["milk", "eggs", "bread"]},
        "layout": {
            "direction": "column",
            "children": [
                {"type": "header", "id": "title", "props": {"content": "{{title}} ({{len(items)}})"}},
                {"type": "list", "id": "todos", "bind": "items", "height": "flex"},
                {"type": "input", "id": "entry", "props": {"placeholder": "new item"}},
            ],
        },
    }
