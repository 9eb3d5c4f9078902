# termflex/__init__.py

"""
termflex: a declarative terminal UI runtime.

An application is described in a YAML/JSON file (layout tree, static data,
key bindings, actions). termflex lays the tree out with a flex model, keeps
one live widget instance per node, routes input through focus and
subscriptions, and resolves ``{{ expression }}`` props against a flat state
store on every render.
"""

# --- Runtime ---
from .core import Application, run_terminal
from .config import Settings
from .log import configure_logging

# --- Application files ---
from .dsl import AppConfig, NodeConfig, load_file, load_text, validate_config

# --- Components ---
from .base import Command, Component, RenderConfig, Response
from .registry import ComponentCatalog, ComponentInstanceRegistry
from .widgets import default_catalog
from .controllers import TextEditingController

# --- Layout ---
from .layout import LayoutEngine, compute_layout, hit_test
from .node import LayoutBox, LayoutNode, LayoutResult, NodeType
from .style import BoxConstraints, Insets, Style

# --- Messages, state and actions ---
from .events import (
    ActionMsg,
    ExecuteActionMsg,
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
    TickMsg,
)
from .state import StateStore
from .actions import Action, ComponentBinding, ProcessRegistry
from .exceptions import (
    ActionError,
    ComponentError,
    ConfigError,
    ExpressionError,
    TermflexError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "Application",
    "run_terminal",
    "Settings",
    "configure_logging",
    "AppConfig",
    "NodeConfig",
    "load_file",
    "load_text",
    "validate_config",
    "Command",
    "Component",
    "RenderConfig",
    "Response",
    "ComponentCatalog",
    "ComponentInstanceRegistry",
    "default_catalog",
    "TextEditingController",
    "LayoutEngine",
    "compute_layout",
    "hit_test",
    "LayoutBox",
    "LayoutNode",
    "LayoutResult",
    "NodeType",
    "BoxConstraints",
    "Insets",
    "Style",
    "ActionMsg",
    "ExecuteActionMsg",
    "FocusMsg",
    "KeyMsg",
    "MouseMsg",
    "ProcessResultMsg",
    "QuitMsg",
    "RefreshMsg",
    "ResizeMsg",
    "StateBatchUpdateMsg",
    "StateUpdateMsg",
    "TargetedMsg",
    "TickMsg",
    "StateStore",
    "Action",
    "ComponentBinding",
    "ProcessRegistry",
    "ActionError",
    "ComponentError",
    "ConfigError",
    "ExpressionError",
    "TermflexError",
    "ValidationError",
]
