# termflex/dsl.py
"""
Declarative application files.

A ``*.tui.yaml`` / ``*.tui.json`` / ``*.tui.jsonc`` file describes one
screen::

    name: Todo
    data:
      title: My todos
      items: [a, b]
    bindings:
      q: tui.quit
    layout:
      direction: column
      children:
        - type: header
          props: {content: "{{title}}"}
        - type: list
          id: todos
          bind: items
          height: flex

Loading parses the text, checks every field against the ``AppConfig``
model, assigns missing node IDs, adds the default key bindings and returns
the config. ``validate_config`` reports problems that span nodes;
``build_layout_tree`` turns the layout into ``LayoutNode``s.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .actions import Action, ComponentBinding
from .exceptions import ConfigError, ValidationError, ValidationIssue, issues_from_pydantic
from .log import VALID_LOG_LEVELS
from .node import LayoutNode, NodeType, is_container_type, node_type_for
from .style import StyleConfig

logger = logging.getLogger(__name__)

FILE_SUFFIXES = (".tui.yaml", ".tui.yml", ".tui.json", ".tui.jsonc")
NAVIGATION_MODES = ("native", "bindable")
RESERVED_NAMES = frozenset(("list", "validate", "inspect", "check", "dump", "help"))
MAX_NAME_LENGTH = 100
MAX_DEPTH = 50

DEFAULT_BINDINGS = {
    "ctrl+c": "tui.quit",
    "ctrl+r": "tui.refresh",
    "ctrl+l": "tui.refresh",
}

# node keys that are shorthand for style entries
STYLE_KEYS = (
    "direction",
    "width",
    "height",
    "flex",
    "flexGrow",
    "flexShrink",
    "minWidth",
    "maxWidth",
    "minHeight",
    "maxHeight",
    "padding",
    "margin",
    "border",
    "borderWidth",
    "gap",
    "align",
    "alignItems",
    "alignSelf",
    "justify",
    "position",
    "top",
    "right",
    "bottom",
    "left",
    "zIndex",
    "overflow",
)


def _text(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _choice(value: Any, default: str, allowed: Tuple[str, ...], what: str) -> str:
    text = str(value if value is not None else default).lower()
    if text not in allowed:
        raise ValueError(f"invalid {what}: {text!r} (must be one of: {', '.join(allowed)})")
    return text


class NodeConfig(BaseModel):
    """One declared node, before layout."""
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    type: str = ""
    props: Dict[str, Any] = Field(default_factory=dict)
    style: StyleConfig = Field(default_factory=StyleConfig)
    children: List["NodeConfig"] = Field(default_factory=list)
    bind: str = ""
    actions: Dict[str, ComponentBinding] = Field(default_factory=dict)
    bindings: Dict[str, ComponentBinding] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_style(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        style = data.get("style") or {}
        if isinstance(style, Mapping):
            style = dict(style)
            for key in STYLE_KEYS:
                if key in data and key not in style:
                    style[key] = data[key]
        data["style"] = style
        return data

    @field_validator("id", "type", "bind", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> Any:
        return _text(value)

    @field_validator("props", "actions", "bindings", mode="before")
    @classmethod
    def _no_map(cls, value: Any) -> Any:
        return value or {}

    @field_validator("children", mode="before")
    @classmethod
    def _no_children(cls, value: Any) -> Any:
        return value or []

    @model_validator(mode="after")
    def _binding_keys(self) -> "NodeConfig":
        for table in (self.actions, self.bindings):
            for key, binding in table.items():
                binding.key = binding.key or key
        return self

    @property
    def is_container(self) -> bool:
        if self.children:
            return True
        return bool(self.type) and is_container_type(self.type)

    def walk(self, path: str = "layout") -> Iterator[Tuple[str, "NodeConfig"]]:
        yield path, self
        for index, child in enumerate(self.children):
            yield from child.walk(f"{path}.children[{index}]")


class AppConfig(BaseModel):
    """
    A whole application file. Field-level rules (types, enums, action and
    style shapes) are checked here; rules across nodes live in
    ``validate_config``.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = ""
    id: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    layout: Optional[NodeConfig] = None
    bindings: Dict[str, Action] = Field(default_factory=dict)
    on_load: Optional[Action] = Field(None, alias="onLoad")
    log_level: str = Field("warn", alias="logLevel")
    auto_focus: bool = Field(True, alias="autoFocus")
    tab_cycles: bool = Field(True, alias="tabCycles")
    navigation_mode: str = Field("native", alias="navigationMode")
    path: Optional[str] = Field(None, exclude=True)

    @field_validator("name", "id", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> Any:
        return _text(value)

    @field_validator("data", "bindings", mode="before")
    @classmethod
    def _no_map(cls, value: Any) -> Any:
        return value or {}

    @field_validator("layout", "on_load", mode="before")
    @classmethod
    def _unset(cls, value: Any) -> Any:
        return value or None

    @field_validator("log_level", mode="before")
    @classmethod
    def _log_level(cls, value: Any) -> str:
        return _choice(value, "warn", VALID_LOG_LEVELS, "log level")

    @field_validator("navigation_mode", mode="before")
    @classmethod
    def _navigation_mode(cls, value: Any) -> str:
        return _choice(value, "native", NAVIGATION_MODES, "navigation mode")

    def nodes(self) -> Iterator[Tuple[str, NodeConfig]]:
        if self.layout is not None:
            yield from self.layout.walk()


# --- Parsing ---


def strip_jsonc_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments outside string literals."""
    out = []
    i = 0
    length = len(text)
    in_string = False
    while i < length:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = length if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = length if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _format_for(path: Optional[str]) -> str:
    if not path:
        return "yaml"
    name = str(path).lower()
    if name.endswith(".jsonc"):
        return "jsonc"
    if name.endswith(".json"):
        return "json"
    return "yaml"


def parse_text(text: str, fmt: Optional[str] = None, path: Optional[str] = None) -> Dict[str, Any]:
    """
    Parse the text of an application file into plain data.

    :param fmt: ``yaml``, ``json`` or ``jsonc``; inferred from ``path`` when omitted.
    :raises ConfigError: on syntax errors or a non-map document.
    """
    fmt = (fmt or _format_for(path)).lower()
    try:
        if fmt == "jsonc":
            data = json.loads(strip_jsonc_comments(text))
        elif fmt == "json":
            data = json.loads(text)
        elif fmt in ("yaml", "yml"):
            data = yaml.safe_load(text)
        else:
            raise ConfigError(f"unsupported format: {fmt}", path)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot parse {fmt}: {e}", path) from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"top level must be a map, got {type(data).__name__}", path)
    return data


def node_from_dict(data: Any, path: str = "layout") -> NodeConfig:
    """
    Build one node subtree from declared data.

    :raises ValidationError: when the subtree does not match the schema.
    """
    try:
        return NodeConfig.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(issues_from_pydantic(e, path)) from e


def assign_ids(root: Optional[NodeConfig]) -> int:
    """
    Give every node without an ID one of the form ``<type>_<n>``, counting
    per type across the whole tree and skipping IDs already declared.

    :return: Number of IDs assigned.
    """
    if root is None:
        return 0
    taken = {node.id for _, node in root.walk() if node.id}
    counters: Dict[str, int] = {}
    assigned = 0
    for _, node in root.walk():
        if node.id:
            continue
        prefix = (node.type or ("column" if node.children else "node")).lower()
        while True:
            counters[prefix] = counters.get(prefix, 0) + 1
            candidate = f"{prefix}_{counters[prefix]}"
            if candidate not in taken:
                break
        node.id = candidate
        taken.add(candidate)
        assigned += 1
    return assigned


def add_default_bindings(config: AppConfig) -> None:
    for key, process in DEFAULT_BINDINGS.items():
        config.bindings.setdefault(key, Action(process=process))


def load_config(data: Mapping[str, Any], path: Optional[str] = None) -> AppConfig:
    """
    Check parsed data against the schema, assign missing IDs and add the
    default bindings.

    :raises ValidationError: listing every field-level problem found.
    """
    try:
        config = AppConfig.model_validate(data)
    except pydantic.ValidationError as e:
        issues = issues_from_pydantic(e)
        for issue in issues:
            logger.debug("Config error at %s: %s", issue.path, issue.message)
        raise ValidationError(issues, path) from e
    config.path = path
    assign_ids(config.layout)
    add_default_bindings(config)
    return config


def load_text(text: str, fmt: Optional[str] = None, path: Optional[str] = None) -> AppConfig:
    return load_config(parse_text(text, fmt, path), path)


def load_file(path: Union[str, Path]) -> AppConfig:
    """
    Read, parse and prepare an application file.

    :raises ConfigError: when the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read file: {e}", str(path)) from e
    return load_text(text, path=str(path))


# --- Validation ---


def validate_config(config: AppConfig, catalog: Any = None, strict: bool = False) -> List[ValidationIssue]:
    """
    Check a loaded configuration for problems that span more than one
    field: required sections, duplicate IDs, nesting depth and the
    soft warnings.

    :param catalog: Optional ``ComponentCatalog`` used to flag unknown types.
    :param strict: Raise ``ValidationError`` when any error-level issue is found.
    :return: Errors and warnings, in discovery order.
    """
    issues: List[ValidationIssue] = []

    if not config.name:
        issues.append(ValidationIssue("name", "name is required"))
    else:
        if len(config.name) > MAX_NAME_LENGTH:
            issues.append(ValidationIssue("name", f"name may be too long (> {MAX_NAME_LENGTH} characters)", "warning"))
        if config.name.lower() in RESERVED_NAMES:
            issues.append(ValidationIssue("name", f"{config.name!r} is a reserved name", "warning"))

    if config.layout is None:
        issues.append(ValidationIssue("layout", "layout is required"))
    else:
        issues.extend(_validate_nodes(config.layout, catalog))

    for issue in issues:
        if issue.level == "warning":
            logger.warning("Config warning at %s: %s", issue.path, issue.message)

    if strict:
        errors = [issue for issue in issues if issue.level == "error"]
        if errors:
            raise ValidationError(issues, config.path)
    return issues


def _validate_nodes(root: NodeConfig, catalog: Any) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    seen: Dict[str, str] = {}

    def visit(node: NodeConfig, path: str, depth: int) -> None:
        if depth > MAX_DEPTH:
            issues.append(ValidationIssue(path, f"layout nesting depth exceeds maximum: {MAX_DEPTH}"))
            return

        if node.id:
            if node.id in seen:
                issues.append(ValidationIssue(f"{path}.id", f"duplicate id {node.id!r} (first used at {seen[node.id]})"))
            else:
                seen[node.id] = path

        if not node.children and not node.type:
            issues.append(ValidationIssue(f"{path}.type", "component is missing its type"))
        elif node.type and is_container_type(node.type) and not node.children:
            issues.append(ValidationIssue(f"{path}.children", "layout has no children", "warning"))
        elif node.type and not is_container_type(node.type) and catalog is not None and not catalog.has(node.type):
            issues.append(ValidationIssue(f"{path}.type", f"unknown component type: {node.type!r}", "warning"))

        for index, child in enumerate(node.children):
            visit(child, f"{path}.children[{index}]", depth + 1)

    visit(root, "layout", 0)
    return issues


# --- Layout tree ---


def build_layout_tree(node: NodeConfig) -> LayoutNode:
    """
    Turn a validated node declaration into a ``LayoutNode`` subtree.

    A container's explicit ``direction`` decides its axis; without one the
    declared type does (``row`` lays out horizontally, ``layout`` and
    ``column`` vertically).
    """
    declared = node.type or ("column" if node.children else "")
    node_type = node_type_for(declared)
    container = node.is_container
    default_direction = "row" if node_type == NodeType.ROW else "column"
    style = node.style.to_style(default_direction)
    if container and node.style.direction:
        node_type = NodeType.ROW if node.style.direction == "row" else NodeType.COLUMN

    layout_node = LayoutNode(
        id=node.id,
        node_type=node_type,
        style=style,
        component_type=None if container else declared.lower(),
        props=dict(node.props),
        bind=node.bind or None,
        actions=dict(node.actions),
        bindings=dict(node.bindings),
    )
    for child in node.children:
        layout_node.add_child(build_layout_tree(child))
    return layout_node


__all__ = [
    "AppConfig",
    "NodeConfig",
    "DEFAULT_BINDINGS",
    "FILE_SUFFIXES",
    "NAVIGATION_MODES",
    "RESERVED_NAMES",
    "strip_jsonc_comments",
    "parse_text",
    "node_from_dict",
    "assign_ids",
    "add_default_bindings",
    "load_config",
    "load_text",
    "load_file",
    "validate_config",
    "build_layout_tree",
]
