# termflex/exceptions.py
"""
Exception hierarchy shared by every termflex module.

Only configuration problems are allowed to stop the runtime. Everything
raised while a frame is being resolved, dispatched or rendered is caught
at the seam that owns it and turned into a visible, non-fatal state.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import pydantic


class TermflexError(Exception):
    """Base class for all termflex errors."""


class ConfigError(TermflexError):
    """A configuration file could not be read or parsed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


@dataclass
class ValidationIssue:
    """One finding produced while validating a configuration tree."""
    path: str
    message: str
    level: str = "error"  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.level.upper()}] {self.path}: {self.message}"


def _loc_path(loc: Sequence[Any], prefix: str = "") -> str:
    path = prefix
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def issues_from_pydantic(error: pydantic.ValidationError, prefix: str = "") -> List[ValidationIssue]:
    """
    Turn a pydantic validation error into issues whose paths read like
    ``layout.children[0].style.position``.
    """
    issues = []
    for detail in error.errors():
        message = detail["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        issues.append(ValidationIssue(_loc_path(detail["loc"], prefix), message))
    return issues


def summarize_pydantic(error: pydantic.ValidationError) -> str:
    return "; ".join(
        f"{issue.path}: {issue.message}" if issue.path else issue.message
        for issue in issues_from_pydantic(error)
    )


class ValidationError(ConfigError):
    """
    The declared tree is structurally invalid and the runtime must not start.

    :param issues: All issues found; at least one has level ``"error"``.
    """

    def __init__(self, issues: List[ValidationIssue], path: Optional[str] = None):
        self.issues = list(issues)
        errors = [i for i in self.issues if i.level == "error"]
        summary = f"{len(errors)} validation error(s)\n" + "\n".join(f"  {i}" for i in self.issues)
        super().__init__(summary, path=path)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.level == "error"]


class ExpressionError(TermflexError):
    """A template expression failed to compile or evaluate."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"expression {expression!r}: {reason}")


class ActionError(TermflexError):
    """An action descriptor is invalid or its process/script failed."""


class ComponentError(TermflexError):
    """A component could not be created for the declared type."""

    def __init__(self, component_id: str, component_type: str, reason: str):
        self.component_id = component_id
        self.component_type = component_type
        self.reason = reason
        super().__init__(f"{component_type} {component_id}: {reason}")


__all__ = [
    "TermflexError",
    "ConfigError",
    "ValidationIssue",
    "ValidationError",
    "issues_from_pydantic",
    "summarize_pydantic",
    "ExpressionError",
    "ActionError",
    "ComponentError",
]
