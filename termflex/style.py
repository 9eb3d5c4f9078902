# termflex/style.py
"""
Style and geometry primitives for the flex layout engine.

Sizes are stored as ``Optional[int]``:

- ``None``      auto (fill, or the measured intrinsic size for leaves)
- ``n >= 0``    a fixed number of character cells
- ``n < 0``     a percentage of the parent's available size, ``-50`` is 50%

Flex-driven sizing is expressed with ``Style.flex_grow`` and leaves the
size itself at ``None``.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

DIRECTIONS = ("row", "column")
ALIGNMENTS = ("start", "center", "end", "stretch")
JUSTIFICATIONS = ("start", "center", "end", "space-between", "space-around", "space-evenly")
POSITIONS = ("relative", "absolute")
OVERFLOWS = ("visible", "hidden", "scroll")

_DIRECTION_ALIASES = {
    "row": "row",
    "horizontal": "row",
    "hbox": "row",
    "column": "column",
    "vertical": "column",
    "vbox": "column",
}

_ALIGN_ALIASES = {
    "start": "start",
    "flex-start": "start",
    "left": "start",
    "top": "start",
    "center": "center",
    "middle": "center",
    "end": "end",
    "flex-end": "end",
    "right": "end",
    "bottom": "end",
    "stretch": "stretch",
}


def is_percent(size: Optional[int]) -> bool:
    return size is not None and size < 0


def percent(value: float) -> int:
    """Encode ``value`` percent in the negative size form."""
    return -int(round(value))


def resolve_size(size: Optional[int], available: int) -> Optional[int]:
    """
    Resolve a stored size against the available space.

    :return: Cells for fixed and percentage sizes, ``None`` for auto.
    """
    if size is None:
        return None
    if size < 0:
        return max(0, (available * -size) // 100)
    return size


def parse_size(value: Any) -> Tuple[Optional[int], float]:
    """
    Parse a declared width/height into ``(size, flex_grow)``.

    Accepts ints, numeric strings, ``"50%"``, ``"flex"``, ``{"flex": n}``,
    ``"auto"`` and ``None``.
    """
    if value is None or isinstance(value, bool):
        return None, 0.0
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"size must not be negative: {value!r}")
        return int(value), 0.0
    if isinstance(value, dict):
        grow = value.get("flex", value.get("grow", 1))
        return None, float(grow)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("", "auto"):
            return None, 0.0
        if text == "flex":
            return None, 1.0
        if text.endswith("%"):
            number = float(text[:-1])
            if number < 0:
                raise ValueError(f"percentage must not be negative: {value!r}")
            return percent(number), 0.0
        if text.endswith("fr"):
            return None, float(text[:-2] or 1)
        number = float(text)
        if number < 0:
            raise ValueError(f"size must not be negative: {value!r}")
        return int(number), 0.0
    raise ValueError(f"unsupported size value: {value!r}")


def normalize_direction(value: Optional[str], default: str = "column") -> str:
    if not value:
        return default
    try:
        return _DIRECTION_ALIASES[str(value).lower()]
    except KeyError:
        raise ValueError(f"invalid direction: {value!r}") from None


def normalize_align(value: Optional[str], default: str = "stretch") -> str:
    if not value:
        return default
    try:
        return _ALIGN_ALIASES[str(value).lower()]
    except KeyError:
        raise ValueError(f"invalid alignment: {value!r}") from None


def normalize_justify(value: Optional[str]) -> str:
    if not value:
        return "start"
    text = str(value).lower()
    text = _ALIGN_ALIASES.get(text, text)
    if text not in JUSTIFICATIONS:
        raise ValueError(f"invalid justify: {value!r}")
    return text


@dataclass(frozen=True)
class Insets:
    """Top/right/bottom/left cell counts for padding, border and margin."""
    top: int = 0
    right: int = 0
    bottom: int = 0
    left: int = 0

    @classmethod
    def all(cls, value: int) -> "Insets":
        return cls(value, value, value, value)

    @classmethod
    def parse(cls, value: Any) -> "Insets":
        """
        Build insets from an int, a CSS-ordered list of 1-4 ints, or a map
        with any of ``top``/``right``/``bottom``/``left``.
        """
        if value is None:
            return cls()
        if isinstance(value, Insets):
            return value
        if isinstance(value, bool):
            return cls.all(1 if value else 0)
        if isinstance(value, (int, float)):
            return cls.all(int(value))
        if isinstance(value, (list, tuple)):
            v = [int(x) for x in value]
            if len(v) == 1:
                return cls.all(v[0])
            if len(v) == 2:
                return cls(v[0], v[1], v[0], v[1])
            if len(v) == 3:
                return cls(v[0], v[1], v[2], v[1])
            if len(v) == 4:
                return cls(v[0], v[1], v[2], v[3])
            raise ValueError(f"insets list must have 1-4 values, got {len(v)}")
        if isinstance(value, dict):
            return cls(
                int(value.get("top", 0)),
                int(value.get("right", 0)),
                int(value.get("bottom", 0)),
                int(value.get("left", 0)),
            )
        raise ValueError(f"unsupported insets value: {value!r}")

    @property
    def horizontal(self) -> int:
        return self.left + self.right

    @property
    def vertical(self) -> int:
        return self.top + self.bottom

    def to_tuple(self) -> Tuple[int, int, int, int]:
        return (self.top, self.right, self.bottom, self.left)


@dataclass(frozen=True)
class BoxConstraints:
    """A min/max width/height envelope that a layout pass must honor."""
    min_width: int = 0
    max_width: int = 0
    min_height: int = 0
    max_height: int = 0

    @classmethod
    def tight(cls, width: int, height: int) -> "BoxConstraints":
        return cls(width, width, height, height)

    @classmethod
    def loose(cls, width: int, height: int) -> "BoxConstraints":
        return cls(0, width, 0, height)

    @property
    def is_tight(self) -> bool:
        return self.min_width == self.max_width and self.min_height == self.max_height

    def constrain(self, width: int, height: int) -> Tuple[int, int]:
        return (
            max(self.min_width, min(width, self.max_width)),
            max(self.min_height, min(height, self.max_height)),
        )


@dataclass
class Style:
    """Layout style of a single node."""
    direction: str = "column"
    width: Optional[int] = None
    height: Optional[int] = None
    flex_grow: float = 0.0
    flex_shrink: float = 1.0
    flex_basis: Optional[int] = None  # recorded, not used by the engine
    min_width: int = 0
    max_width: Optional[int] = None
    min_height: int = 0
    max_height: Optional[int] = None
    padding: Insets = field(default_factory=Insets)
    border: Insets = field(default_factory=Insets)
    margin: Insets = field(default_factory=Insets)
    gap: int = 0
    align_items: str = "stretch"
    align_self: Optional[str] = None
    justify: str = "start"
    position: str = "relative"
    top: Optional[int] = None
    right: Optional[int] = None
    bottom: Optional[int] = None
    left: Optional[int] = None
    z_index: int = 0
    overflow: str = "visible"

    @property
    def is_absolute(self) -> bool:
        return self.position == "absolute"

    def clamp_width(self, width: int) -> int:
        if self.max_width is not None:
            width = min(width, self.max_width)
        return max(0, max(width, self.min_width))

    def clamp_height(self, height: int) -> int:
        if self.max_height is not None:
            height = min(height, self.max_height)
        return max(0, max(height, self.min_height))

    def copy(self, **changes) -> "Style":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], default_direction: str = "column") -> "Style":
        """
        Build a style from a declared mapping.

        :raises pydantic.ValidationError: (a ``ValueError``) on invalid values.
        """
        return StyleConfig.model_validate(data or {}).to_style(default_direction)


def _checked(parse: Callable[[Any], Any], value: Any) -> Any:
    # pydantic reports ValueError only; a wrongly typed element raises TypeError
    try:
        return parse(value)
    except TypeError as e:
        raise ValueError(str(e)) from e


class StyleConfig(BaseModel):
    """
    A declared style map, checked and normalized.

    Both camelCase and snake_case keys are accepted. Unknown keys are
    ignored so newer configuration files still load, and ``null`` values
    fall back to the defaults.
    """
    model_config = ConfigDict(extra="ignore")

    direction: Optional[str] = Field(None, validation_alias=AliasChoices("direction", "flexDirection", "flex_direction"))
    width: Tuple[Optional[int], float] = (None, 0.0)
    height: Tuple[Optional[int], float] = (None, 0.0)
    flex_grow: Optional[float] = Field(None, validation_alias=AliasChoices("flex", "flexGrow", "flex_grow", "grow"))
    flex_shrink: float = Field(1.0, validation_alias=AliasChoices("flexShrink", "flex_shrink", "shrink"))
    flex_basis: Optional[int] = Field(None, validation_alias=AliasChoices("flexBasis", "flex_basis", "basis"))
    min_width: int = Field(0, validation_alias=AliasChoices("minWidth", "min_width"))
    max_width: Optional[int] = Field(None, validation_alias=AliasChoices("maxWidth", "max_width"))
    min_height: int = Field(0, validation_alias=AliasChoices("minHeight", "min_height"))
    max_height: Optional[int] = Field(None, validation_alias=AliasChoices("maxHeight", "max_height"))
    padding: Insets = Field(default_factory=Insets)
    border: Insets = Field(default_factory=Insets, validation_alias=AliasChoices("border", "borderWidth", "border_width"))
    margin: Insets = Field(default_factory=Insets)
    gap: int = Field(0, validation_alias=AliasChoices("gap", "spacing"))
    align_items: str = Field("stretch", validation_alias=AliasChoices("alignItems", "align_items", "align"))
    align_self: Optional[str] = Field(None, validation_alias=AliasChoices("alignSelf", "align_self"))
    justify: str = Field("start", validation_alias=AliasChoices("justify", "justifyContent", "justify_content"))
    position: str = "relative"
    top: Optional[int] = None
    right: Optional[int] = None
    bottom: Optional[int] = None
    left: Optional[int] = None
    z_index: int = Field(0, validation_alias=AliasChoices("zIndex", "z_index", "z"))
    overflow: str = "visible"

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @field_validator("direction", mode="before")
    @classmethod
    def _direction(cls, value: Any) -> Optional[str]:
        return normalize_direction(value) if value else None

    @field_validator("width", "height", mode="before")
    @classmethod
    def _size(cls, value: Any) -> Tuple[Optional[int], float]:
        return _checked(parse_size, value)

    @field_validator("flex_grow", mode="before")
    @classmethod
    def _grow(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() == "auto":
            return None
        return value

    @field_validator("padding", "margin", mode="before")
    @classmethod
    def _insets(cls, value: Any) -> Insets:
        return _checked(Insets.parse, value)

    @field_validator("border", mode="before")
    @classmethod
    def _border(cls, value: Any) -> Insets:
        if isinstance(value, str):
            # named border styles draw a single-cell frame
            value = 0 if value.lower() in ("none", "hidden") else 1
        return _checked(Insets.parse, value)

    @field_validator("align_items", mode="before")
    @classmethod
    def _align_items(cls, value: Any) -> str:
        return normalize_align(value)

    @field_validator("align_self", mode="before")
    @classmethod
    def _align_self(cls, value: Any) -> Optional[str]:
        return normalize_align(value) if value else None

    @field_validator("justify", mode="before")
    @classmethod
    def _justify(cls, value: Any) -> str:
        return normalize_justify(value)

    @field_validator("position", mode="before")
    @classmethod
    def _position(cls, value: Any) -> str:
        text = str(value).lower()
        if text not in POSITIONS:
            raise ValueError(f"invalid position: {text!r}")
        return text

    @field_validator("overflow", mode="before")
    @classmethod
    def _overflow(cls, value: Any) -> str:
        text = str(value).lower()
        if text not in OVERFLOWS:
            raise ValueError(f"invalid overflow: {text!r}")
        return text

    def to_style(self, default_direction: str = "column") -> Style:
        width, width_grow = self.width
        height, height_grow = self.height
        grow = self.flex_grow if self.flex_grow is not None else max(width_grow, height_grow)
        return Style(
            direction=self.direction or default_direction,
            width=width,
            height=height,
            flex_grow=float(grow),
            flex_shrink=self.flex_shrink,
            flex_basis=self.flex_basis,
            min_width=self.min_width,
            max_width=self.max_width,
            min_height=self.min_height,
            max_height=self.max_height,
            padding=self.padding,
            border=self.border,
            margin=self.margin,
            gap=self.gap,
            align_items=self.align_items,
            align_self=self.align_self,
            justify=self.justify,
            position=self.position,
            top=self.top,
            right=self.right,
            bottom=self.bottom,
            left=self.left,
            z_index=self.z_index,
            overflow=self.overflow,
        )


__all__ = [
    "Insets",
    "BoxConstraints",
    "Style",
    "StyleConfig",
    "parse_size",
    "resolve_size",
    "is_percent",
    "percent",
    "normalize_direction",
    "normalize_align",
    "normalize_justify",
]
