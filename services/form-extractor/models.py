"""Pydantic models for extracted form data.

Attributes are snake_case; serialized names are camelCase (formTitle,
boundingBox, extractedAt). Either form is accepted on input.
"""

from datetime import datetime, timezone
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

FieldType = Literal[
    "text", "number", "date", "email", "phone",
    "checkbox", "radio", "select", "textarea",
]

FIELD_TYPES: frozenset[str] = frozenset(get_args(FieldType))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BoundingBox(CamelModel):
    """Normalized rectangle, top-left origin, relative to the rendered page."""

    x: float
    y: float
    width: float
    height: float

    @model_validator(mode="after")
    def clamp_to_page(self) -> "BoundingBox":
        # Providers are asked for [0, 1] coordinates but nothing enforces it.
        self.x = _clamp(self.x)
        self.y = _clamp(self.y)
        self.width = min(_clamp(self.width), 1.0 - self.x)
        self.height = min(_clamp(self.height), 1.0 - self.y)
        return self


class FormField(CamelModel):
    id: str
    label: str
    value: str = ""
    type: FieldType = "text"
    confidence: float = 1.0
    verified: bool = False
    page: int = 1
    bounding_box: BoundingBox | None = None


class ExtractedData(CamelModel):
    form_title: str | None = None
    fields: list[FormField] = []
    extracted_at: datetime


class RawField(CamelModel):
    """One field as reported by a provider, before normalization."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    label: str | None = None
    value: str | None = None
    type: str | None = None
    confidence: float | None = None
    bounding_box: BoundingBox | None = None

    @field_validator("label", "value", "type", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "checked" if value else "unchecked"
        if isinstance(value, (dict, list)):
            return None
        return str(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def lenient_confidence(cls, value: Any) -> float | None:
        try:
            return None if value is None else float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("bounding_box", mode="before")
    @classmethod
    def lenient_box(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return None
        try:
            return {k: float(value[k]) for k in ("x", "y", "width", "height")}
        except (KeyError, TypeError, ValueError):
            return None


class RawExtraction(CamelModel):
    """Provider-agnostic payload every backend produces."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    fields: list[RawField] = []
    form_title: str | None = None

    @field_validator("fields", mode="before")
    @classmethod
    def drop_non_objects(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict)]
        return value

    @field_validator("form_title", mode="before")
    @classmethod
    def blank_title_is_none(cls, value: Any) -> str | None:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()


class HistoryEntry(CamelModel):
    id: int
    filename: str
    extracted_at: datetime
    fields_count: int
    form_title: str | None = None
    provider: str


class ProviderInfo(CamelModel):
    key: str
    name: str
    description: str
    cost: str
    configured: bool
