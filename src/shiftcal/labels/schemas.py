"""Request/response schemas for label endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LabelCreateRequest(_CamelModel):
    """Create a label."""

    short_code: str = Field(..., min_length=1, max_length=4)
    name: str = Field(..., min_length=1)
    color: str = Field(..., pattern=COLOR_PATTERN)


class LabelUpdateRequest(_CamelModel):
    """Partial update: omitted fields keep their current value."""

    short_code: str | None = Field(None, min_length=1, max_length=4)
    name: str | None = Field(None, min_length=1)
    color: str | None = Field(None, pattern=COLOR_PATTERN)


class LabelResponse(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    short_code: str
    name: str
    color: str
