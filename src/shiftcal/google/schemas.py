"""Response schemas for the Google Calendar overlay."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AuthUrlResponse(BaseModel):
    url: str


class StatusResponse(BaseModel):
    connected: bool
    visible: bool


class VisibilityResponse(BaseModel):
    visible: bool


class EventResponse(BaseModel):
    """One overlay event, tagged with its source calendar."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    summary: str
    start: str
    end: str
    is_all_day: bool
    calendar_name: str
    color: str
