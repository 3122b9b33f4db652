"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase keys on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(CamelModel):
    """Every response carries a success flag."""

    success: bool = True


class StatusEnvelope(Envelope):
    """Envelope carrying only a human-readable status message."""

    message: str | None = None


class CountEnvelope(Envelope):
    count: int = Field(..., ge=0)
