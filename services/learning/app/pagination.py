"""Offset pagination envelope for list endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class OffsetPage[T](BaseModel):
    """Offset-paginated response envelope."""

    model_config = ConfigDict(from_attributes=True)

    items: list[T]
    total: int
    limit: int
    offset: int
