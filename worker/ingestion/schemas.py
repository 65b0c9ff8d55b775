"""
Pydantic schemas for the remote page envelope.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class PageInfo(BaseModel):
    count: int = Field(..., ge=0)
    pages: int | None = None
    next: str | None = None
    prev: str | None = None


class Page(BaseModel):
    info: PageInfo
    # Items stay opaque: they are stored whole as JSONB.
    results: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def has_next(self) -> bool:
        return self.info.next is not None
