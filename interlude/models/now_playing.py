from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class NowPlaying(BaseModel):
    title: str
    artist: str | None = None
    source: str
    duration_seconds: int | None = None
    position: float = Field(default=0.0, ge=0.0, le=1.0)
    mime_type: Literal["audio/mpeg", "audio/ogg"]
    cover_url: str = "/api/cover"
