from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Protocol

from interlude.models.track import TrackMetadata


@dataclass(frozen=True)
class TrackRef:
    title: str
    duration_seconds: int | None
    path: Path
    metadata: TrackMetadata | None = None


@dataclass(frozen=True)
class InjectableRequest:
    path: Path
    title: str
    sequence: int = 0


class MusicSource(Protocol):
    id: str

    async def next_track(self, mime_type: str) -> TrackRef:
        ...

    async def stream_track(self, track: TrackRef, chunk_size: int) -> AsyncIterator[bytes]:
        ...
