from __future__ import annotations

import random
import time as time_module
from pathlib import Path
from typing import AsyncIterator

import aiofiles

from interlude.streaming.sources.base import TrackRef


class LocalLibrarySource:
    id = "local"

    def __init__(self, music_dir: Path) -> None:
        self._music_dir = music_dir
        self._cache: list[Path] = []
        self._cache_ts: float = 0.0
        self._last: Path | None = None

    async def next_track(self, mime_type: str) -> TrackRef:
        # Only locates the file; tags are read by the lookahead resolver.
        self._refresh_cache_if_needed(mime_type=mime_type)
        if not self._cache:
            raise RuntimeError(f"No audio files found in {self._music_dir}")

        choices = [p for p in self._cache if p != self._last] or self._cache
        path = random.choice(choices)
        self._last = path
        return TrackRef(title=path.stem, duration_seconds=None, path=path)

    async def stream_track(
        self, track: TrackRef, chunk_size: int
    ) -> AsyncIterator[bytes]:
        async for chunk in stream_file(track.path, chunk_size):
            yield chunk

    def _refresh_cache_if_needed(self, mime_type: str) -> None:
        now = time_module.time()
        if now - self._cache_ts < 10 and self._cache:
            return

        exts = extensions_for_mime(mime_type)
        if not self._music_dir.exists():
            self._cache = []
            self._cache_ts = now
            return

        files: list[Path] = []
        for path in self._music_dir.rglob("*"):
            if path.is_file() and path.suffix.lower() in exts:
                files.append(path)

        self._cache = sorted(files)
        self._cache_ts = now


async def stream_file(path: Path, chunk_size: int) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            yield chunk


def extensions_for_mime(mime_type: str) -> set[str]:
    if mime_type == "audio/ogg":
        return {".ogg", ".opus"}
    return {".mp3"}
