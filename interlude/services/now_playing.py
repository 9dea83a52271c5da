from __future__ import annotations

import asyncio

from interlude.models.now_playing import NowPlaying


class NowPlayingState:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._current: NowPlaying | None = None

    async def set(self, value: NowPlaying) -> None:
        async with self._lock:
            self._current = value

    async def set_position(self, position: float) -> None:
        async with self._lock:
            if self._current is not None:
                self._current = self._current.model_copy(
                    update={"position": min(max(position, 0.0), 1.0)}
                )

    async def get(self) -> NowPlaying | None:
        async with self._lock:
            return self._current
