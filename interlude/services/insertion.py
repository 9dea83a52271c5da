from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from interlude.errors import GenerationError
from interlude.models.track import TrackMetadata
from interlude.services.generation import build_prompt
from interlude.services.injection_queue import InjectionQueue
from interlude.streaming.sources.base import InjectableRequest

logger = logging.getLogger(__name__)

Narrate = Callable[[str, int], Awaitable[InjectableRequest]]


class InsertionScheduler:
    def __init__(self, narrate: Narrate, queue: InjectionQueue, max_workers: int = 2) -> None:
        self._narrate = narrate
        self._queue = queue
        self._slots = asyncio.Semaphore(max_workers)
        self._tasks: set[asyncio.Task[InjectableRequest | None]] = set()
        self._sequence = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def on_batch_ready(
        self, history: Sequence[TrackMetadata], next_track: TrackMetadata | None
    ) -> asyncio.Task[InjectableRequest | None]:
        self._sequence += 1
        sequence = self._sequence
        prompt = build_prompt(history, next_track)
        logger.info(
            "Batch #%d ready (%d tracks), next up: %s",
            sequence,
            len(history),
            next_track.describe() if next_track else "unknown",
        )

        task = asyncio.get_running_loop().create_task(
            self._run(prompt, sequence), name=f"narration-{sequence}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()

    async def _run(self, prompt: str, sequence: int) -> InjectableRequest | None:
        try:
            async with self._slots:
                request = await self._narrate(prompt, sequence)
        except asyncio.CancelledError:
            logger.info("Narration #%d cancelled", sequence)
            raise
        except GenerationError as exc:
            logger.error("Narration #%d failed (%s): %s", sequence, exc.error_kind, exc)
            return None
        except Exception:
            logger.exception("Narration #%d crashed", sequence)
            return None

        self._queue.push(request)
        logger.info("Narration #%d queued: %s", sequence, request.path)
        return request
