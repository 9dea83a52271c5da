from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import AsyncIterator, Sequence
from pathlib import Path

from interlude.models.now_playing import NowPlaying
from interlude.models.track import TrackMetadata, read_track_metadata
from interlude.services.cover_art import CoverArtManager
from interlude.services.generation import GenerationClient
from interlude.services.injection_queue import InjectionQueue
from interlude.services.insertion import InsertionScheduler
from interlude.services.now_playing import NowPlayingState
from interlude.services.tracker import TrackTracker
from interlude.settings import Settings
from interlude.streaming.selector import FallbackSelector
from interlude.streaming.sources.base import InjectableRequest, MusicSource, TrackRef
from interlude.streaming.sources.local import LocalLibrarySource, stream_file

logger = logging.getLogger(__name__)

# 128 кбит/с: темп для файлов без известной длительности
DEFAULT_BYTES_PER_SECOND = 16_000
LISTENER_BUFFER = 64


class Streamer:
    def __init__(self, settings: Settings, source: MusicSource | None = None) -> None:
        self._settings = settings
        self.now_playing = NowPlayingState()
        self.injections = InjectionQueue()
        self.selector = FallbackSelector(self.injections)
        self.cover = CoverArtManager(default_cover=settings.default_cover)

        self.generation = GenerationClient(settings.generation())
        self.insertion = InsertionScheduler(
            self.generation.narrate,
            self.injections,
            max_workers=settings.max_generation_workers,
        )
        self.tracker = TrackTracker(
            on_batch_ready=self._on_batch_ready, batch_size=settings.batch_size
        )

        self.local_source = source or LocalLibrarySource(music_dir=settings.music_dir)
        self._lookahead: deque[TrackRef] = deque()
        self._head_resolved = False
        self._listeners: set[asyncio.Queue[bytes]] = set()
        self._task: asyncio.Task[None] | None = None

    async def startup(self) -> None:
        if not self.generation.enabled():
            logger.warning("No API key configured, narration is disabled")
        logger.info(
            "Streaming %s from %s, narration every %d tracks",
            self._settings.stream_mime_type,
            self._settings.music_dir,
            self._settings.batch_size,
        )
        self._task = asyncio.create_task(self.run(), name="interlude-playout")

    async def shutdown(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        try:
            await self.insertion.shutdown()
            await self.generation.aclose()
        finally:
            self.cover.close()

    async def stream(self) -> AsyncIterator[bytes]:
        queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=LISTENER_BUFFER)
        self._listeners.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._listeners.discard(queue)

    async def run(self) -> None:
        # Одна петля на всю станцию: слушатели только подписываются.
        while True:
            try:
                item = await self.next_item()
            except Exception as exc:
                logger.error("Nothing to play: %r", exc)
                await asyncio.sleep(5)
                continue

            try:
                await self.start_item(item)
                await self._play(item)
            except OSError as exc:
                logger.error("Skipping %s: %s", item.path, exc)
            except Exception:
                logger.exception("Playout of %s failed", item.path)
            finally:
                if isinstance(item, InjectableRequest):
                    self._discard(item.path)

            # маленькая пауза между треками, чтобы не "крутить" цикл на пустом месте
            await asyncio.sleep(0.05)

    async def next_item(self) -> InjectableRequest | TrackRef:
        await self._fill_lookahead()
        item = self.selector.next_item(self._lookahead[0])
        if isinstance(item, TrackRef):
            self._lookahead.popleft()
            self._head_resolved = False
            await self._fill_lookahead()
        return item

    async def start_item(self, item: InjectableRequest | TrackRef) -> None:
        if isinstance(item, InjectableRequest):
            logger.info("Injecting narration #%d", item.sequence)
            await self.now_playing.set(
                NowPlaying(
                    title=item.title,
                    artist=None,
                    source="narration",
                    mime_type=self._settings.stream_mime_type,
                )
            )
            return

        metadata = item.metadata or TrackMetadata(title=item.title, filename=str(item.path))
        self.tracker.on_metadata(metadata)
        self.cover.extract(metadata)
        await self.now_playing.set(
            NowPlaying(
                title=metadata.title,
                artist=metadata.artist,
                source=self.local_source.id,
                duration_seconds=metadata.duration_seconds,
                mime_type=self._settings.stream_mime_type,
            )
        )

    def _on_batch_ready(
        self, history: Sequence[TrackMetadata], next_track: TrackMetadata | None
    ) -> None:
        if not self.generation.enabled():
            logger.debug("Batch of %d tracks ready, narration disabled", len(history))
            return
        self.insertion.on_batch_ready(history, next_track)

    async def _fill_lookahead(self) -> None:
        while len(self._lookahead) < self._settings.prefetch:
            self._lookahead.append(
                await self.local_source.next_track(mime_type=self._settings.stream_mime_type)
            )
        if not self._head_resolved:
            self._lookahead[0] = self.tracker.resolve_next(self._lookahead[0])
            self._head_resolved = True

    def _duration_of(self, item: InjectableRequest | TrackRef) -> int | None:
        if isinstance(item, TrackRef):
            return item.duration_seconds
        return read_track_metadata(item.path).duration_seconds

    def _chunks(self, item: InjectableRequest | TrackRef) -> AsyncIterator[bytes]:
        chunk_size = self._settings.chunk_size
        if isinstance(item, TrackRef):
            return self.local_source.stream_track(item, chunk_size=chunk_size)
        return stream_file(item.path, chunk_size=chunk_size)

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete narration %s: %s", path, exc)

    async def _play(self, item: InjectableRequest | TrackRef) -> None:
        size = item.path.stat().st_size
        if size == 0:
            return

        duration_seconds = self._duration_of(item)
        rate = size / duration_seconds if duration_seconds else DEFAULT_BYTES_PER_SECOND
        loop = asyncio.get_running_loop()
        started = loop.time()
        sent = 0

        async for chunk in self._chunks(item):
            self._broadcast(chunk)
            sent += len(chunk)
            await self.now_playing.set_position(sent / size)
            delay = started + sent / rate - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)

    def _broadcast(self, chunk: bytes) -> None:
        for queue in list(self._listeners):
            if queue.full():
                # медленный слушатель теряет старые куски, а не тормозит эфир
                queue.get_nowait()
            queue.put_nowait(chunk)
