from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from interlude.models.track import TrackMetadata, read_track_metadata
from interlude.streaming.sources.base import TrackRef

logger = logging.getLogger(__name__)

BatchReady = Callable[[Sequence[TrackMetadata], TrackMetadata | None], object]


class TrackTracker:
    # Called only from the playout loop, one event at a time: no locking.
    def __init__(
        self,
        on_batch_ready: BatchReady,
        batch_size: int = 4,
        reader: Callable[[Path], TrackMetadata] = read_track_metadata,
    ) -> None:
        self._on_batch_ready = on_batch_ready
        self._batch_size = batch_size
        self._reader = reader
        self._batch: list[TrackMetadata] = []
        self.next_track: TrackMetadata | None = None
        self.current_title: str | None = None
        self.current_artist: str | None = None

    @property
    def history(self) -> tuple[TrackMetadata, ...]:
        return tuple(self._batch)

    def resolve_next(self, track: TrackRef) -> TrackRef:
        metadata = track.metadata
        if metadata is None:
            metadata = self._reader(track.path)
        self.next_track = metadata
        logger.debug("Next track: %s", metadata.describe())
        return dataclasses.replace(
            track,
            title=metadata.title,
            duration_seconds=metadata.duration_seconds,
            metadata=metadata,
        )

    def on_metadata(self, metadata: TrackMetadata) -> None:
        self.current_title = metadata.title
        self.current_artist = metadata.artist

        self._batch.append(metadata)
        if len(self._batch) < self._batch_size:
            return

        snapshot = tuple(self._batch)
        self._batch.clear()
        self._on_batch_ready(snapshot, self.next_track)
