from __future__ import annotations

from interlude.services.injection_queue import InjectionQueue
from interlude.streaming.sources.base import InjectableRequest, TrackRef


class FallbackSelector:
    # Asked only between items: a narration ready mid-track waits for the boundary.
    def __init__(self, queue: InjectionQueue) -> None:
        self._queue = queue

    def next_item(self, library_next: TrackRef) -> InjectableRequest | TrackRef:
        injected = self._queue.pop()
        if injected is not None:
            return injected
        return library_next
