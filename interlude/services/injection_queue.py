from __future__ import annotations

import threading
from collections import deque

from interlude.streaming.sources.base import InjectableRequest


class InjectionQueue:
    # Pop order is push order, i.e. worker completion order.
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: deque[InjectableRequest] = deque()

    def push(self, item: InjectableRequest) -> None:
        with self._lock:
            self._items.append(item)

    def pop(self) -> InjectableRequest | None:
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def snapshot(self) -> list[InjectableRequest]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
