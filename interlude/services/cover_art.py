from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path

from interlude.models.track import TrackMetadata

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
}

REASON_EXTRACTED = "extracted"
REASON_NO_COVER = "no_cover"
REASON_UNKNOWN_MIME = "unknown_mime"
REASON_WRITE_FAILED = "write_failed"


@dataclass(frozen=True)
class CoverResult:
    path: Path
    is_default: bool
    reason: str


class CoverArtManager:
    def __init__(self, default_cover: Path) -> None:
        self._default = default_cover
        self._dir = Path(tempfile.mkdtemp(prefix="interlude-cover-"))
        self._lock = threading.Lock()
        self._counter = 0
        self._current = default_cover
        self._closed = False

    @property
    def current(self) -> Path:
        with self._lock:
            return self._current

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def default(self) -> Path:
        return self._default

    def extract(self, metadata: TrackMetadata) -> CoverResult:
        result = self._write_cover(metadata)
        self._swap(result.path)
        return result

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._current = self._default
        shutil.rmtree(self._dir, ignore_errors=True)
        logger.debug("Removed cover directory %s", self._dir)

    def __enter__(self) -> CoverArtManager:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _write_cover(self, metadata: TrackMetadata) -> CoverResult:
        if not metadata.has_cover:
            logger.debug("No embedded cover for %r", metadata.title)
            return CoverResult(self._default, True, REASON_NO_COVER)

        mime = (metadata.cover_mime or "").strip().lower()
        ext = MIME_EXTENSIONS.get(mime)
        if ext is None:
            logger.warning(
                "Unknown cover MIME type %r for %r, using default cover",
                metadata.cover_mime,
                metadata.title,
            )
            return CoverResult(self._default, True, REASON_UNKNOWN_MIME)

        with self._lock:
            if self._closed:
                return CoverResult(self._default, True, REASON_WRITE_FAILED)
            self._counter += 1
            target = self._dir / f"cover-{self._counter}{ext}"

        try:
            target.write_bytes(metadata.cover_data or b"")
        except OSError:
            logger.exception("Failed to write cover file %s", target)
            target.unlink(missing_ok=True)
            return CoverResult(self._default, True, REASON_WRITE_FAILED)

        return CoverResult(target, False, REASON_EXTRACTED)

    def _swap(self, new: Path) -> None:
        with self._lock:
            if self._closed:
                if new != self._default:
                    new.unlink(missing_ok=True)
                return
            previous = self._current
            self._current = new
            if previous == new or previous == self._default:
                return
            try:
                previous.unlink()
            except FileNotFoundError:
                pass
            except OSError:
                logger.exception("Failed to delete superseded cover %s", previous)
            else:
                logger.debug("Cover %s superseded by %s", previous.name, new.name)
