from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from pathlib import Path

from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.flac import Picture
from mutagen.mp4 import MP4Cover

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown artist"

_MP4_COVER_MIME = {
    MP4Cover.FORMAT_JPEG: "image/jpeg",
    MP4Cover.FORMAT_PNG: "image/png",
}


@dataclass(frozen=True)
class TrackMetadata:
    title: str
    artist: str = UNKNOWN_ARTIST
    filename: str = ""
    duration_seconds: int | None = None
    cover_data: bytes | None = field(default=None, repr=False)
    cover_mime: str | None = None

    def describe(self) -> str:
        return f"{self.title} by {self.artist}"

    @property
    def has_cover(self) -> bool:
        return bool(self.cover_data)


def read_track_metadata(path: Path) -> TrackMetadata:
    # Untagged or broken files still play: title falls back to the file stem.
    fallback = TrackMetadata(title=path.stem, filename=str(path))
    try:
        easy = MutagenFile(path, easy=True)
        raw = MutagenFile(path)
        if easy is None or raw is None:
            logger.debug("No tag reader for %s", path)
            return fallback
        return _from_tags(path, easy, raw)
    except Exception as exc:
        logger.warning("Could not read tags from %s: %r", path, exc)
        return fallback


def _from_tags(path: Path, easy: object, raw: object) -> TrackMetadata:
    duration = None
    length = getattr(getattr(raw, "info", None), "length", None)
    if isinstance(length, (int, float)):
        duration = int(length)

    cover_data, cover_mime = _embedded_cover(raw)

    return TrackMetadata(
        title=_first_tag(easy, "title") or path.stem,
        artist=_first_tag(easy, "artist") or UNKNOWN_ARTIST,
        filename=str(path),
        duration_seconds=duration,
        cover_data=cover_data,
        cover_mime=cover_mime,
    )


def _first_tag(audio: object, key: str) -> str | None:
    try:
        values = audio.get(key)  # type: ignore[attr-defined]
    except (KeyError, ValueError):
        return None
    if not values:
        return None
    value = str(values[0]).strip()
    return value or None


def _embedded_cover(audio: object) -> tuple[bytes | None, str | None]:
    # FLAC
    pictures = getattr(audio, "pictures", None)
    if pictures:
        return pictures[0].data, pictures[0].mime

    tags = getattr(audio, "tags", None)
    if tags is None:
        return None, None

    # ID3 (mp3)
    getall = getattr(tags, "getall", None)
    if callable(getall):
        frames = getall("APIC")
        if frames:
            return frames[0].data, frames[0].mime
        return None, None

    # Ogg Vorbis / Opus
    blocks = tags.get("metadata_block_picture") if hasattr(tags, "get") else None
    if blocks:
        try:
            picture = Picture(base64.b64decode(blocks[0]))
        except (ValueError, MutagenError) as exc:
            logger.warning("Broken picture block: %s", exc)
            return None, None
        return picture.data, picture.mime

    # MP4
    covers = tags.get("covr") if hasattr(tags, "get") else None
    if covers:
        cover = covers[0]
        return bytes(cover), _MP4_COVER_MIME.get(cover.imageformat)

    return None, None
