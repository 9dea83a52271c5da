from interlude.streaming.sources.base import InjectableRequest, MusicSource, TrackRef
from interlude.streaming.sources.local import LocalLibrarySource

__all__ = ["InjectableRequest", "MusicSource", "TrackRef", "LocalLibrarySource"]
