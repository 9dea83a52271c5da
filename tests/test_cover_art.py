import tempfile
import unittest
from pathlib import Path
from unittest import mock

from interlude.models.track import TrackMetadata
from interlude.services.cover_art import (
    REASON_EXTRACTED,
    REASON_NO_COVER,
    REASON_UNKNOWN_MIME,
    REASON_WRITE_FAILED,
    CoverArtManager,
)


def _with_cover(data: bytes, mime: str = "image/jpeg") -> TrackMetadata:
    return TrackMetadata(title="Song", artist="Band", cover_data=data, cover_mime=mime)


class CoverArtManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.default = Path(tmp.name) / "default.png"
        self.default.write_bytes(b"default")
        self.manager = CoverArtManager(default_cover=self.default)
        self.addCleanup(self.manager.close)

    def _cover_files(self) -> list[Path]:
        return sorted(self.manager.directory.iterdir())

    def test_starts_with_default_cover(self) -> None:
        self.assertEqual(self.manager.current, self.default)
        self.assertEqual(self._cover_files(), [])

    def test_sequence_keeps_one_live_file_and_falls_back_to_default(self) -> None:
        first = self.manager.extract(_with_cover(b"img1"))
        self.assertEqual(first.reason, REASON_EXTRACTED)
        self.assertFalse(first.is_default)
        self.assertEqual(self._cover_files(), [first.path])
        self.assertEqual(first.path.read_bytes(), b"img1")
        self.assertEqual(first.path.suffix, ".jpg")

        second = self.manager.extract(_with_cover(b"img2", "image/png"))
        self.assertEqual(self._cover_files(), [second.path])
        self.assertFalse(first.path.exists())
        self.assertEqual(self.manager.current, second.path)

        third = self.manager.extract(TrackMetadata(title="Plain"))
        self.assertTrue(third.is_default)
        self.assertEqual(third.reason, REASON_NO_COVER)
        self.assertEqual(self.manager.current, self.default)
        self.assertFalse(second.path.exists())
        self.assertEqual(self._cover_files(), [])
        self.assertTrue(self.default.exists())

    def test_same_metadata_twice_replaces_file(self) -> None:
        meta = _with_cover(b"same")
        first = self.manager.extract(meta)
        second = self.manager.extract(meta)

        self.assertNotEqual(first.path, second.path)
        self.assertFalse(first.path.exists())
        self.assertEqual(self._cover_files(), [second.path])
        self.assertEqual(self.manager.current, second.path)

    def test_unknown_mime_falls_back_to_default(self) -> None:
        self.manager.extract(_with_cover(b"img1"))
        with self.assertLogs("interlude.services.cover_art", level="WARNING"):
            result = self.manager.extract(_with_cover(b"???", "image/x-unknown"))

        self.assertTrue(result.is_default)
        self.assertEqual(result.reason, REASON_UNKNOWN_MIME)
        self.assertEqual(self.manager.current, self.default)
        self.assertEqual(self._cover_files(), [])

    def test_write_failure_falls_back_to_default(self) -> None:
        with mock.patch.object(Path, "write_bytes", side_effect=OSError("disk full")):
            with self.assertLogs("interlude.services.cover_art", level="ERROR"):
                result = self.manager.extract(_with_cover(b"img1"))

        self.assertEqual(result.reason, REASON_WRITE_FAILED)
        self.assertEqual(self.manager.current, self.default)

    def test_default_cover_is_never_deleted(self) -> None:
        self.manager.extract(TrackMetadata(title="a"))
        self.manager.extract(_with_cover(b"img"))
        self.manager.extract(TrackMetadata(title="b"))
        self.assertTrue(self.default.exists())

    def test_close_removes_private_directory(self) -> None:
        self.manager.extract(_with_cover(b"img"))
        directory = self.manager.directory
        self.manager.close()

        self.assertFalse(directory.exists())
        self.assertEqual(self.manager.current, self.default)
        self.assertTrue(self.default.exists())
        self.manager.close()

    def test_context_manager_closes(self) -> None:
        with CoverArtManager(default_cover=self.default) as manager:
            manager.extract(_with_cover(b"img", "image/gif"))
            directory = manager.directory
            self.assertTrue(manager.current.name.endswith(".gif"))
        self.assertFalse(directory.exists())


if __name__ == "__main__":
    unittest.main()
