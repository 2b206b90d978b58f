import tempfile
import unittest
import wave
from pathlib import Path

from mutagen.id3 import ID3, TALB, TCON, TDRC, TIT2, TPE1, TPUB, TRCK, TXXX, ID3TimeStamp
from mutagen.mp4 import MP4FreeForm, MP4Tags
from mutagen.wave import WAVE

from ongaku.meta_keys import CATALOG_NUMBER_KEYS, PUBLISHER_KEYS
from ongaku.models import ExtractionError, TagInfo
from ongaku.tagging import (
    ExtendedFields,
    MutagenTagReader,
    container_fields,
    lookup_candidates,
    normalize_key,
)


def _write_wav(path: Path, seconds: int = 2, rate: int = 8000) -> Path:
    with wave.open(str(path), "wb") as fh:
        fh.setnchannels(1)
        fh.setsampwidth(2)
        fh.setframerate(rate)
        fh.writeframes(b"\x00\x00" * rate * seconds)
    return path


def _tag_wav(path: Path) -> None:
    audio = WAVE(path)
    audio.add_tags()
    audio.tags.add(TIT2(encoding=3, text=["Song"]))
    audio.tags.add(TPE1(encoding=3, text=["Artist"]))
    audio.tags.add(TALB(encoding=3, text=["Album"]))
    audio.tags.add(TCON(encoding=3, text=["Jazz"]))
    audio.tags.add(TDRC(encoding=3, text=["1999-05-01"]))
    audio.tags.add(TRCK(encoding=3, text=["3/12"]))
    audio.tags.add(TPUB(encoding=3, text=["Lbl"]))
    audio.tags.add(TXXX(encoding=3, desc="CATALOGNUMBER", text=["CAT-1"]))
    audio.save()


class TestContainerFields(unittest.TestCase):
    def test_id3_native_and_user_frames(self) -> None:
        tags = ID3()
        tags.add(TPUB(encoding=3, text=["Warp Records"]))
        tags.add(TXXX(encoding=3, desc="CATALOGNUMBER", text=["WARP 123"]))

        fields = container_fields(tags)

        self.assertEqual(lookup_candidates(fields, PUBLISHER_KEYS), "Warp Records")
        self.assertEqual(lookup_candidates(fields, ["label"]), "Warp Records")
        self.assertEqual(lookup_candidates(fields, CATALOG_NUMBER_KEYS), "WARP 123")

    def test_mp4_freeform_atoms(self) -> None:
        tags = MP4Tags()
        tags["----:com.apple.iTunes:LABEL"] = [MP4FreeForm(b"Ninja Tune")]
        tags["----:com.apple.iTunes:CATALOG NUMBER"] = [MP4FreeForm(b"ZEN 12")]

        fields = container_fields(tags)

        self.assertEqual(lookup_candidates(fields, PUBLISHER_KEYS), "Ninja Tune")
        self.assertEqual(lookup_candidates(fields, CATALOG_NUMBER_KEYS), "ZEN 12")

    def test_plain_mapping_and_asf_names(self) -> None:
        fields = container_fields({"LABEL": ["Blue Note"], "WM/CatalogNo": ["BLP-1500"], "empty": [""]})
        self.assertEqual(lookup_candidates(fields, PUBLISHER_KEYS), "Blue Note")
        self.assertEqual(lookup_candidates(fields, ["catalogno"]), "BLP-1500")
        self.assertNotIn("empty", fields)

    def test_candidate_order_wins(self) -> None:
        fields = container_fields({"label": "Label Value", "publisher": "Publisher Value"})
        self.assertEqual(lookup_candidates(fields, ["publisher", "label"]), "Publisher Value")
        self.assertEqual(lookup_candidates(fields, ["label", "publisher"]), "Label Value")
        self.assertIsNone(lookup_candidates(fields, ["isrc"]))

    def test_missing_container(self) -> None:
        self.assertEqual(container_fields(None), {})

    def test_normalize_key(self) -> None:
        self.assertEqual(normalize_key("Catalog Number"), "catalognumber")
        self.assertEqual(normalize_key("CATALOG_NUMBER"), "catalognumber")


class _RawFile:
    def __init__(self, tags) -> None:
        self.tags = tags


class TestExtendedFields(unittest.TestCase):
    def test_generic_map_wins_without_loading_raw(self) -> None:
        loads: list = []
        fields = ExtendedFields({"publisher": ["Warp"]}, lambda: loads.append(1))
        self.assertEqual(fields.lookup(PUBLISHER_KEYS), "Warp")
        self.assertEqual(loads, [])

    def test_raw_container_is_loaded_once(self) -> None:
        loads: list = []

        def load_raw() -> _RawFile:
            loads.append(1)
            tags = ID3()
            tags.add(TPUB(encoding=3, text=["Ninja Tune"]))
            tags.add(TXXX(encoding=3, desc="CATALOG_NUMBER", text=["ZEN 12"]))
            return _RawFile(tags)

        fields = ExtendedFields({"title": ["Song"]}, load_raw)

        self.assertEqual(fields.lookup(PUBLISHER_KEYS), "Ninja Tune")
        self.assertEqual(fields.lookup(CATALOG_NUMBER_KEYS), "ZEN 12")
        self.assertIsNone(fields.lookup(["isrc"]))
        self.assertEqual(loads, [1])

    def test_missing_raw_file(self) -> None:
        fields = ExtendedFields(None, lambda: None)
        self.assertIsNone(fields.lookup(PUBLISHER_KEYS))


class TestMutagenTagReader(unittest.TestCase):
    def test_reads_tagged_wav(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_wav(Path(tmpdir) / "song.wav")
            _tag_wav(path)

            info = MutagenTagReader().read(path)

            self.assertEqual(
                info,
                TagInfo(
                    title="Song",
                    artist="Artist",
                    album="Album",
                    genre="Jazz",
                    year=1999,
                    track_number=3,
                    duration_seconds=2,
                    publisher="Lbl",
                    catalog_number="CAT-1",
                ),
            )

    def test_untagged_wav_only_has_duration(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_wav(Path(tmpdir) / "plain.wav", seconds=3)
            self.assertEqual(MutagenTagReader().read(path), TagInfo(duration_seconds=3))

    def test_extended_field(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_wav(Path(tmpdir) / "song.wav")
            _tag_wav(path)
            reader = MutagenTagReader()

            self.assertEqual(reader.extended_field(path, ["catalognumber"]), "CAT-1")
            self.assertEqual(reader.extended_field(path, ["label", "publisher"]), "Lbl")
            self.assertIsNone(reader.extended_field(path, ["isrc"]))

    def test_extended_field_on_unreadable_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "notes.txt"
            path.write_text("not audio", encoding="utf-8")
            with self.assertRaises(ExtractionError):
                MutagenTagReader().extended_field(path, ["publisher"])

    def test_non_audio_file_raises_extraction_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "notes.txt"
            path.write_text("not audio", encoding="utf-8")
            with self.assertRaises(ExtractionError):
                MutagenTagReader().read(path)

    def test_missing_file_raises_extraction_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ExtractionError):
                MutagenTagReader().read(Path(tmpdir) / "gone.mp3")

    def test_parse_year(self) -> None:
        self.assertEqual(MutagenTagReader.parse_year(ID3TimeStamp("1998")), 1998)
        self.assertEqual(MutagenTagReader.parse_year("2004-05-11"), 2004)
        self.assertEqual(MutagenTagReader.parse_year("1999/2000"), 1999)
        self.assertIsNone(MutagenTagReader.parse_year("unknown"))
        self.assertIsNone(MutagenTagReader.parse_year(None))


if __name__ == "__main__":
    unittest.main()
