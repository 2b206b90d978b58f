from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

import mutagen
from mutagen.id3 import ID3
from mutagen.mp4 import MP4Tags

from .meta_keys import CATALOG_NUMBER_KEYS, ID3_FRAMES, MP4_FREEFORM_PREFIX, PUBLISHER_KEYS
from .models import ExtractionError, TagInfo, parse_int

logger = logging.getLogger(__name__)

# Fallback lookups for containers that mutagen cannot expose through its "easy" interface.
ID3_TEXT_FRAMES = {
    "title": "TIT2",
    "artist": "TPE1",
    "album": "TALB",
    "genre": "TCON",
    "date": "TDRC",
    "year": "TYER",
    "tracknumber": "TRCK",
}

ASF_FIELDS = {
    "title": "Title",
    "artist": "Author",
    "album": "WM/AlbumTitle",
    "genre": "WM/Genre",
    "date": "WM/Year",
    "tracknumber": "WM/TrackNumber",
}

_YEAR_RE = re.compile(r"\b(\d{4})\b")
_KEY_RE = re.compile(r"[^a-z0-9]")


class TagReader(Protocol):
    def read(self, path: Path) -> TagInfo:
        """Return the tags of ``path`` or raise ExtractionError."""

    def extended_field(self, path: Path, candidates: Sequence[str]) -> Optional[str]:
        """Return the first non-empty value stored under any of ``candidates``."""


class MutagenTagReader:
    """Reads common tags from any container mutagen understands."""

    def read(self, path: Path) -> TagInfo:
        audio = self._open(path, easy=True)
        tags = audio.tags
        info = TagInfo(
            title=self._text(tags, "title"),
            artist=self._text(tags, "artist"),
            album=self._text(tags, "album"),
            genre=self._text(tags, "genre"),
            year=self.parse_year(self._text(tags, "date") or self._text(tags, "year")),
            track_number=parse_int(self._text(tags, "tracknumber")),
            duration_seconds=self._duration(audio),
        )
        fields = ExtendedFields(tags, lambda: self._open_raw(path))
        info.publisher = fields.lookup(PUBLISHER_KEYS)
        info.catalog_number = fields.lookup(CATALOG_NUMBER_KEYS)
        return info

    def extended_field(self, path: Path, candidates: Sequence[str]) -> Optional[str]:
        audio = self._open(path, easy=True)
        return ExtendedFields(audio.tags, lambda: self._open_raw(path)).lookup(candidates)

    @staticmethod
    def _open(path: Path, easy: bool) -> Any:
        try:
            audio = mutagen.File(path, easy=easy)
        except (mutagen.MutagenError, OSError) as exc:
            raise ExtractionError(f"Could not read {path}: {exc}") from exc
        if audio is None:
            raise ExtractionError(f"Unsupported audio file: {path}")
        return audio

    def _open_raw(self, path: Path) -> Any:
        try:
            return self._open(path, easy=False)
        except ExtractionError as exc:
            logger.debug("Format-specific tags unavailable for %s: %s", path, exc)
            return None

    def _text(self, tags: Any, key: str) -> Optional[str]:
        if tags is None:
            return None
        if isinstance(tags, ID3):
            frame_id = ID3_TEXT_FRAMES.get(key)
            return _id3_text(tags, frame_id) if frame_id else None
        try:
            value = tags.get(key)
            if value is None and key in ASF_FIELDS:
                value = tags.get(ASF_FIELDS[key])
        except (KeyError, ValueError):
            return None
        return _first_text(value)

    @staticmethod
    def _duration(audio: Any) -> Optional[int]:
        info = getattr(audio, "info", None)
        length = getattr(info, "length", None)
        if not length:
            return None
        return max(0, int(length))

    @staticmethod
    def parse_year(value: Optional[object]) -> Optional[int]:
        if value is None:
            return None
        match = _YEAR_RE.search(str(value))
        if not match:
            return parse_int(value)
        return int(match.group(1))


def container_fields(tags: Any) -> Dict[str, str]:
    """Flatten a tag container into normalized-key -> first text value."""
    fields: Dict[str, str] = {}
    if tags is None:
        return fields
    for key, value in _iter_container(tags):
        text = _first_text(value)
        if not text:
            continue
        fields.setdefault(normalize_key(key), text)
    return fields


def lookup_candidates(fields: Mapping[str, str], candidates: Sequence[str]) -> Optional[str]:
    for candidate in candidates:
        value = fields.get(normalize_key(candidate))
        if value:
            return value
    return None


def normalize_key(key: str) -> str:
    return _KEY_RE.sub("", key.lower())


class ExtendedFields:
    """Looks up non-standard keys in the generic tag map, then in the format-specific container.

    ``load_raw`` returns the file opened without the easy interface (or None); it is
    called at most once, and only when the generic map misses a lookup.
    """

    def __init__(self, tags: Any, load_raw: Callable[[], Any]) -> None:
        self._generic = container_fields(tags)
        self._load_raw = load_raw
        self._raw: Optional[Dict[str, str]] = None

    def lookup(self, candidates: Sequence[str]) -> Optional[str]:
        value = lookup_candidates(self._generic, candidates)
        if value is not None:
            return value
        return lookup_candidates(self._raw_fields(), candidates)

    def _raw_fields(self) -> Dict[str, str]:
        if self._raw is None:
            raw = self._load_raw()
            self._raw = container_fields(raw.tags) if raw is not None else {}
        return self._raw


def _iter_container(tags: Any) -> Iterator[tuple[str, Any]]:
    if isinstance(tags, ID3):
        for frame in tags.values():
            if frame.FrameID == "TXXX":
                yield frame.desc, frame.text
                continue
            for name, frame_id in ID3_FRAMES.items():
                if frame.FrameID == frame_id:
                    yield name, frame.text
        return
    if isinstance(tags, MP4Tags):
        for key, value in tags.items():
            if key.startswith(MP4_FREEFORM_PREFIX):
                yield key[len(MP4_FREEFORM_PREFIX):], value
            elif key.startswith("----:"):
                yield key.rsplit(":", 1)[-1], value
        return
    try:
        keys = list(tags.keys())
    except (AttributeError, TypeError):
        return
    for key in keys:
        try:
            value = tags[key]
        except (KeyError, ValueError):
            continue
        # ASF names are namespaced ("WM/Publisher")
        yield str(key).rsplit("/", 1)[-1], value


def _id3_text(tags: ID3, frame_id: str) -> Optional[str]:
    frame = tags.getall(frame_id)
    if not frame:
        return None
    return _first_text(frame[0].text) if frame[0].text else None


def _first_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    if isinstance(value, bytes):
        text = value.decode("utf-8", errors="replace")
    else:
        text = str(value)
    text = text.strip()
    return text or None
