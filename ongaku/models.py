from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional


@dataclass(slots=True)
class Track:
    path: Path
    title: str = ""
    artist: str = ""
    album: str = ""
    genre: str = ""
    publisher: str = ""
    catalog_number: str = ""
    year: int = 0
    track_number: int = 0
    duration_seconds: int = 0
    file_size_bytes: int = 0
    # st_mtime_ns of the source file at the last successful extraction
    last_modified: int = 0
    id: Optional[int] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.path, Path):
            self.path = Path(self.path)
        self.year = max(0, self.year or 0)
        self.track_number = max(0, self.track_number or 0)
        self.duration_seconds = max(0, self.duration_seconds or 0)

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.last_modified / 1_000_000_000, tz=timezone.utc)

    def matches(self, term: str) -> bool:
        """Case-insensitive substring match over the searchable fields."""
        needle = term.strip().casefold()
        if not needle:
            return True
        return any(
            needle in (value or "").casefold()
            for value in (self.title, self.artist, self.album, self.genre)
        )

    def to_record(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "path": str(self.path),
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "genre": self.genre,
            "publisher": self.publisher,
            "catalog_number": self.catalog_number,
            "year": self.year,
            "track_number": self.track_number,
            "duration_seconds": self.duration_seconds,
            "file_size_bytes": self.file_size_bytes,
            "last_modified": self.last_modified,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(slots=True)
class TagInfo:
    """Raw values returned by a tag reader, before any fallback is applied."""

    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None
    track_number: Optional[int] = None
    duration_seconds: Optional[int] = None
    publisher: Optional[str] = None
    catalog_number: Optional[str] = None


class OngakuError(Exception):
    """Base class for catalog and scan failures."""


class ConfigError(OngakuError):
    """Raised when the library root is missing or invalid; no scan is started."""


class ExtractionError(OngakuError):
    """Raised when a file cannot be read; the scanner skips it and keeps going."""


class StorageError(OngakuError):
    """Raised when the catalog cannot persist or commit a change."""


def parse_int(value: object) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (tuple, list)):
        return parse_int(value[0]) if value else None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    try:
        cleaned = str(value).strip()
    except Exception:
        return None
    if "/" in cleaned:
        cleaned = cleaned.split("/", 1)[0].strip()
    if cleaned.isdigit():
        return int(cleaned)
    return None
