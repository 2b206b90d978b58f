from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..models import Track


@dataclass(frozen=True, slots=True)
class CheckLine:
    label: str
    status: str
    detail: Optional[str] = None

    def render(self) -> str:
        if self.detail:
            return f"{self.label}: {self.status} ({self.detail})"
        return f"{self.label}: {self.status}"


def ok(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "OK", detail).render()


def warning(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "WARNING", detail).render()


def error(label: str, detail: Optional[str] = None) -> str:
    return CheckLine(label, "ERROR", detail).render()


def format_duration(seconds: int) -> str:
    if seconds <= 0:
        return ""
    minutes, seconds = divmod(int(seconds), 60)
    return f"{minutes}:{seconds:02d}"


def format_track_row(track: Track) -> str:
    year = str(track.year) if track.year > 0 else ""
    number = str(track.track_number) if track.track_number > 0 else ""
    columns = [
        track.title,
        track.artist,
        track.album,
        track.genre,
        track.publisher,
        track.catalog_number,
        year,
        number,
        format_duration(track.duration_seconds),
    ]
    return " | ".join(columns)


TRACK_HEADER = " | ".join(
    ["Title", "Artist", "Album", "Genre", "Publisher", "Catalog #", "Year", "Track", "Duration"]
)
