from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import replace
from pathlib import Path
from threading import Lock
from typing import Callable, List, Optional

from .models import StorageError, Track

logger = logging.getLogger(__name__)

TRACK_COLUMNS = (
    "path",
    "title",
    "artist",
    "album",
    "genre",
    "publisher",
    "catalog_number",
    "year",
    "track_number",
    "duration_seconds",
    "file_size_bytes",
    "last_modified",
)

DISTINCT_FIELDS = {"artist", "album", "genre", "publisher"}

CATALOG_ORDER = "ORDER BY artist, album, track_number, path, id"


class CatalogStore:
    """SQLite-backed catalog of track records, unique by path.

    Writes issued between ``begin()`` and ``commit()`` share one transaction and
    only become durable on commit; outside a transaction every write commits
    on its own.
    """

    def __init__(self, path: Path | str, clock: Callable[[], float] = time.time) -> None:
        self.path = Path(path) if str(path) != ":memory:" else None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._lock = Lock()
        try:
            self._conn = sqlite3.connect(
                str(self.path) if self.path is not None else ":memory:",
                check_same_thread=False,
                isolation_level=None,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.create_function("casefold", 1, _casefold, deterministic=True)
            self._create_schema()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open catalog {path}: {exc}") from exc

    def _create_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tracks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                path TEXT UNIQUE NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                artist TEXT NOT NULL DEFAULT '',
                album TEXT NOT NULL DEFAULT '',
                genre TEXT NOT NULL DEFAULT '',
                publisher TEXT NOT NULL DEFAULT '',
                catalog_number TEXT NOT NULL DEFAULT '',
                year INTEGER NOT NULL DEFAULT 0 CHECK (year >= 0),
                track_number INTEGER NOT NULL DEFAULT 0 CHECK (track_number >= 0),
                duration_seconds INTEGER NOT NULL DEFAULT 0 CHECK (duration_seconds >= 0),
                file_size_bytes INTEGER NOT NULL DEFAULT 0,
                last_modified INTEGER NOT NULL DEFAULT 0,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
            """
        )
        for column in ("artist", "album", "genre", "title", "path"):
            self._conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_tracks_{column} ON tracks({column})"
            )

    def close(self) -> None:
        with self._lock:
            if self._conn.in_transaction:
                logger.warning("Closing catalog with an open transaction; rolling back")
                self._conn.execute("ROLLBACK")
            self._conn.close()

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    def begin(self) -> None:
        with self._lock:
            if self._conn.in_transaction:
                raise StorageError("A catalog transaction is already open")
            try:
                self._conn.execute("BEGIN")
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to begin transaction: {exc}") from exc

    def commit(self) -> None:
        with self._lock:
            if not self._conn.in_transaction:
                return
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to commit transaction: {exc}") from exc

    def rollback(self) -> None:
        with self._lock:
            if not self._conn.in_transaction:
                return
            try:
                self._conn.execute("ROLLBACK")
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to roll back transaction: {exc}") from exc

    def upsert(self, track: Track) -> Track:
        key = str(track.path)
        now = self._clock()
        values = (
            key,
            track.title,
            track.artist,
            track.album,
            track.genre,
            track.publisher,
            track.catalog_number,
            int(track.year),
            int(track.track_number),
            int(track.duration_seconds),
            int(track.file_size_bytes),
            int(track.last_modified),
        )
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT id, created_at FROM tracks WHERE path = ?", (key,)
                ).fetchone()
                if row is None:
                    cursor = self._conn.execute(
                        f"""
                        INSERT INTO tracks({", ".join(TRACK_COLUMNS)}, created_at, updated_at)
                        VALUES({", ".join("?" for _ in TRACK_COLUMNS)}, ?, ?)
                        """,
                        values + (now, now),
                    )
                    track_id = int(cursor.lastrowid)
                    created_at = updated_at = now
                else:
                    track_id = int(row["id"])
                    created_at = float(row["created_at"])
                    updated_at = max(now, created_at)
                    assignments = ", ".join(f"{column}=?" for column in TRACK_COLUMNS[1:])
                    self._conn.execute(
                        f"UPDATE tracks SET {assignments}, updated_at=? WHERE id = ?",
                        values[1:] + (updated_at, track_id),
                    )
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to store {key}: {exc}") from exc
        return replace(track, id=track_id, created_at=created_at, updated_at=updated_at)

    def remove_by_path(self, path: Path | str) -> bool:
        return self._delete("DELETE FROM tracks WHERE path = ?", (str(path),))

    def remove_by_id(self, track_id: int) -> bool:
        return self._delete("DELETE FROM tracks WHERE id = ?", (int(track_id),))

    def clear(self) -> None:
        self._delete("DELETE FROM tracks", ())

    def _delete(self, sql: str, params: tuple) -> bool:
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to delete tracks: {exc}") from exc
        return cursor.rowcount > 0

    def exists(self, path: Path | str) -> bool:
        return self._fetchone("SELECT 1 FROM tracks WHERE path = ?", (str(path),)) is not None

    def get_by_path(self, path: Path | str) -> Optional[Track]:
        rows = self._select("SELECT * FROM tracks WHERE path = ?", (str(path),))
        return rows[0] if rows else None

    def get_by_id(self, track_id: int) -> Optional[Track]:
        rows = self._select("SELECT * FROM tracks WHERE id = ?", (int(track_id),))
        return rows[0] if rows else None

    def get_all(self) -> List[Track]:
        return self._select(f"SELECT * FROM tracks {CATALOG_ORDER}", ())

    def search(self, term: str) -> List[Track]:
        needle = _casefold(term)
        if not needle:
            return self.get_all()
        tracks = self._select(
            f"""
            SELECT * FROM tracks
            WHERE instr(casefold(title), ?) > 0
               OR instr(casefold(artist), ?) > 0
               OR instr(casefold(album), ?) > 0
               OR instr(casefold(genre), ?) > 0
            {CATALOG_ORDER}
            """,
            (needle, needle, needle, needle),
        )
        logger.debug("Search for %r returned %d tracks", term, len(tracks))
        return tracks

    def tracks_by_artist(self, artist: str) -> List[Track]:
        return self._select(
            "SELECT * FROM tracks WHERE artist = ? ORDER BY album, track_number, path",
            (artist,),
        )

    def tracks_by_album(self, album: str) -> List[Track]:
        return self._select(
            "SELECT * FROM tracks WHERE album = ? ORDER BY track_number, path",
            (album,),
        )

    def tracks_by_genre(self, genre: str) -> List[Track]:
        return self._select(
            f"SELECT * FROM tracks WHERE genre = ? {CATALOG_ORDER}",
            (genre,),
        )

    def get_distinct(self, field: str) -> List[str]:
        if field not in DISTINCT_FIELDS:
            raise ValueError(f"Unsupported distinct field: {field}")
        with self._lock:
            try:
                rows = self._conn.execute(
                    f"SELECT DISTINCT {field} FROM tracks WHERE {field} IS NOT NULL AND {field} != '' ORDER BY {field}"
                ).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(f"Catalog query failed: {exc}") from exc
        return [row[0] for row in rows]

    def count(self) -> int:
        row = self._fetchone("SELECT COUNT(*) FROM tracks", ())
        return int(row[0]) if row else 0

    def _fetchone(self, sql: str, params: tuple) -> Optional[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchone()
            except sqlite3.Error as exc:
                raise StorageError(f"Catalog query failed: {exc}") from exc

    def _select(self, sql: str, params: tuple) -> List[Track]:
        with self._lock:
            try:
                rows = self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(f"Catalog query failed: {exc}") from exc
        return [_track_from_row(row) for row in rows]


def _track_from_row(row: sqlite3.Row) -> Track:
    return Track(
        id=int(row["id"]),
        path=Path(row["path"]),
        title=row["title"] or "",
        artist=row["artist"] or "",
        album=row["album"] or "",
        genre=row["genre"] or "",
        publisher=row["publisher"] or "",
        catalog_number=row["catalog_number"] or "",
        year=int(row["year"] or 0),
        track_number=int(row["track_number"] or 0),
        duration_seconds=int(row["duration_seconds"] or 0),
        file_size_bytes=int(row["file_size_bytes"] or 0),
        last_modified=int(row["last_modified"] or 0),
        created_at=float(row["created_at"]),
        updated_at=float(row["updated_at"]),
    )


def _casefold(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip().casefold()
