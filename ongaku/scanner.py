from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

from .catalog import CatalogStore
from .config import LibrarySettings
from .events import (
    EventBus,
    FileVisited,
    ScanCompleted,
    ScanError,
    ScanProgress,
    ScanStarted,
    TrackAdded,
    TrackUpdated,
)
from .fs_utils import is_directory, safe_stat
from .meta_keys import UNKNOWN_ALBUM, UNKNOWN_ARTIST, UNKNOWN_GENRE
from .models import ConfigError, ExtractionError, StorageError, TagInfo, Track
from .scheduling import Handle, Scheduler
from .tagging import TagReader

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


class LibraryScanner:
    """Lists the audio files below a root directory."""

    def __init__(self, settings: LibrarySettings) -> None:
        self.settings = settings
        self._exts = {ext.lower() for ext in self.settings.include_extensions}

    def set_extensions(self, extensions: Iterable[str]) -> None:
        exts = set()
        for ext in extensions:
            ext = ext.strip().lower()
            if ext:
                exts.add(ext if ext.startswith(".") else f".{ext}")
        self._exts = exts

    @property
    def extensions(self) -> List[str]:
        return sorted(self._exts)

    def collect_files(self, root: Path) -> List[Path]:
        def _on_error(exc: OSError) -> None:
            if exc.filename is not None and Path(exc.filename) == root:
                raise exc
            logger.warning("Cannot read directory %s: %s", exc.filename, exc.strerror)

        files: List[Path] = []
        for dirpath, _, filenames in os.walk(root, onerror=_on_error):
            directory = Path(dirpath)
            for name in filenames:
                file_path = directory / name
                if not file_path.is_file():
                    continue
                if not self._should_include(file_path):
                    continue
                files.append(file_path)
        return files

    def _should_include(self, path: Path) -> bool:
        if path.suffix.lower() not in self._exts:
            return False
        rel = str(path)
        for pattern in self.settings.exclude_patterns:
            if fnmatch.fnmatch(rel, pattern):
                return False
        return True


class ScanState(Enum):
    IDLE = "idle"
    ENUMERATING = "enumerating"
    PROCESSING = "processing"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class ScanSession:
    root: Path
    files: List[Path] = field(default_factory=list)
    cursor: int = 0
    found: int = 0
    added: int = 0
    updated: int = 0
    skipped: int = 0
    unchanged: int = 0
    stop_requested: bool = False


class MusicScanner:
    """Incremental, cancellable scan of one library root into the catalog.

    Files are processed in batches of ``batch_size``; each batch runs as one
    call scheduled on ``scheduler`` so the caller's loop regains control
    between batches. All writes of a session share one catalog transaction
    that is committed when the session completes or is stopped.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        reader: TagReader,
        scheduler: Scheduler,
        *,
        events: Optional[EventBus] = None,
        library: Optional[LibrarySettings] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.catalog = catalog
        self.reader = reader
        self.scheduler = scheduler
        self.events = events or EventBus()
        self.files = LibraryScanner(library or LibrarySettings())
        self.batch_size = batch_size
        self._state = ScanState.IDLE
        self._last_outcome: Optional[ScanState] = None
        self._session: Optional[ScanSession] = None
        self._tick: Optional[Handle] = None
        self._in_batch = False

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def last_outcome(self) -> Optional[ScanState]:
        return self._last_outcome

    @property
    def session(self) -> Optional[ScanSession]:
        return self._session

    def is_scanning(self) -> bool:
        return self._session is not None

    def set_supported_formats(self, formats: Iterable[str]) -> None:
        self.files.set_extensions(formats)

    def scan_library(self, root_dir: Path | str | None) -> bool:
        if self._session is not None:
            logger.debug("Scan already in progress; ignoring request for %s", root_dir)
            return False
        root = self._validate_root(root_dir)

        session = ScanSession(root=root)
        self._session = session
        self._state = ScanState.ENUMERATING
        logger.info("Starting library scan in %s", root)
        self.events.emit(ScanStarted(root))
        if self._session is not session:
            return True

        try:
            session.files = self.files.collect_files(root)
        except OSError as exc:
            self._fail(f"Failed to list music files in {root}: {exc}")
            return True
        session.found = len(session.files)
        logger.info("Found %d music files", session.found)

        if session.found == 0:
            self._finish(ScanState.COMPLETED, ScanCompleted(found=0, added=0, updated=0))
            return True

        try:
            self.catalog.begin()
        except StorageError as exc:
            self._fail(str(exc))
            return True
        self._state = ScanState.PROCESSING
        self._schedule()
        return True

    def stop_scanning(self) -> bool:
        session = self._session
        if session is None:
            return False
        if self._in_batch:
            # honored once the running batch finishes
            session.stop_requested = True
            return True
        self._cancel_tick()
        logger.info("Scan stopped by user after %d of %d files", session.cursor, session.found)
        self._commit_and_finish(session, cancelled=True)
        return True

    def process_batch(self) -> None:
        self._tick = None
        session = self._session
        if session is None or self._state is not ScanState.PROCESSING:
            return
        self._in_batch = True
        try:
            processed = 0
            while processed < self.batch_size and session.cursor < session.found:
                self._process_next_file(session)
                session.cursor += 1
                processed += 1
        finally:
            self._in_batch = False

        self.events.emit(ScanProgress(session.cursor, session.found))
        if self._session is not session:
            return
        if session.cursor >= session.found:
            self._commit_and_finish(session, cancelled=False)
        elif session.stop_requested:
            logger.info("Scan stopped by user after %d of %d files", session.cursor, session.found)
            self._commit_and_finish(session, cancelled=True)
        else:
            self._schedule()

    def _process_next_file(self, session: ScanSession) -> None:
        path = session.files[session.cursor]
        self.events.emit(FileVisited(path))
        try:
            existing = self.catalog.get_by_path(path)
            stat = safe_stat(path)
            if stat is None:
                raise ExtractionError(f"File disappeared during scan: {path}")
            if existing is not None and not self.is_file_newer(stat.st_mtime_ns, existing.last_modified):
                session.skipped += 1
                session.unchanged += 1
                return
            tags = self.reader.read(path)
            track = build_track(path, tags, size_bytes=stat.st_size, mtime_ns=stat.st_mtime_ns)
            stored = self.catalog.upsert(track)
        except ExtractionError as exc:
            session.skipped += 1
            logger.warning("Skipping unreadable file %s: %s", path, exc)
            return
        except StorageError as exc:
            session.skipped += 1
            logger.warning("Failed to save track %s: %s", path, exc)
            return
        except Exception:
            session.skipped += 1
            logger.exception("Unexpected error processing %s", path)
            return

        if existing is None:
            session.added += 1
            self.events.emit(TrackAdded(stored))
        else:
            session.updated += 1
            self.events.emit(TrackUpdated(stored))

    @staticmethod
    def is_file_newer(mtime_ns: int, stored_mtime_ns: int) -> bool:
        return mtime_ns > stored_mtime_ns

    def _validate_root(self, root_dir: Path | str | None) -> Path:
        if root_dir is None or str(root_dir).strip() == "":
            logger.error("Music directory not set")
            raise ConfigError("Music directory not set")
        root = Path(root_dir).expanduser()
        if not is_directory(root):
            logger.error("Music directory does not exist: %s", root)
            raise ConfigError(f"Music directory does not exist: {root}")
        return root.resolve()

    def _schedule(self) -> None:
        self._tick = self.scheduler.call_soon(self.process_batch)

    def _cancel_tick(self) -> None:
        if self._tick is not None:
            self._tick.cancel()
            self._tick = None

    def _commit_and_finish(self, session: ScanSession, cancelled: bool) -> None:
        try:
            self.catalog.commit()
        except StorageError as exc:
            self._fail(f"Failed to commit scan results: {exc}")
            return
        if cancelled:
            event = ScanCompleted(
                found=session.cursor,
                added=session.added,
                updated=session.updated,
                skipped=session.skipped,
                total=session.found,
                cancelled=True,
            )
            self._finish(ScanState.STOPPED, event)
            return
        logger.info(
            "Scan completed. Found: %d Added: %d Updated: %d Skipped: %d (unchanged: %d)",
            session.found,
            session.added,
            session.updated,
            session.skipped,
            session.unchanged,
        )
        event = ScanCompleted(
            found=session.found,
            added=session.added,
            updated=session.updated,
            skipped=session.skipped,
            total=session.found,
        )
        self._finish(ScanState.COMPLETED, event)

    def _fail(self, message: str) -> None:
        logger.error("%s", message)
        if self.catalog.in_transaction:
            try:
                self.catalog.rollback()
            except StorageError as exc:
                logger.error("Rollback failed: %s", exc)
        self._finish(ScanState.ERROR, ScanError(message))

    def _finish(self, outcome: ScanState, event: ScanCompleted | ScanError) -> None:
        self._cancel_tick()
        self._session = None
        self._last_outcome = outcome
        self._state = ScanState.IDLE
        self.events.emit(event)


def build_track(path: Path, tags: TagInfo, *, size_bytes: int, mtime_ns: int) -> Track:
    """Apply the blank-field fallbacks to freshly read tags."""
    return Track(
        path=path,
        title=_clean(tags.title) or path.stem,
        artist=_clean(tags.artist) or UNKNOWN_ARTIST,
        album=_clean(tags.album) or UNKNOWN_ALBUM,
        genre=_clean(tags.genre) or UNKNOWN_GENRE,
        publisher=_clean(tags.publisher),
        catalog_number=_clean(tags.catalog_number),
        year=tags.year or 0,
        track_number=tags.track_number or 0,
        duration_seconds=tags.duration_seconds or 0,
        file_size_bytes=size_bytes,
        last_modified=mtime_ns,
    )


def _clean(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip()
