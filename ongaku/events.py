from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Union

from .models import Track

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScanStarted:
    root: Path


@dataclass(frozen=True, slots=True)
class ScanProgress:
    current: int
    total: int


@dataclass(frozen=True, slots=True)
class FileVisited:
    path: Path


@dataclass(frozen=True, slots=True)
class TrackAdded:
    track: Track


@dataclass(frozen=True, slots=True)
class TrackUpdated:
    track: Track


@dataclass(frozen=True, slots=True)
class ScanCompleted:
    found: int
    added: int
    updated: int
    skipped: int = 0
    total: int = 0
    cancelled: bool = False


@dataclass(frozen=True, slots=True)
class ScanError:
    message: str


ScanEvent = Union[
    ScanStarted,
    ScanProgress,
    FileVisited,
    TrackAdded,
    TrackUpdated,
    ScanCompleted,
    ScanError,
]

Subscriber = Callable[[ScanEvent], None]


class EventBus:
    """Delivers scan events synchronously, in emission order, to every subscriber."""

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event: ScanEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s", callback, type(event).__name__)
