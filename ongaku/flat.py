from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from .catalog import CatalogStore
from .events import ScanCompleted, ScanEvent, TrackAdded, TrackUpdated
from .models import Track

logger = logging.getLogger(__name__)

TEXT_COLUMNS = ("title", "artist", "album", "genre", "publisher", "catalog_number")
NUMERIC_COLUMNS = ("year", "track_number", "duration_seconds")
SORT_COLUMNS = TEXT_COLUMNS + NUMERIC_COLUMNS


class SortDirection(Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


def sort_key(column: str):
    if column in NUMERIC_COLUMNS:
        return lambda track: int(getattr(track, column) or 0)
    if column in TEXT_COLUMNS:
        return lambda track: (getattr(track, column) or "").casefold()
    raise ValueError(f"Unknown sort column: {column}")


class FlatLibrary:
    """Single sortable list of catalog tracks, optionally narrowed by a search term."""

    def __init__(
        self,
        catalog: CatalogStore,
        sort_column: str = "title",
        direction: SortDirection = SortDirection.ASCENDING,
        *,
        live_refresh: bool = False,
    ) -> None:
        sort_key(sort_column)
        self.catalog = catalog
        self.sort_column = sort_column
        self.direction = direction
        self.live_refresh = live_refresh
        self.search_term = ""
        self._tracks: List[Track] = []
        self.refresh()

    def __len__(self) -> int:
        return len(self._tracks)

    @property
    def tracks(self) -> List[Track]:
        return list(self._tracks)

    def refresh(self) -> None:
        if self.search_term:
            self._tracks = self.catalog.search(self.search_term)
        else:
            self._tracks = self.catalog.get_all()
        self._sort()

    def search(self, term: str) -> None:
        self.search_term = (term or "").strip()
        self.refresh()

    def show_all(self) -> None:
        self.search("")

    def set_sort(self, column: str, direction: SortDirection = SortDirection.ASCENDING) -> None:
        sort_key(column)
        self.sort_column = column
        self.direction = direction
        self._sort()

    def get_track(self, row: int) -> Optional[Track]:
        if row < 0 or row >= len(self._tracks):
            return None
        return self._tracks[row]

    def handle_event(self, event: ScanEvent) -> None:
        if isinstance(event, ScanCompleted):
            self.refresh()
        elif isinstance(event, (TrackAdded, TrackUpdated)) and self.live_refresh:
            if event.track.matches(self.search_term):
                self.refresh()

    def _sort(self) -> None:
        # list.sort is stable for reverse=True as well, ties keep their current order
        self._tracks.sort(
            key=sort_key(self.sort_column),
            reverse=self.direction is SortDirection.DESCENDING,
        )
