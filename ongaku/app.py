from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .aggregation import GroupingMode, LibraryTree
from .catalog import CatalogStore
from .config import Settings
from .events import EventBus
from .flat import FlatLibrary, SortDirection
from .scanner import MusicScanner
from .scheduling import ManualScheduler, Scheduler
from .tagging import MutagenTagReader, TagReader

logger = logging.getLogger(__name__)


@dataclass
class OngakuApp:
    settings: Settings
    catalog: CatalogStore
    events: EventBus
    scanner: MusicScanner
    scheduler: Scheduler
    _tree: LibraryTree | None = None
    _flat: FlatLibrary | None = None
    _unsubscribe: List[Callable[[], None]] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        settings: Settings,
        *,
        scheduler: Optional[Scheduler] = None,
        reader: Optional[TagReader] = None,
        catalog: Optional[CatalogStore] = None,
    ) -> "OngakuApp":
        catalog = catalog or CatalogStore(settings.catalog.path)
        scheduler = scheduler or ManualScheduler()
        events = EventBus()
        scanner = MusicScanner(
            catalog,
            reader or MutagenTagReader(),
            scheduler,
            events=events,
            library=settings.library,
            batch_size=settings.scanner.batch_size,
        )
        return cls(
            settings=settings,
            catalog=catalog,
            events=events,
            scanner=scanner,
            scheduler=scheduler,
        )

    def get_tree(self) -> LibraryTree:
        if self._tree is None:
            try:
                mode = GroupingMode(self.settings.views.grouping)
            except ValueError:
                logger.warning(
                    "Unknown grouping %r; using %s",
                    self.settings.views.grouping,
                    GroupingMode.ARTIST_THEN_ALBUM.value,
                )
                mode = GroupingMode.ARTIST_THEN_ALBUM
            self._tree = LibraryTree(
                self.catalog, mode, live_refresh=self.settings.scanner.live_refresh
            )
            self._unsubscribe.append(self.events.subscribe(self._tree.handle_event))
        return self._tree

    def get_flat(self) -> FlatLibrary:
        if self._flat is None:
            direction = (
                SortDirection.DESCENDING
                if self.settings.views.sort_descending
                else SortDirection.ASCENDING
            )
            self._flat = FlatLibrary(
                self.catalog,
                self.settings.views.sort_column,
                direction,
                live_refresh=self.settings.scanner.live_refresh,
            )
            self._unsubscribe.append(self.events.subscribe(self._flat.handle_event))
        return self._flat

    def close(self) -> None:
        if self.scanner.is_scanning():
            self.scanner.stop_scanning()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()
        self.catalog.close()
