from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, Iterator, List, Optional, Sequence

from .catalog import CatalogStore
from .events import ScanCompleted, ScanEvent, TrackAdded, TrackUpdated
from .meta_keys import UNKNOWN_YEAR
from .models import Track

logger = logging.getLogger(__name__)

ROOT = 0


class GroupingMode(Enum):
    ARTIST_THEN_ALBUM = "artist_album"
    ALBUM_ONLY = "album"
    GENRE = "genre"
    YEAR = "year"


class NodeKind(Enum):
    ROOT = "root"
    GROUP = "group"
    TRACK = "track"


@dataclass(slots=True)
class GroupNode:
    kind: NodeKind
    label: str = ""
    key: Hashable = None
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    track: Optional[Track] = None

    @property
    def is_leaf(self) -> bool:
        return self.kind is NodeKind.TRACK


class GroupTree:
    """Arena of nodes; parents and children refer to each other by index."""

    def __init__(self, mode: GroupingMode) -> None:
        self.mode = mode
        self.nodes: List[GroupNode] = [GroupNode(kind=NodeKind.ROOT)]

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, index: int) -> GroupNode:
        return self.nodes[index]

    @property
    def root(self) -> GroupNode:
        return self.nodes[ROOT]

    def children(self, index: int = ROOT) -> List[GroupNode]:
        return [self.nodes[child] for child in self.nodes[index].children]

    def add_group(self, parent: int, label: str, key: Hashable) -> int:
        return self._append(GroupNode(kind=NodeKind.GROUP, label=label, key=key, parent=parent))

    def add_leaf(self, parent: int, track: Track) -> int:
        return self._append(
            GroupNode(kind=NodeKind.TRACK, label=track.title, key=track.id, parent=parent, track=track)
        )

    def _append(self, node: GroupNode) -> int:
        index = len(self.nodes)
        self.nodes.append(node)
        self.nodes[node.parent].children.append(index)
        return index

    def leaves(self, index: int = ROOT) -> Iterator[Track]:
        node = self.nodes[index]
        if node.track is not None:
            yield node.track
        for child in node.children:
            yield from self.leaves(child)

    def walk(self, index: int = ROOT, depth: int = 0) -> Iterator[tuple[int, int, GroupNode]]:
        """Depth-first (index, depth, node) below ``index``, excluding it."""
        for child in self.nodes[index].children:
            yield child, depth, self.nodes[child]
            yield from self.walk(child, depth + 1)

    @property
    def track_count(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf)


def build_tree(tracks: Sequence[Track], mode: GroupingMode) -> GroupTree:
    """Group ``tracks`` in one pass; groups appear in first-encounter order."""
    tree = GroupTree(mode)
    lookup: Dict[Hashable, int] = {}

    def group(parent: int, key: Hashable, label: str) -> int:
        index = lookup.get(key)
        if index is None:
            index = tree.add_group(parent, label, key)
            lookup[key] = index
        return index

    for track in tracks:
        if mode is GroupingMode.ARTIST_THEN_ALBUM:
            artist = group(ROOT, ("artist", track.artist), track.artist)
            parent = group(artist, ("album", track.artist, track.album), track.album)
        elif mode is GroupingMode.ALBUM_ONLY:
            parent = group(ROOT, track.album, track.album)
        elif mode is GroupingMode.GENRE:
            parent = group(ROOT, track.genre, track.genre)
        else:
            year = track.year if track.year > 0 else 0
            parent = group(ROOT, year, str(year) if year else UNKNOWN_YEAR)
        tree.add_leaf(parent, track)
    return tree


class LibraryTree:
    """Grouped view over the catalog, rebuilt from scratch on every change."""

    def __init__(
        self,
        catalog: CatalogStore,
        mode: GroupingMode = GroupingMode.ARTIST_THEN_ALBUM,
        *,
        live_refresh: bool = False,
    ) -> None:
        self.catalog = catalog
        self.mode = mode
        self.live_refresh = live_refresh
        self.search_term = ""
        self.tree = GroupTree(mode)
        self.refresh()

    def refresh(self) -> None:
        if self.search_term:
            tracks = self.catalog.search(self.search_term)
        else:
            tracks = self.catalog.get_all()
        self.tree = build_tree(tracks, self.mode)
        logger.debug(
            "Rebuilt %s tree: %d groups, %d tracks",
            self.mode.value,
            len(self.tree) - self.tree.track_count - 1,
            self.tree.track_count,
        )

    def search(self, term: str) -> None:
        self.search_term = (term or "").strip()
        self.refresh()

    def show_all(self) -> None:
        self.search("")

    def set_grouping_mode(self, mode: GroupingMode) -> None:
        if mode is self.mode:
            return
        self.mode = mode
        self.refresh()

    def get_track(self, index: int) -> Optional[Track]:
        if index < 0 or index >= len(self.tree):
            return None
        return self.tree.node(index).track

    def handle_event(self, event: ScanEvent) -> None:
        if isinstance(event, ScanCompleted):
            self.refresh()
        elif isinstance(event, (TrackAdded, TrackUpdated)) and self.live_refresh:
            if event.track.matches(self.search_term):
                self.refresh()
