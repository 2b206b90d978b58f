from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..aggregation import GroupingMode, NodeKind
from ..app import OngakuApp
from ..flat import SortDirection
from .output import TRACK_HEADER, format_duration, format_track_row


def list_tracks(
    app: OngakuApp,
    *,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    descending: bool = False,
) -> List[str]:
    flat = app.get_flat()
    if search:
        flat.search(search)
    if sort:
        direction = SortDirection.DESCENDING if descending else SortDirection.ASCENDING
        flat.set_sort(sort, direction)
    lines = [TRACK_HEADER]
    lines.extend(format_track_row(track) for track in flat.tracks)
    return lines


def render_tree(
    app: OngakuApp,
    *,
    grouping: Optional[str] = None,
    search: Optional[str] = None,
) -> List[str]:
    tree_view = app.get_tree()
    if grouping:
        tree_view.set_grouping_mode(GroupingMode(grouping))
    if search:
        tree_view.search(search)
    tree = tree_view.tree
    lines: List[str] = []
    for index, depth, node in tree.walk():
        indent = "  " * depth
        if node.kind is NodeKind.GROUP:
            count = sum(1 for _ in tree.leaves(index))
            lines.append(f"{indent}{node.label} ({count})")
            continue
        track = node.track
        prefix = f"{track.track_number:02d}. " if track.track_number > 0 else ""
        duration = format_duration(track.duration_seconds)
        suffix = f" [{duration}]" if duration else ""
        lines.append(f"{indent}{prefix}{track.title}{suffix}")
    return lines


def stats(app: OngakuApp) -> List[str]:
    catalog = app.catalog
    return [
        f"Tracks: {catalog.count()}",
        f"Artists: {len(catalog.get_distinct('artist'))}",
        f"Albums: {len(catalog.get_distinct('album'))}",
        f"Genres: {len(catalog.get_distinct('genre'))}",
    ]


def remove(app: OngakuApp, path: Path) -> bool:
    target = path.expanduser()
    if app.catalog.remove_by_path(target):
        return True
    return app.catalog.remove_by_path(target.resolve())
