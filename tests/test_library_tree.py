import unittest
from pathlib import Path

from ongaku.aggregation import GroupingMode, LibraryTree, NodeKind, build_tree
from ongaku.catalog import CatalogStore
from ongaku.events import ScanCompleted, TrackAdded
from ongaku.models import Track


def _track(name: str, **fields) -> Track:
    return Track(path=Path("/music") / name, title=name, **fields)


class TestBuildTree(unittest.TestCase):
    def test_artist_then_album_groups(self) -> None:
        tracks = [
            _track("1", artist="A", album="X", track_number=1),
            _track("2", artist="A", album="X", track_number=2),
            _track("3", artist="A", album="Y", track_number=1),
            _track("4", artist="B", album="Z", track_number=1),
            _track("5", artist="B", album="Z", track_number=2),
            _track("6", artist="B", album="Z", track_number=3),
        ]
        tree = build_tree(tracks, GroupingMode.ARTIST_THEN_ALBUM)

        artists = tree.children()
        self.assertEqual([node.label for node in artists], ["A", "B"])
        albums_a = tree.children(tree.root.children[0])
        albums_b = tree.children(tree.root.children[1])
        self.assertEqual([node.label for node in albums_a], ["X", "Y"])
        self.assertEqual([node.label for node in albums_b], ["Z"])
        x_leaves = tree.children(tree.node(tree.root.children[0]).children[0])
        self.assertEqual([node.track.title for node in x_leaves], ["1", "2"])
        self.assertEqual(len(tree.children(tree.node(tree.root.children[0]).children[1])), 1)
        z_leaves = tree.children(tree.node(tree.root.children[1]).children[0])
        self.assertEqual([node.track.title for node in z_leaves], ["4", "5", "6"])
        self.assertEqual(tree.track_count, 6)

    def test_same_album_name_under_different_artists_stays_separate(self) -> None:
        tracks = [
            _track("1", artist="A", album="Greatest Hits"),
            _track("2", artist="B", album="Greatest Hits"),
        ]
        tree = build_tree(tracks, GroupingMode.ARTIST_THEN_ALBUM)
        for artist_index in tree.root.children:
            albums = tree.children(artist_index)
            self.assertEqual(len(albums), 1)
            self.assertEqual(len(albums[0].children), 1)

    def test_year_groups_with_unknown_bucket(self) -> None:
        tracks = [
            _track("a", year=2001),
            _track("b", year=0),
            _track("c", year=1999),
            _track("d", year=2001),
        ]
        tree = build_tree(tracks, GroupingMode.YEAR)

        groups = tree.children()
        self.assertEqual([node.label for node in groups], ["2001", "Unknown Year", "1999"])
        self.assertEqual([node.key for node in groups], [2001, 0, 1999])
        self.assertEqual([t.title for t in tree.leaves(tree.root.children[0])], ["a", "d"])

    def test_album_and_genre_modes(self) -> None:
        tracks = [
            _track("1", album="X", genre="Rock"),
            _track("2", album="Y", genre="Rock"),
            _track("3", album="X", genre="Jazz"),
        ]
        album_tree = build_tree(tracks, GroupingMode.ALBUM_ONLY)
        self.assertEqual([n.label for n in album_tree.children()], ["X", "Y"])
        genre_tree = build_tree(tracks, GroupingMode.GENRE)
        self.assertEqual([n.label for n in genre_tree.children()], ["Rock", "Jazz"])
        self.assertEqual([t.title for t in genre_tree.leaves(genre_tree.root.children[0])], ["1", "2"])

    def test_walk_reports_depth(self) -> None:
        tree = build_tree([_track("1", artist="A", album="X")], GroupingMode.ARTIST_THEN_ALBUM)
        shape = [(depth, node.kind) for _, depth, node in tree.walk()]
        self.assertEqual(shape, [(0, NodeKind.GROUP), (1, NodeKind.GROUP), (2, NodeKind.TRACK)])

    def test_empty_input(self) -> None:
        tree = build_tree([], GroupingMode.GENRE)
        self.assertEqual(tree.children(), [])
        self.assertEqual(tree.track_count, 0)


class TestLibraryTree(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = CatalogStore(":memory:")
        self.catalog.upsert(_track("Teardrop", artist="Massive Attack", album="Mezzanine", genre="Trip Hop", year=1998))
        self.catalog.upsert(_track("Angel", artist="Massive Attack", album="Mezzanine", genre="Trip Hop", year=1998))
        self.catalog.upsert(_track("Roads", artist="Portishead", album="Dummy", genre="Trip Hop", year=1994))

    def tearDown(self) -> None:
        self.catalog.close()

    def test_refresh_reflects_catalog(self) -> None:
        view = LibraryTree(self.catalog)
        self.assertEqual([n.label for n in view.tree.children()], ["Massive Attack", "Portishead"])
        self.assertEqual(view.tree.track_count, 3)

    def test_search_narrows_and_show_all_restores(self) -> None:
        view = LibraryTree(self.catalog)
        view.search("  PORTIS ")
        self.assertEqual(view.search_term, "PORTIS")
        self.assertEqual([t.title for t in view.tree.leaves()], ["Roads"])
        view.show_all()
        self.assertEqual(view.tree.track_count, 3)

    def test_changing_grouping_rebuilds(self) -> None:
        view = LibraryTree(self.catalog)
        view.set_grouping_mode(GroupingMode.YEAR)
        self.assertEqual([n.label for n in view.tree.children()], ["1998", "1994"])
        view.set_grouping_mode(GroupingMode.GENRE)
        self.assertEqual([n.label for n in view.tree.children()], ["Trip Hop"])

    def test_get_track_only_for_leaves(self) -> None:
        view = LibraryTree(self.catalog)
        indexes = {node.kind: index for index, _, node in view.tree.walk()}
        self.assertIsNone(view.get_track(indexes[NodeKind.GROUP]))
        self.assertIsNotNone(view.get_track(indexes[NodeKind.TRACK]))
        self.assertIsNone(view.get_track(0))
        self.assertIsNone(view.get_track(999))
        self.assertIsNone(view.get_track(-1))

    def test_scan_completion_triggers_refresh(self) -> None:
        view = LibraryTree(self.catalog)
        self.catalog.upsert(_track("Glory Box", artist="Portishead", album="Dummy"))
        self.assertEqual(view.tree.track_count, 3)
        view.handle_event(ScanCompleted(found=1, added=1, updated=0))
        self.assertEqual(view.tree.track_count, 4)

    def test_live_refresh_only_when_enabled(self) -> None:
        quiet = LibraryTree(self.catalog)
        live = LibraryTree(self.catalog, live_refresh=True)
        stored = self.catalog.upsert(_track("Glory Box", artist="Portishead", album="Dummy"))
        quiet.handle_event(TrackAdded(stored))
        live.handle_event(TrackAdded(stored))
        self.assertEqual(quiet.tree.track_count, 3)
        self.assertEqual(live.tree.track_count, 4)


if __name__ == "__main__":
    unittest.main()
