import unittest
from pathlib import Path

from ongaku.events import EventBus, FileVisited, ScanProgress, ScanStarted


class TestEventBus(unittest.TestCase):
    def test_delivers_in_order_to_every_subscriber(self) -> None:
        bus = EventBus()
        first: list = []
        second: list = []
        bus.subscribe(first.append)
        bus.subscribe(second.append)

        bus.emit(ScanStarted(Path("/music")))
        bus.emit(ScanProgress(1, 2))

        self.assertEqual(first, [ScanStarted(Path("/music")), ScanProgress(1, 2)])
        self.assertEqual(second, first)

    def test_unsubscribe_stops_delivery(self) -> None:
        bus = EventBus()
        received: list = []
        unsubscribe = bus.subscribe(received.append)
        unsubscribe()
        unsubscribe()
        bus.emit(ScanProgress(1, 1))
        self.assertEqual(received, [])

    def test_failing_subscriber_does_not_block_others(self) -> None:
        bus = EventBus()
        received: list = []

        def broken(_event) -> None:
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        with self.assertLogs("ongaku.events", level="ERROR"):
            bus.emit(FileVisited(Path("/music/a.mp3")))
        self.assertEqual(received, [FileVisited(Path("/music/a.mp3"))])


if __name__ == "__main__":
    unittest.main()
