from __future__ import annotations

import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from ..app import OngakuApp
from ..events import ScanCompleted, ScanError, ScanEvent, ScanProgress
from ..scheduling import ManualScheduler

logger = logging.getLogger(__name__)


def run(app: OngakuApp, directory: Optional[Path]) -> ScanCompleted | ScanError | None:
    """Run one scan to its end on the app's manual scheduler.

    Ctrl-C requests a stop; the scanner honors it between batches and keeps
    what it already indexed.
    """
    scheduler = app.scheduler
    if not isinstance(scheduler, ManualScheduler):
        raise TypeError("The scan command needs a ManualScheduler")

    outcome: list[ScanCompleted | ScanError] = []
    show_progress = sys.stderr.isatty()

    def on_event(event: ScanEvent) -> None:
        if isinstance(event, ScanProgress) and show_progress:
            sys.stderr.write(f"\rScanning {event.current}/{event.total}")
            sys.stderr.flush()
        elif isinstance(event, (ScanCompleted, ScanError)):
            outcome.append(event)

    interrupted = False

    def on_sigint(_signum, _frame) -> None:
        nonlocal interrupted
        interrupted = True

    unsubscribe = app.events.subscribe(on_event)
    previous = signal.signal(signal.SIGINT, on_sigint)
    try:
        root = directory or app.settings.library.root
        app.scanner.scan_library(root)
        while app.scanner.is_scanning():
            if interrupted:
                logger.warning("Interrupted; stopping scan")
                app.scanner.stop_scanning()
                break
            if not scheduler.run_once():
                break
    finally:
        signal.signal(signal.SIGINT, previous)
        unsubscribe()
        if show_progress:
            sys.stderr.write("\n")

    if not outcome:
        return None
    event = outcome[-1]
    if isinstance(event, ScanCompleted):
        verb = "Stopped" if event.cancelled else "Completed"
        print(
            f"{verb}: {event.found} found, {event.added} added, "
            f"{event.updated} updated, {event.skipped} skipped"
        )
    else:
        print(f"Scan failed: {event.message}")
    return event
