from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from .aggregation import GroupingMode
from .app import OngakuApp
from .commands import doctor as cmd_doctor
from .commands import listing as cmd_listing
from .commands import scan as cmd_scan
from .config import Settings, load_settings
from .events import ScanError
from .flat import SORT_COLUMNS
from .models import ConfigError, StorageError

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

C_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",  # Cyan
    logging.INFO: "\033[37m",  # Light gray
    logging.WARNING: "\033[33m",  # Yellow
    logging.ERROR: "\033[31m",  # Red
    logging.CRITICAL: "\033[35m",  # Magenta
}


class ShortPathFormatter(logging.Formatter):
    def __init__(self, fmt: str, roots: list[Path]) -> None:
        super().__init__(fmt)
        self.roots = [str(root) for root in roots if root]

    def _shorten(self, message: str) -> str:
        for root in self.roots:
            if not message:
                break
            message = message.replace(f"{root}/", "")
            message = message.replace(root, "")
        return message

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return self._shorten(message)


class ColorFormatter(ShortPathFormatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not color:
            return message
        return f"{color}{message}{C_RESET}"


class WarningBufferHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.records: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
        except Exception:  # pragma: no cover
            msg = record.getMessage()
        self.records.append(msg)


def configure_logging(level_name: str, roots: list[Path]) -> WarningBufferHandler:
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    color_handler = logging.StreamHandler()
    color_handler.setFormatter(ColorFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(color_handler)

    warn_buffer = WarningBufferHandler()
    warn_buffer.setFormatter(ShortPathFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(warn_buffer)

    logging.getLogger("mutagen").setLevel(logging.WARNING)
    return warn_buffer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Local music catalog indexer")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--catalog", type=Path, help="Override the catalog database path")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    parser.add_argument(
        "--warnings-log",
        type=Path,
        default=None,
        help="Also write warnings and errors to this file",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    scan_parser = subparsers.add_parser("scan", help="Index new and changed files below a directory")
    scan_parser.add_argument(
        "directory",
        type=Path,
        nargs="?",
        help="Library root (defaults to library.root from the config)",
    )
    scan_parser.add_argument("--batch-size", type=int, default=None, help="Files per scan step")

    list_parser = subparsers.add_parser("list", help="Print the catalog as a flat sorted list")
    list_parser.add_argument("--search", default=None, help="Substring of title/artist/album/genre")
    list_parser.add_argument("--sort", choices=SORT_COLUMNS, default=None, help="Sort column")
    list_parser.add_argument("--desc", action="store_true", help="Sort descending")

    tree_parser = subparsers.add_parser("tree", help="Print the catalog grouped")
    tree_parser.add_argument(
        "--group",
        choices=[mode.value for mode in GroupingMode],
        default=None,
        help="Grouping strategy",
    )
    tree_parser.add_argument("--search", default=None, help="Substring of title/artist/album/genre")

    subparsers.add_parser("stats", help="Show catalog counts")

    remove_parser = subparsers.add_parser("remove", help="Drop one file from the catalog")
    remove_parser.add_argument("path", type=Path)

    subparsers.add_parser("doctor", help="Run basic config/catalog checks")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    update: dict = {}
    if args.catalog is not None:
        update["catalog"] = settings.catalog.model_copy(
            update={"path": args.catalog.expanduser().resolve()}
        )
    batch_size = getattr(args, "batch_size", None)
    if batch_size is not None:
        update["scanner"] = settings.scanner.model_copy(update={"batch_size": max(1, batch_size)})
    if not update:
        return settings
    return settings.model_copy(update=update)


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = apply_overrides(load_settings(args.config), args)
    except FileNotFoundError as exc:
        raise SystemExit(str(exc)) from exc

    display_roots = [
        Path(root).expanduser().resolve()
        for root in (settings.library.root, getattr(args, "directory", None))
        if root
    ]
    warn_buffer = configure_logging(args.log_level, display_roots)
    if args.warnings_log:
        file_handler = logging.FileHandler(args.warnings_log, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.WARNING)
        file_handler.setFormatter(ShortPathFormatter(LOG_FORMAT, display_roots))
        logging.getLogger().addHandler(file_handler)

    if args.command == "doctor":
        report = cmd_doctor.run(settings)
        for line in report.checks:
            print(line)
        if not report.ok:
            raise SystemExit(1)
        return

    app: OngakuApp | None = None
    try:
        app = OngakuApp.create(settings)
        match args.command:
            case "scan":
                outcome = cmd_scan.run(app, args.directory)
                if isinstance(outcome, ScanError):
                    raise SystemExit(1)
            case "list":
                for line in cmd_listing.list_tracks(
                    app, search=args.search, sort=args.sort, descending=args.desc
                ):
                    print(line)
            case "tree":
                for line in cmd_listing.render_tree(app, grouping=args.group, search=args.search):
                    print(line)
            case "stats":
                for line in cmd_listing.stats(app):
                    print(line)
            case "remove":
                if not cmd_listing.remove(app, args.path):
                    print(f"Not in catalog: {args.path}")
                    raise SystemExit(1)
                print(f"Removed {args.path}")
            case _:
                parser.error("Unknown command")
    except (ConfigError, StorageError) as exc:
        raise SystemExit(str(exc)) from exc
    finally:
        if app:
            app.close()
        if warn_buffer.records:
            print("\n\033[33mWarnings/Errors summary:\033[0m")
            for line in warn_buffer.records:
                print(f" - {line}")


if __name__ == "__main__":  # pragma: no cover
    main()
