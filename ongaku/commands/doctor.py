from __future__ import annotations

from dataclasses import dataclass

import mutagen

from ..catalog import CatalogStore
from ..config import Settings
from ..fs_utils import is_directory
from ..models import StorageError
from .output import error, ok as ok_line, warning


@dataclass(slots=True)
class DoctorReport:
    ok: bool
    checks: list[str]


def run(settings: Settings) -> DoctorReport:
    checks: list[str] = []
    ok = True

    root = settings.library.root
    if root is None:
        checks.append(warning("Library root", "not configured; pass a directory to scan"))
    elif not is_directory(root):
        ok = False
        checks.append(error("Library root", f"missing: {root}"))
    else:
        checks.append(ok_line("Library root", str(root)))

    exts = settings.library.include_extensions
    if exts:
        checks.append(ok_line("Extensions", ", ".join(exts)))
    else:
        ok = False
        checks.append(error("Extensions", "no audio extensions configured"))

    catalog_path = settings.catalog.path
    try:
        catalog = CatalogStore(catalog_path)
    except (OSError, StorageError) as exc:
        ok = False
        checks.append(error("Catalog", f"{catalog_path}: {exc}"))
    else:
        try:
            checks.append(ok_line("Catalog", f"{catalog_path} ({catalog.count()} tracks)"))
        except StorageError as exc:
            ok = False
            checks.append(error("Catalog", str(exc)))
        finally:
            catalog.close()

    checks.append(ok_line("Scanner", f"batch size {settings.scanner.batch_size}"))
    checks.append(ok_line("Tag reader", f"mutagen {mutagen.version_string}"))
    return DoctorReport(ok=ok, checks=checks)
