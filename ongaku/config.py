from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .meta_keys import DEFAULT_EXTENSIONS


class LibrarySettings(BaseModel):
    root: Optional[Path] = None
    include_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_patterns: List[str] = Field(default_factory=list)

    @field_validator("root", mode="before")
    @classmethod
    def _expand_root(cls, value: Optional[str | Path]) -> Optional[Path]:
        if value is None or value == "":
            return None
        return Path(value).expanduser().resolve()

    @field_validator("include_extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, values: List[str]) -> List[str]:
        normalized: List[str] = []
        for value in values or []:
            ext = str(value).strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = f".{ext}"
            if ext not in normalized:
                normalized.append(ext)
        return normalized


class ScannerSettings(BaseModel):
    batch_size: int = Field(default=10, ge=1)
    live_refresh: bool = False


class CatalogSettings(BaseModel):
    path: Path = Path("./cache/ongaku.sqlite3")

    @field_validator("path", mode="before")
    @classmethod
    def _expand_path(cls, value: str | Path) -> Path:
        return Path(value).expanduser().resolve()


class ViewSettings(BaseModel):
    grouping: str = "artist_album"
    sort_column: str = "title"
    sort_descending: bool = False


class Settings(BaseModel):
    library: LibrarySettings = LibrarySettings()
    scanner: ScannerSettings = ScannerSettings()
    catalog: CatalogSettings = CatalogSettings()
    views: ViewSettings = ViewSettings()

    @classmethod
    def load(cls, path: Path) -> "Settings":
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        return cls.model_validate(raw or {})


def find_config(explicit_path: Optional[Path]) -> Optional[Path]:
    if explicit_path:
        if not explicit_path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        return explicit_path
    cwd = Path.cwd()
    for candidate in (cwd / "config.yaml", cwd / "config.yml"):
        if candidate.exists():
            return candidate
    return None


def load_settings(explicit_path: Optional[Path]) -> Settings:
    config_path = find_config(explicit_path)
    if config_path is None:
        return Settings()
    return Settings.load(config_path)
