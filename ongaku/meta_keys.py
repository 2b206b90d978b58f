from __future__ import annotations

# Labels and tag-key names shared by the tag reader, scanner and views.
# Keep these centralized to reduce magic strings and accidental divergence.

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"
UNKNOWN_GENRE = "Unknown"
UNKNOWN_YEAR = "Unknown Year"

DEFAULT_EXTENSIONS = [
    ".mp3",
    ".flac",
    ".ogg",
    ".m4a",
    ".mp4",
    ".aac",
    ".wma",
    ".wav",
    ".aiff",
    ".ape",
    ".opus",
]

# Candidate key names, checked in order; first non-empty value wins.
PUBLISHER_KEYS = ("publisher", "label", "organization", "recordlabel")
CATALOG_NUMBER_KEYS = ("catalognumber", "catalog number", "catalog_number", "catalog", "catno", "labelno")

# ID3 frames that carry a candidate key natively (everything else lives in TXXX).
ID3_FRAMES = {
    "publisher": "TPUB",
    "label": "TPUB",
    "organization": "TPUB",
}

MP4_FREEFORM_PREFIX = "----:com.apple.iTunes:"
