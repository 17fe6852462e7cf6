"""
Preview track resolution.

Preview audio lives in a flat directory and is named
``<THEME>_<ROLE>-<Title>.m4a`` (or ``<THEME>_Sonare.m4a`` for the beacon).
For a requested theme each file is classified into one of five playback
roles; everything else in the directory is ignored.
"""

import os
from typing import Iterable, Optional
from urllib.parse import quote

AUDIO_EXTENSION = ".m4a"
THEME_SEPARATOR = "_"
BEACON_TOKEN = "SONARE"
MUSIC_URL_PREFIX = "/music/"
# Sub-delimiters a path segment may carry unescaped; "/", ";", "," and "?" are escaped
PATH_SEGMENT_SAFE = "$&+:=@"

ROLE_KEYS = ("open", "peak", "offpeak", "close", "beacon")

# Checked in order after the beacon token
ROLE_PREFIXES = (
    ("OPEN-", "open"),
    ("PEAK-", "peak"),
    ("OFFPEAK-", "offpeak"),
    ("CLOSE-", "close"),
)


def normalize_theme(value: Optional[str]) -> str:
    """Trim and lower-case a theme/palette name."""
    return (value or "").strip().lower()


def empty_catalog() -> dict[str, str]:
    return {key: "" for key in ROLE_KEYS}


def parse_preview_track_filename(filename: str) -> Optional[tuple[str, str]]:
    """Split a preview filename into (theme, role).

    Returns None when the file is not a recognizable preview track.
    """
    base, ext = os.path.splitext(filename)
    if ext.lower() != AUDIO_EXTENSION:
        return None

    theme, sep, remainder = base.partition(THEME_SEPARATOR)
    if not sep:
        return None

    theme = normalize_theme(theme)
    if not theme:
        return None

    suffix = remainder.upper()
    if suffix == BEACON_TOKEN:
        return theme, "beacon"
    for prefix, role in ROLE_PREFIXES:
        if suffix.startswith(prefix):
            return theme, role
    return None


def resolve_preview_catalog(filenames: Iterable[str], theme: str) -> dict[str, str]:
    """Build the role -> URL catalog for one theme.

    When several files map to the same role the last one seen wins, so the
    result for duplicates depends on listing order. Unknown themes produce a
    catalog with every role empty.
    """
    catalog = empty_catalog()
    wanted = normalize_theme(theme)

    for name in filenames:
        parsed = parse_preview_track_filename(name)
        if parsed is None:
            continue
        file_theme, role = parsed
        if file_theme != wanted:
            continue
        catalog[role] = MUSIC_URL_PREFIX + quote(name, safe=PATH_SEGMENT_SAFE)

    return catalog


def preview_sources_for_palette(music_dir: str, palette: str) -> dict[str, str]:
    """Resolve the catalog for ``palette`` from the current directory listing.

    Raises:
        OSError: the music directory cannot be listed
    """
    with os.scandir(music_dir) as entries:
        names = [entry.name for entry in entries if not entry.is_dir()]
    return resolve_preview_catalog(names, palette)
