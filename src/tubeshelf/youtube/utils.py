"""
utils.py

Playlist identifier helpers.

This module provides:
- Playlist ID validation
- Playlist ID extraction from share / watch URLs
- Detection of system playlists the Data API cannot manage
- ISO 8601 duration parsing
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

import isodate

from tubeshelf.logger import get_logger

logger = get_logger(__name__)

_PLAYLIST_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# LL: liked videos, WL: watch later, HL: history, RD: mixes, FL: favorites.
# playlistItems calls on these commonly 404 or are unsupported.
_SYSTEM_PLAYLIST_PREFIXES = ("LL", "WL", "HL", "RD", "FL")


def validate_playlist_id(playlist_id: str) -> None:
    """
    Validate playlist ID format.

    Raises:
        ValueError: If playlist_id contains invalid characters
    """
    if not playlist_id or not _PLAYLIST_ID_RE.match(playlist_id):
        raise ValueError(
            f"Invalid playlist_id: {playlist_id!r}. "
            f"Must contain only alphanumeric characters, hyphens, and underscores."
        )


def is_unsupported_playlist_id(playlist_id: str) -> bool:
    return playlist_id.startswith(_SYSTEM_PLAYLIST_PREFIXES)


def extract_playlist_id(value: str) -> Optional[str]:
    """
    Accept a bare playlist id or any URL carrying a ``list`` query parameter.

    Returns None when nothing usable is found.
    """
    value = (value or "").strip()
    if not value:
        return None

    parsed = urlparse(value)
    if parsed.scheme and parsed.netloc:
        ids = parse_qs(parsed.query).get("list")
        return ids[0] if ids else None

    return value if _PLAYLIST_ID_RE.match(value) else None


def parse_duration_seconds(iso_duration: str) -> Optional[int]:
    """
    Parse ISO 8601 duration (e.g. "PT3M45S") to seconds.

    Returns None when the value cannot be parsed. Live streams report "P0D",
    which parses to 0.
    """
    try:
        return int(isodate.parse_duration(iso_duration).total_seconds())
    except (isodate.ISO8601Error, TypeError, ValueError) as e:
        logger.warning(f"Failed to parse duration '{iso_duration}': {e}")
        return None
