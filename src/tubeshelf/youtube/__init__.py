from __future__ import annotations

from tubeshelf.youtube.client import PlaylistApiClient, build_youtube_service
from tubeshelf.youtube.utils import (
    extract_playlist_id,
    is_unsupported_playlist_id,
    validate_playlist_id,
)

__all__ = [
    "PlaylistApiClient",
    "build_youtube_service",
    "extract_playlist_id",
    "is_unsupported_playlist_id",
    "validate_playlist_id",
]
