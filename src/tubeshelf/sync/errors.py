"""
Typed error taxonomy for the playlist synchronization core.

Every failure surfaced by the engine is a PlaylistSyncError subclass, and by
the time one reaches a caller the cache has already been rolled back or
marked stale.
"""

from __future__ import annotations

from typing import Iterable, Optional


class PlaylistSyncError(Exception):
    """Base exception for playlist sync operations."""


class NetworkError(PlaylistSyncError):
    """Transport failure; no HTTP response was received."""


class ApiError(PlaylistSyncError):
    """Non-2xx HTTP response from the remote API."""

    def __init__(self, status: int, reason: str = "", operation: str = ""):
        self.status = status
        self.reason = reason
        self.operation = operation
        where = f" on {operation}" if operation else ""
        detail = f": {reason}" if reason else ""
        super().__init__(f"YouTube API error {status}{where}{detail}")


class QuotaExhaustedError(ApiError):
    """403 with reason quotaExceeded / dailyLimitExceeded."""


class AuthExpiredError(PlaylistSyncError):
    """A 401 survived one silent refresh attempt (or no token could be obtained)."""


class InconsistentStateError(PlaylistSyncError):
    """
    The second step of a two-phase operation failed after the first succeeded.

    Remote residue is likely; every playlist in ``playlist_ids`` has been
    marked STALE and must be re-aggregated before it is trusted again.
    """

    def __init__(self, message: str, playlist_ids: Iterable[str]):
        self.playlist_ids = tuple(playlist_ids)
        super().__init__(message)


class NotFoundLocalError(PlaylistSyncError):
    """Mutation requested against an item (or playlist) missing from the cache."""

    def __init__(self, playlist_id: str, item_id: Optional[str] = None):
        self.playlist_id = playlist_id
        self.item_id = item_id
        if item_id is None:
            msg = f"Playlist {playlist_id} is not loaded"
        else:
            msg = f"Item {item_id} not found in playlist {playlist_id}"
        super().__init__(msg)


class StalePlaylistError(PlaylistSyncError):
    """Position-sensitive mutation requested against a STALE snapshot."""

    def __init__(self, playlist_id: str):
        self.playlist_id = playlist_id
        super().__init__(
            f"Playlist {playlist_id} is stale; reload it before making changes"
        )


class InvalidMutationError(PlaylistSyncError, ValueError):
    """The request itself is malformed (bad index, unavailable video, same playlist)."""
