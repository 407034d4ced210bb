from __future__ import annotations

from tubeshelf.sync.errors import (
    ApiError,
    AuthExpiredError,
    InconsistentStateError,
    InvalidMutationError,
    NetworkError,
    NotFoundLocalError,
    PlaylistSyncError,
    QuotaExhaustedError,
    StalePlaylistError,
)
from tubeshelf.sync.models import (
    LoadProgress,
    MutationKind,
    MutationState,
    PendingMutation,
    PlaylistItem,
    PlaylistSnapshot,
    PlaylistSnippet,
    SyncState,
    UserPlaylist,
)
from tubeshelf.sync.auth_retry import AuthRetryPolicy
from tubeshelf.sync.cache import PlaylistCache
from tubeshelf.sync.aggregator import PaginatedAggregator
from tubeshelf.sync.engine import MutationEngine

__all__ = [
    "ApiError",
    "AuthExpiredError",
    "AuthRetryPolicy",
    "InconsistentStateError",
    "InvalidMutationError",
    "LoadProgress",
    "MutationEngine",
    "MutationKind",
    "MutationState",
    "NetworkError",
    "NotFoundLocalError",
    "PaginatedAggregator",
    "PendingMutation",
    "PlaylistCache",
    "PlaylistItem",
    "PlaylistSnapshot",
    "PlaylistSnippet",
    "PlaylistSyncError",
    "QuotaExhaustedError",
    "StalePlaylistError",
    "SyncState",
    "UserPlaylist",
]
