from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

# YouTube keeps membership records for videos that were removed or made
# private, with placeholder titles and (usually) no resolvable videoId.
UNAVAILABLE_TITLES = frozenset({"Deleted video", "Private video"})

PAGE_SIZE = 50


# ----------------------------
# Enums
# ----------------------------


class SyncState(str, Enum):
    CLEAN = "clean"
    OPTIMISTIC_PENDING = "optimistic_pending"
    RECONCILING = "reconciling"
    STALE = "stale"


class MutationKind(str, Enum):
    DELETE = "delete"
    REORDER = "reorder"
    MOVE = "move"
    REPLACE = "replace"


class MutationState(str, Enum):
    IDLE = "idle"
    OPTIMISTIC_APPLIED = "optimistic_applied"
    REMOTE_ADD_PENDING = "remote_add_pending"
    REMOTE_DELETE_PENDING = "remote_delete_pending"
    REMOTE_REPOSITION_PENDING = "remote_reposition_pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    PARTIAL_FAILURE = "partial_failure"


class PrivacyStatus(str, Enum):
    PUBLIC = "public"
    UNLISTED = "unlisted"
    PRIVATE = "private"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: Optional[str]) -> PrivacyStatus:
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


# ----------------------------
# Records
# ----------------------------


@dataclass(frozen=True)
class PlaylistItem:
    """One membership record: a video's place in a playlist."""

    item_id: str
    video_id: Optional[str]
    title: str = "Untitled"
    channel_title: Optional[str] = None
    channel_id: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration_seconds: Optional[int] = None
    position: int = 0

    @property
    def is_available(self) -> bool:
        return bool(self.video_id) and self.title not in UNAVAILABLE_TITLES


@dataclass(frozen=True)
class PlaylistSnippet:
    playlist_id: str
    title: str = "Untitled playlist"
    description: Optional[str] = None
    published_at: Optional[str] = None
    item_count: Optional[int] = None


@dataclass(frozen=True)
class PlaylistSnapshot:
    playlist_id: str
    items: Tuple[PlaylistItem, ...] = ()
    snippet: Optional[PlaylistSnippet] = None
    sync_state: SyncState = SyncState.CLEAN
    item_count_stale: bool = False

    @property
    def available_items(self) -> Tuple[PlaylistItem, ...]:
        return tuple(i for i in self.items if i.is_available)

    @property
    def unavailable_count(self) -> int:
        return sum(1 for i in self.items if not i.is_available)

    @property
    def total_duration_seconds(self) -> int:
        return sum(i.duration_seconds or 0 for i in self.items)

    @property
    def is_stale(self) -> bool:
        return self.sync_state == SyncState.STALE

    def index_of(self, item_id: str) -> int:
        for idx, item in enumerate(self.items):
            if item.item_id == item_id:
                return idx
        return -1

    def find(self, item_id: str) -> Optional[PlaylistItem]:
        idx = self.index_of(item_id)
        return self.items[idx] if idx >= 0 else None

    def with_items(
        self, items: Iterable[PlaylistItem], sync_state: Optional[SyncState] = None
    ) -> PlaylistSnapshot:
        return replace(
            self,
            items=renumber(items),
            sync_state=self.sync_state if sync_state is None else sync_state,
        )

    def with_state(self, sync_state: SyncState) -> PlaylistSnapshot:
        return replace(self, sync_state=sync_state)


@dataclass
class PendingMutation:
    """
    Transient record of one in-flight optimistic change.

    Created by the engine when a mutation starts and dropped on settlement.
    """

    kind: MutationKind
    playlist_ids: Tuple[str, ...]
    affected_item_ids: Tuple[str, ...]
    snapshots_before: Dict[str, PlaylistSnapshot] = field(default_factory=dict)
    remote_steps_completed: int = 0
    state: MutationState = MutationState.IDLE

    @property
    def label(self) -> str:
        return f"mutation.{self.kind.value}"


@dataclass(frozen=True)
class LoadProgress:
    pages_loaded: int
    items_loaded: int
    total_items: Optional[int] = None

    @property
    def total_pages(self) -> Optional[int]:
        if self.total_items is None:
            return None
        return math.ceil(max(0, self.total_items) / PAGE_SIZE)


@dataclass(frozen=True)
class PageResult:
    items: List[PlaylistItem]
    next_page_token: Optional[str] = None


@dataclass(frozen=True)
class UserPlaylist:
    playlist_id: str
    title: str = "Untitled"
    thumbnail_url: Optional[str] = None
    item_count: Optional[int] = None
    privacy_status: PrivacyStatus = PrivacyStatus.UNKNOWN
    channel_title: Optional[str] = None
    channel_id: Optional[str] = None

    @property
    def is_private(self) -> bool:
        return self.privacy_status == PrivacyStatus.PRIVATE


# ----------------------------
# Helpers
# ----------------------------


def renumber(items: Iterable[PlaylistItem]) -> Tuple[PlaylistItem, ...]:
    """Reassign positions 0..n-1 in sequence order."""
    return tuple(
        item if item.position == idx else replace(item, position=idx)
        for idx, item in enumerate(items)
    )


def positions_are_contiguous(items: Iterable[PlaylistItem]) -> bool:
    return all(item.position == idx for idx, item in enumerate(items))
