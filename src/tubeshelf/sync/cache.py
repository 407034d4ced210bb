"""
cache.py

In-memory snapshot store keyed by playlist id.

Snapshots are immutable; every write swaps a whole snapshot and then notifies
subscribers. The cache never talks to the network and never locks: the
engine is its only writer and serializes writes per playlist.
"""

from __future__ import annotations

from dataclasses import replace as dc_replace
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from tubeshelf.logger import get_logger
from tubeshelf.sync.models import PlaylistSnapshot, SyncState

logger = get_logger(__name__)

ChangeCallback = Callable[[str, Optional[PlaylistSnapshot]], None]
Transform = Callable[[Optional[PlaylistSnapshot]], PlaylistSnapshot]


class PlaylistCache:
    def __init__(self) -> None:
        self._snapshots: Dict[str, PlaylistSnapshot] = {}
        self._subscribers: List[Tuple[Optional[str], ChangeCallback]] = []

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def get(self, playlist_id: str) -> Optional[PlaylistSnapshot]:
        return self._snapshots.get(playlist_id)

    def playlist_ids(self) -> List[str]:
        return list(self._snapshots)

    def __contains__(self, playlist_id: object) -> bool:
        return playlist_id in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._snapshots))

    # ------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------

    def replace(self, playlist_id: str, snapshot: PlaylistSnapshot) -> None:
        """Store a freshly aggregated snapshot as CLEAN."""
        if snapshot.sync_state != SyncState.CLEAN:
            snapshot = dc_replace(snapshot, sync_state=SyncState.CLEAN)
        self._store(playlist_id, snapshot)

    def restore(self, playlist_id: str, snapshot: Optional[PlaylistSnapshot]) -> None:
        """Put back an exact earlier snapshot (or drop the entry when there was none)."""
        if snapshot is None:
            self.discard(playlist_id)
            return
        self._store(playlist_id, snapshot)

    def apply(self, playlist_id: str, transform: Transform) -> Optional[PlaylistSnapshot]:
        """
        Swap in ``transform(current)`` and return the snapshot it replaced.

        If the transform raises, nothing is stored and the error propagates.
        """
        previous = self._snapshots.get(playlist_id)
        updated = transform(previous)
        self._store(playlist_id, updated)
        return previous

    def mark(self, playlist_id: str, sync_state: SyncState) -> Optional[PlaylistSnapshot]:
        current = self._snapshots.get(playlist_id)
        if current is None or current.sync_state == sync_state:
            return current
        updated = current.with_state(sync_state)
        self._store(playlist_id, updated)
        return updated

    def discard(self, playlist_id: str) -> None:
        if self._snapshots.pop(playlist_id, None) is not None:
            self._notify(playlist_id, None)

    def clear(self) -> None:
        for playlist_id in list(self._snapshots):
            self.discard(playlist_id)

    # ------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------

    def subscribe(
        self, callback: ChangeCallback, playlist_id: Optional[str] = None
    ) -> Callable[[], None]:
        """
        Register ``callback(playlist_id, snapshot)`` for changes.

        With ``playlist_id`` set only that playlist's changes are delivered.
        Returns a function that removes the subscription.
        """
        entry = (playlist_id, callback)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def _store(self, playlist_id: str, snapshot: PlaylistSnapshot) -> None:
        self._snapshots[playlist_id] = snapshot
        self._notify(playlist_id, snapshot)

    def _notify(self, playlist_id: str, snapshot: Optional[PlaylistSnapshot]) -> None:
        for wanted, callback in list(self._subscribers):
            if wanted is not None and wanted != playlist_id:
                continue
            try:
                callback(playlist_id, snapshot)
            except Exception:
                logger.exception(f"cache.subscriber_failed playlist={playlist_id}")
