"""
engine.py

Optimistic playlist mutations with commit-on-settlement.

Every public operation:
- takes the lock of each playlist it touches (sorted id order),
- validates against the snapshot left by the previous settlement,
- applies its optimistic change to the cache,
- drives the remote calls through the auth retry policy,
- and before returning or raising leaves each touched snapshot either
  committed, restored exactly, or marked STALE.

Two-phase operations (move, replace) are never compensated automatically.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import replace as dc_replace
from typing import AsyncIterator, Callable, Dict, List, Optional, Set, Tuple, Union

from tubeshelf.logger import get_logger
from tubeshelf.sync.aggregator import PaginatedAggregator, ProgressCallback
from tubeshelf.sync.auth_retry import AuthRetryPolicy
from tubeshelf.sync.cache import PlaylistCache
from tubeshelf.sync.errors import (
    AuthExpiredError,
    InconsistentStateError,
    InvalidMutationError,
    NotFoundLocalError,
    PlaylistSyncError,
    StalePlaylistError,
)
from tubeshelf.sync.models import (
    MutationKind,
    MutationState,
    PendingMutation,
    PlaylistItem,
    PlaylistSnapshot,
    PlaylistSnippet,
    SyncState,
    renumber,
)

logger = get_logger(__name__)

_STATE_LEVELS = {
    MutationState.COMMITTED: logging.INFO,
    MutationState.ROLLED_BACK: logging.WARNING,
    MutationState.PARTIAL_FAILURE: logging.ERROR,
}


def reinsert(
    items: Tuple[PlaylistItem, ...], item_id: str, new_index: int
) -> Tuple[PlaylistItem, ...]:
    """
    Move ``item_id`` so it becomes the ``new_index``-th available item.

    Unavailable items keep their place relative to their available
    neighbours; positions are renumbered.
    """
    moving = next(i for i in items if i.item_id == item_id)
    rest = [i for i in items if i.item_id != item_id]

    available_seen = 0
    last_available_end = 0
    for idx, item in enumerate(rest):
        if not item.is_available:
            continue
        if available_seen == new_index:
            insert_at = idx
            break
        available_seen += 1
        last_available_end = idx + 1
    else:
        insert_at = last_available_end

    rest.insert(insert_at, moving)
    return renumber(rest)


class MutationEngine:
    """
    Sole writer of a PlaylistCache.

    Collaborators are passed in explicitly; there is no module-level state.
    """

    def __init__(
        self,
        client,
        cache: PlaylistCache,
        session=None,
        *,
        policy: Optional[AuthRetryPolicy] = None,
        aggregator: Optional[PaginatedAggregator] = None,
        enrich: bool = True,
    ):
        if policy is None:
            if session is None:
                raise ValueError("MutationEngine needs a session or an AuthRetryPolicy")
            policy = AuthRetryPolicy(session)

        self._client = client
        self._cache = cache
        self._policy = policy
        self._aggregator = aggregator or PaginatedAggregator(client, policy, enrich=enrich)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._deleted: Dict[str, Set[str]] = {}
        self._pending: List[PendingMutation] = []
        self._provisional_ids = itertools.count(1)
        self._selection: Tuple[Optional[str], object] = (None, object())

    @property
    def cache(self) -> PlaylistCache:
        return self._cache

    @property
    def aggregator(self) -> PaginatedAggregator:
        return self._aggregator

    @property
    def selected_playlist_id(self) -> Optional[str]:
        return self._selection[0]

    def pending_mutations(self) -> Tuple[PendingMutation, ...]:
        """Copies of the in-flight mutations; later transitions do not show up in them."""
        return tuple(
            dc_replace(m, snapshots_before=dict(m.snapshots_before)) for m in self._pending
        )

    # ------------------------------------------------------------
    # Locking / bookkeeping
    # ------------------------------------------------------------

    def _lock_for(self, playlist_id: str) -> asyncio.Lock:
        lock = self._locks.get(playlist_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[playlist_id] = lock
        return lock

    @asynccontextmanager
    async def _locked(self, *playlist_ids: str) -> AsyncIterator[None]:
        ordered = sorted(set(playlist_ids))
        for playlist_id in ordered:
            self._lock_users[playlist_id] = self._lock_users.get(playlist_id, 0) + 1
        try:
            async with AsyncExitStack() as stack:
                for playlist_id in ordered:
                    await stack.enter_async_context(self._lock_for(playlist_id))
                yield
        finally:
            # Drop locks nobody holds or waits on.
            for playlist_id in ordered:
                self._lock_users[playlist_id] -= 1
                if not self._lock_users[playlist_id]:
                    del self._lock_users[playlist_id]
                    self._locks.pop(playlist_id, None)

    @asynccontextmanager
    async def _tracked(self, mutation: PendingMutation) -> AsyncIterator[PendingMutation]:
        self._pending.append(mutation)
        try:
            yield mutation
        finally:
            self._pending.remove(mutation)

    def _transition(self, mutation: PendingMutation, state: MutationState) -> None:
        mutation.state = state
        logger.log(
            _STATE_LEVELS.get(state, logging.DEBUG),
            f"{mutation.label}.{state.value} "
            f"playlists={','.join(mutation.playlist_ids)} "
            f"items={','.join(mutation.affected_item_ids)}",
        )

    def _provisional_id(self) -> str:
        return f"pending:{next(self._provisional_ids)}"

    def _require(self, playlist_id: str) -> PlaylistSnapshot:
        snapshot = self._cache.get(playlist_id)
        if snapshot is None:
            raise NotFoundLocalError(playlist_id)
        if snapshot.is_stale:
            raise StalePlaylistError(playlist_id)
        return snapshot

    def _rollback(self, mutation: PendingMutation, error: BaseException) -> None:
        if isinstance(error, Exception):
            for playlist_id, snapshot in mutation.snapshots_before.items():
                self._cache.restore(playlist_id, snapshot)
            self._transition(mutation, MutationState.ROLLED_BACK)
            return

        # Cancelled mid-call: the remote step may still land.
        for playlist_id, snapshot in mutation.snapshots_before.items():
            self._cache.restore(playlist_id, snapshot.with_state(SyncState.STALE))
        for playlist_id in mutation.playlist_ids:
            self._cache.mark(playlist_id, SyncState.STALE)
        self._transition(mutation, MutationState.PARTIAL_FAILURE)

    def _record_deleted(self, playlist_id: str, item_id: str) -> None:
        self._deleted.setdefault(playlist_id, set()).add(item_id)

    def _settle(self, playlist_id: str, item_count_stale: bool = False) -> None:
        def settle(s: Optional[PlaylistSnapshot]) -> PlaylistSnapshot:
            return dc_replace(
                s,
                sync_state=SyncState.CLEAN,
                item_count_stale=s.item_count_stale or item_count_stale,
            )

        self._cache.apply(playlist_id, settle)

    # ------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------

    async def _fetch_snippet(self, playlist_id: str) -> Optional[PlaylistSnippet]:
        try:
            return await self._policy.run(
                lambda token: self._client.fetch_snippet(token, playlist_id),
                name=f"fetch_snippet {playlist_id}",
            )
        except AuthExpiredError:
            raise
        except PlaylistSyncError as e:
            logger.warning(f"Playlist metadata unavailable for {playlist_id}: {e}")
            return None

    async def _load_locked(
        self,
        playlist_id: str,
        on_progress: Optional[ProgressCallback],
        keep: Callable[[], bool] = lambda: True,
    ) -> Optional[PlaylistSnapshot]:
        previous = self._cache.get(playlist_id)
        if previous is not None:
            self._cache.mark(playlist_id, SyncState.RECONCILING)
        logger.debug(f"load.start playlist={playlist_id}")

        try:
            snippet = await self._fetch_snippet(playlist_id)
            items = await self._aggregator.load_all(
                playlist_id,
                on_progress=on_progress,
                total_items=snippet.item_count if snippet else None,
            )
        except BaseException:
            self._cache.restore(playlist_id, previous)
            logger.warning(f"load.failed playlist={playlist_id}")
            raise

        if not keep():
            self._cache.restore(playlist_id, previous)
            logger.info(f"load.discarded playlist={playlist_id} (selection changed)")
            return None

        snapshot = PlaylistSnapshot(
            playlist_id=playlist_id,
            items=renumber(items),
            snippet=snippet,
        )
        self._cache.replace(playlist_id, snapshot)
        logger.debug(f"load.committed playlist={playlist_id} items={len(items)}")
        return snapshot

    async def load_all(
        self, playlist_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> PlaylistSnapshot:
        """Re-aggregate a playlist and commit it as CLEAN."""
        async with self._locked(playlist_id):
            return await self._load_locked(playlist_id, on_progress)

    async def open_playlist(
        self, playlist_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> Optional[PlaylistSnapshot]:
        """
        Select a playlist and load it.

        If another playlist was selected before this load finished, the
        result is dropped and None is returned.
        """
        ticket = object()
        self._selection = (playlist_id, ticket)

        async with self._locked(playlist_id):
            return await self._load_locked(
                playlist_id,
                on_progress,
                keep=lambda: self._selection[1] is ticket,
            )

    async def refresh_metadata(self, playlist_id: str) -> Optional[PlaylistSnippet]:
        async with self._locked(playlist_id):
            snippet = await self._policy.run(
                lambda token: self._client.fetch_snippet(token, playlist_id),
                name=f"fetch_snippet {playlist_id}",
            )
            if playlist_id in self._cache:
                self._cache.apply(
                    playlist_id,
                    lambda s: dc_replace(
                        s, snippet=snippet or s.snippet, item_count_stale=False
                    ),
                )
            return snippet

    # ------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------

    async def delete(self, playlist_id: str, item_id: str) -> None:
        """
        Remove one entry from a loaded playlist.

        Deleting an entry this engine already removed from the playlist is a
        no-op; any other id missing from the cache raises NotFoundLocalError
        without touching the server.
        """
        async with self._locked(playlist_id):
            before = self._require(playlist_id)
            if before.index_of(item_id) < 0:
                if item_id in self._deleted.get(playlist_id, ()):
                    logger.info(f"mutation.delete.already_deleted item={item_id}")
                    return
                raise NotFoundLocalError(playlist_id, item_id)

            mutation = PendingMutation(
                kind=MutationKind.DELETE,
                playlist_ids=(playlist_id,),
                affected_item_ids=(item_id,),
                snapshots_before={playlist_id: before},
            )
            async with self._tracked(mutation):
                self._cache.apply(
                    playlist_id,
                    lambda s: s.with_items(
                        (i for i in s.items if i.item_id != item_id),
                        SyncState.OPTIMISTIC_PENDING,
                    ),
                )
                self._transition(mutation, MutationState.OPTIMISTIC_APPLIED)

                self._transition(mutation, MutationState.REMOTE_DELETE_PENDING)
                try:
                    await self._policy.run(
                        lambda token: self._client.delete(token, item_id),
                        name=f"delete {item_id}",
                    )
                except BaseException as e:
                    self._rollback(mutation, e)
                    raise

                mutation.remote_steps_completed = 1
                self._record_deleted(playlist_id, item_id)
                self._settle(playlist_id, item_count_stale=True)
                self._transition(mutation, MutationState.COMMITTED)

    # ------------------------------------------------------------
    # Reorder
    # ------------------------------------------------------------

    async def reorder(
        self, playlist_id: str, item_id: str, old_index: int, new_index: int
    ) -> None:
        """
        Move an item within its playlist.

        Indices count available items only. The item is located by id;
        ``old_index`` is only checked against it.
        """
        async with self._locked(playlist_id):
            before = self._require(playlist_id)
            item = before.find(item_id)
            if item is None:
                raise NotFoundLocalError(playlist_id, item_id)
            if not item.is_available:
                raise InvalidMutationError(f"Item {item_id} is unavailable and cannot be reordered")

            available = before.available_items
            if not 0 <= new_index < len(available):
                raise InvalidMutationError(
                    f"new_index {new_index} out of range 0..{len(available) - 1}"
                )

            current = next(idx for idx, i in enumerate(available) if i.item_id == item_id)
            if old_index != current:
                logger.warning(
                    f"mutation.reorder.index_mismatch item={item_id} "
                    f"given={old_index} cached={current}"
                )
            if new_index == current:
                logger.debug(f"mutation.reorder.noop item={item_id} index={new_index}")
                return

            mutation = PendingMutation(
                kind=MutationKind.REORDER,
                playlist_ids=(playlist_id,),
                affected_item_ids=(item_id,),
                snapshots_before={playlist_id: before},
            )
            async with self._tracked(mutation):
                self._cache.apply(
                    playlist_id,
                    lambda s: s.with_items(
                        reinsert(s.items, item_id, new_index),
                        SyncState.OPTIMISTIC_PENDING,
                    ),
                )
                self._transition(mutation, MutationState.OPTIMISTIC_APPLIED)

                self._transition(mutation, MutationState.REMOTE_REPOSITION_PENDING)
                try:
                    await self._policy.run(
                        lambda token: self._client.reposition(
                            token, item_id, playlist_id, item.video_id, new_index
                        ),
                        name=f"reposition {item_id}",
                    )
                except BaseException as e:
                    self._rollback(mutation, e)
                    raise

                mutation.remote_steps_completed = 1
                self._settle(playlist_id)
                self._transition(mutation, MutationState.COMMITTED)

    # ------------------------------------------------------------
    # Move
    # ------------------------------------------------------------

    async def move(
        self,
        source_playlist_id: str,
        target_playlist_id: str,
        item: Union[PlaylistItem, str],
    ) -> str:
        """
        Add the item's video to the target, then delete it from the source.

        Returns the new item id in the target playlist.
        """
        item_id = item if isinstance(item, str) else item.item_id
        if source_playlist_id == target_playlist_id:
            raise InvalidMutationError("Source and target playlists are the same")

        async with self._locked(source_playlist_id, target_playlist_id):
            source_before = self._require(source_playlist_id)
            moving = source_before.find(item_id)
            if moving is None:
                raise NotFoundLocalError(source_playlist_id, item_id)
            if not moving.is_available:
                raise InvalidMutationError(f"Item {item_id} is unavailable and cannot be moved")

            target_before = self._cache.get(target_playlist_id)
            append_to_target = target_before is not None and not target_before.is_stale
            provisional = dc_replace(moving, item_id=self._provisional_id())

            mutation = PendingMutation(
                kind=MutationKind.MOVE,
                playlist_ids=(source_playlist_id, target_playlist_id),
                affected_item_ids=(item_id,),
                snapshots_before={source_playlist_id: source_before},
            )
            if append_to_target:
                mutation.snapshots_before[target_playlist_id] = target_before

            async with self._tracked(mutation):
                self._cache.apply(
                    source_playlist_id,
                    lambda s: s.with_items(
                        (i for i in s.items if i.item_id != item_id),
                        SyncState.OPTIMISTIC_PENDING,
                    ),
                )
                if append_to_target:
                    self._cache.apply(
                        target_playlist_id,
                        lambda s: s.with_items(
                            s.items + (provisional,), SyncState.OPTIMISTIC_PENDING
                        ),
                    )
                self._transition(mutation, MutationState.OPTIMISTIC_APPLIED)

                self._transition(mutation, MutationState.REMOTE_ADD_PENDING)
                try:
                    new_item_id = await self._policy.run(
                        lambda token: self._client.add(
                            token, target_playlist_id, moving.video_id
                        ),
                        name=f"add {moving.video_id} to {target_playlist_id}",
                    )
                except BaseException as e:
                    self._rollback(mutation, e)
                    raise
                mutation.remote_steps_completed = 1

                if append_to_target:
                    self._cache.apply(
                        target_playlist_id,
                        lambda s: s.with_items(
                            dc_replace(i, item_id=new_item_id)
                            if i.item_id == provisional.item_id
                            else i
                            for i in s.items
                        ),
                    )

                self._transition(mutation, MutationState.REMOTE_DELETE_PENDING)
                try:
                    await self._policy.run(
                        lambda token: self._client.delete(token, item_id),
                        name=f"delete {item_id}",
                    )
                except BaseException as e:
                    # The video now sits in both playlists remotely.
                    self._cache.restore(
                        source_playlist_id, source_before.with_state(SyncState.STALE)
                    )
                    self._cache.mark(target_playlist_id, SyncState.STALE)
                    self._transition(mutation, MutationState.PARTIAL_FAILURE)
                    if not isinstance(e, Exception):
                        raise
                    raise InconsistentStateError(
                        f"Video {moving.video_id} was added to {target_playlist_id} "
                        f"but could not be removed from {source_playlist_id}; "
                        "reload both playlists",
                        (source_playlist_id, target_playlist_id),
                    ) from e
                mutation.remote_steps_completed = 2
                self._record_deleted(source_playlist_id, item_id)

                self._settle(source_playlist_id, item_count_stale=True)
                target_now = self._cache.get(target_playlist_id)
                if target_now is not None:
                    if append_to_target:
                        self._settle(target_playlist_id, item_count_stale=True)
                    else:
                        self._cache.apply(
                            target_playlist_id,
                            lambda s: dc_replace(s, item_count_stale=True),
                        )
                self._transition(mutation, MutationState.COMMITTED)
                return new_item_id

    # ------------------------------------------------------------
    # Replace
    # ------------------------------------------------------------

    async def replace(
        self,
        playlist_id: str,
        item_id: str,
        new_video_id: str,
        *,
        title: Optional[str] = None,
        channel_title: Optional[str] = None,
        channel_id: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
    ) -> str:
        """
        Swap the video behind one entry, keeping its place.

        Returns the id of the new membership record.
        """
        if not new_video_id:
            raise InvalidMutationError("new_video_id is required")

        async with self._locked(playlist_id):
            before = self._require(playlist_id)
            old_index = before.index_of(item_id)
            if old_index < 0:
                raise NotFoundLocalError(playlist_id, item_id)
            old_item = before.items[old_index]

            provisional = PlaylistItem(
                item_id=self._provisional_id(),
                video_id=new_video_id,
                title=title or "Untitled",
                channel_title=channel_title,
                channel_id=channel_id,
                thumbnail_url=thumbnail_url,
                position=old_index,
            )
            head, tail = before.items[:old_index], before.items[old_index + 1 :]

            mutation = PendingMutation(
                kind=MutationKind.REPLACE,
                playlist_ids=(playlist_id,),
                affected_item_ids=(item_id,),
                snapshots_before={playlist_id: before},
            )
            async with self._tracked(mutation):
                self._cache.apply(
                    playlist_id,
                    lambda s: s.with_items(
                        head + (provisional,) + tail, SyncState.OPTIMISTIC_PENDING
                    ),
                )
                self._transition(mutation, MutationState.OPTIMISTIC_APPLIED)

                self._transition(mutation, MutationState.REMOTE_ADD_PENDING)
                try:
                    new_item_id = await self._policy.run(
                        lambda token: self._client.add(
                            token, playlist_id, new_video_id, old_index
                        ),
                        name=f"add {new_video_id} to {playlist_id}",
                    )
                except BaseException as e:
                    self._rollback(mutation, e)
                    raise
                mutation.remote_steps_completed = 1

                new_item = dc_replace(provisional, item_id=new_item_id)
                self._cache.apply(
                    playlist_id, lambda s: s.with_items(head + (new_item,) + tail)
                )

                self._transition(mutation, MutationState.REMOTE_DELETE_PENDING)
                try:
                    await self._policy.run(
                        lambda token: self._client.delete(token, old_item.item_id),
                        name=f"delete {old_item.item_id}",
                    )
                except BaseException as e:
                    # Remote now holds both entries, new one first.
                    self._cache.restore(
                        playlist_id,
                        before.with_items(
                            head + (new_item, old_item) + tail, SyncState.STALE
                        ),
                    )
                    self._transition(mutation, MutationState.PARTIAL_FAILURE)
                    if not isinstance(e, Exception):
                        raise
                    raise InconsistentStateError(
                        f"Video {new_video_id} was added to {playlist_id} but "
                        f"{old_item.item_id} could not be removed; reload the playlist",
                        (playlist_id,),
                    ) from e
                mutation.remote_steps_completed = 2
                self._record_deleted(playlist_id, old_item.item_id)

                self._settle(playlist_id)
                self._transition(mutation, MutationState.COMMITTED)
                return new_item_id
