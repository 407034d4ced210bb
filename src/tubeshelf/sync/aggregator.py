from __future__ import annotations

from dataclasses import replace
from typing import Callable, List, Optional

from tubeshelf.logger import get_logger
from tubeshelf.sync.auth_retry import AuthRetryPolicy
from tubeshelf.sync.errors import PlaylistSyncError
from tubeshelf.sync.models import LoadProgress, PlaylistItem, UserPlaylist, renumber

logger = get_logger(__name__)

ProgressCallback = Callable[[LoadProgress], None]


class PaginatedAggregator:
    """
    Fetch every page of a listing and return one ordered sequence.

    Each call is a fresh fetch; nothing is remembered between calls.
    """

    def __init__(self, client, policy: AuthRetryPolicy, enrich: bool = True):
        self._client = client
        self._policy = policy
        self._enrich = enrich

    async def load_all(
        self,
        playlist_id: str,
        on_progress: Optional[ProgressCallback] = None,
        total_items: Optional[int] = None,
    ) -> List[PlaylistItem]:
        items: List[PlaylistItem] = []
        page_token: Optional[str] = None
        pages = 0

        while True:
            page = await self._policy.run(
                lambda token, pt=page_token: self._client.list_page(
                    token, playlist_id, pt
                ),
                name=f"list_page {playlist_id}",
            )
            pages += 1
            items.extend(page.items)
            logger.debug(
                f"aggregate.page playlist={playlist_id} page={pages} "
                f"items={len(page.items)} total={len(items)}"
            )

            if on_progress is not None:
                on_progress(
                    LoadProgress(
                        pages_loaded=pages,
                        items_loaded=len(items),
                        total_items=total_items,
                    )
                )

            page_token = page.next_page_token
            if not page_token:
                break

        result = list(renumber(items))
        if self._enrich:
            result = await self._with_durations(playlist_id, result)

        logger.info(f"Loaded {len(result)} items from {playlist_id} in {pages} page(s)")
        return result

    async def _with_durations(
        self, playlist_id: str, items: List[PlaylistItem]
    ) -> List[PlaylistItem]:
        video_ids = [i.video_id for i in items if i.is_available and i.video_id]
        if not video_ids:
            return items

        try:
            durations = await self._policy.run(
                lambda token: self._client.fetch_durations(token, video_ids),
                name=f"fetch_durations {playlist_id}",
            )
        except PlaylistSyncError as e:
            logger.warning(f"Duration enrichment skipped for {playlist_id}: {e}")
            return items

        return [
            replace(i, duration_seconds=durations[i.video_id])
            if i.video_id in durations
            else i
            for i in items
        ]

    async def load_user_playlists(self) -> List[UserPlaylist]:
        playlists: List[UserPlaylist] = []
        page_token: Optional[str] = None

        while True:
            page, page_token = await self._policy.run(
                lambda token, pt=page_token: self._client.list_user_playlists_page(
                    token, pt
                ),
                name="list_user_playlists",
            )
            playlists.extend(page)
            if not page_token:
                break

        logger.info(f"Loaded {len(playlists)} playlists")
        return playlists
