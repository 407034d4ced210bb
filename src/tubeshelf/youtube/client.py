"""
client.py

Stateless YouTube Data API v3 wrapper for playlist membership records.

Every call takes the bearer token as its first argument; auth retries and
token refresh live in sync.auth_retry. No retries happen here.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import google_auth_httplib2
import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from tubeshelf.logger import get_logger
from tubeshelf.sync.errors import ApiError
from tubeshelf.sync.models import (
    PAGE_SIZE,
    PageResult,
    PlaylistItem,
    PlaylistSnippet,
    PrivacyStatus,
    UserPlaylist,
)
from tubeshelf.youtube.api_manager import execute_request
from tubeshelf.youtube.utils import is_unsupported_playlist_id, parse_duration_seconds

logger = get_logger(__name__)

ServiceFactory = Callable[[str], Any]


def build_youtube_service(token: str, timeout: float = 30.0) -> Any:
    """Build a googleapiclient resource that sends ``token`` as its bearer."""
    credentials = Credentials(token=token)
    http = google_auth_httplib2.AuthorizedHttp(
        credentials, http=httplib2.Http(timeout=timeout)
    )
    return build(
        "youtube", "v3", http=http, cache_discovery=False, static_discovery=True
    )


def _best_thumbnail(snippet: Dict[str, Any]) -> Optional[str]:
    thumbs = snippet.get("thumbnails") or {}
    for size in ("high", "medium", "default"):
        url = (thumbs.get(size) or {}).get("url")
        if url:
            return url
    return None


def _to_item(raw: Dict[str, Any]) -> Optional[PlaylistItem]:
    item_id = raw.get("id")
    if not isinstance(item_id, str) or not item_id:
        return None

    snippet = raw.get("snippet") or {}
    video_id = (snippet.get("resourceId") or {}).get("videoId") or None
    return PlaylistItem(
        item_id=item_id,
        video_id=video_id,
        title=snippet.get("title") or "Untitled",
        channel_title=snippet.get("videoOwnerChannelTitle"),
        channel_id=snippet.get("videoOwnerChannelId"),
        thumbnail_url=_best_thumbnail(snippet),
    )


def _to_user_playlist(raw: Dict[str, Any]) -> Optional[UserPlaylist]:
    playlist_id = raw.get("id")
    if not isinstance(playlist_id, str) or not playlist_id:
        return None

    snippet = raw.get("snippet") or {}
    return UserPlaylist(
        playlist_id=playlist_id,
        title=snippet.get("title") or "Untitled",
        thumbnail_url=_best_thumbnail(snippet),
        item_count=(raw.get("contentDetails") or {}).get("itemCount"),
        privacy_status=PrivacyStatus.from_string(
            (raw.get("status") or {}).get("privacyStatus")
        ),
        channel_title=snippet.get("channelTitle"),
        channel_id=snippet.get("channelId"),
    )


class PlaylistApiClient:
    """The four membership primitives plus the read calls the views need."""

    def __init__(
        self,
        service_factory: ServiceFactory = build_youtube_service,
        page_size: int = PAGE_SIZE,
    ):
        self._service_factory = service_factory
        self._page_size = max(1, min(PAGE_SIZE, page_size))

    def _youtube(self, token: str) -> Any:
        # httplib2.Http is not thread-safe and requests execute in worker
        # threads, so every request gets its own service.
        return self._service_factory(token)

    # ------------------------------------------------------------
    # Membership primitives
    # ------------------------------------------------------------

    async def list_page(
        self, token: str, playlist_id: str, page_token: Optional[str] = None
    ) -> PageResult:
        request = (
            self._youtube(token)
            .playlistItems()
            .list(
                part="snippet",
                playlistId=playlist_id,
                maxResults=self._page_size,
                pageToken=page_token,
            )
        )
        resp = await execute_request(request, f"playlistItems.list {playlist_id}")

        items = [i for i in map(_to_item, resp.get("items") or []) if i is not None]
        return PageResult(items=items, next_page_token=resp.get("nextPageToken"))

    async def add(
        self,
        token: str,
        playlist_id: str,
        video_id: str,
        position: Optional[int] = None,
    ) -> str:
        """Insert ``video_id``; omitted position appends. Returns the new item id."""
        snippet: Dict[str, Any] = {
            "playlistId": playlist_id,
            "resourceId": {"kind": "youtube#video", "videoId": video_id},
        }
        if position is not None:
            snippet["position"] = position

        request = (
            self._youtube(token)
            .playlistItems()
            .insert(part="snippet", body={"snippet": snippet})
        )
        resp = await execute_request(request, f"playlistItems.insert {video_id}")

        item_id = resp.get("id")
        if not isinstance(item_id, str) or not item_id:
            raise ApiError(200, "insert response carried no item id", "playlistItems.insert")
        logger.debug(f"Added {video_id} to {playlist_id} as {item_id}")
        return item_id

    async def delete(self, token: str, item_id: str) -> None:
        """Delete a membership record. 404 means already gone and counts as success."""
        request = self._youtube(token).playlistItems().delete(id=item_id)
        try:
            await execute_request(request, f"playlistItems.delete {item_id}")
        except ApiError as e:
            if e.status != 404:
                raise
            logger.debug(f"Item {item_id} already absent (404); treating as deleted")

    async def reposition(
        self,
        token: str,
        item_id: str,
        playlist_id: str,
        video_id: str,
        new_position: int,
    ) -> None:
        """
        Full update of the membership record.

        playlistItems.update replaces the snippet, so playlistId and videoId
        must always be resent along with the position.
        """
        body = {
            "id": item_id,
            "snippet": {
                "playlistId": playlist_id,
                "position": new_position,
                "resourceId": {"kind": "youtube#video", "videoId": video_id},
            },
        }
        request = self._youtube(token).playlistItems().update(part="snippet", body=body)
        await execute_request(request, f"playlistItems.update {item_id}")

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    async def fetch_snippet(
        self, token: str, playlist_id: str
    ) -> Optional[PlaylistSnippet]:
        request = (
            self._youtube(token)
            .playlists()
            .list(part="snippet,contentDetails", id=playlist_id, maxResults=1)
        )
        resp = await execute_request(request, f"playlists.list {playlist_id}")

        items = resp.get("items") or []
        if not items:
            return None
        first = items[0]
        snippet = first.get("snippet") or {}
        return PlaylistSnippet(
            playlist_id=first.get("id") or playlist_id,
            title=snippet.get("title") or "Untitled playlist",
            description=snippet.get("description"),
            published_at=snippet.get("publishedAt"),
            item_count=(first.get("contentDetails") or {}).get("itemCount"),
        )

    async def list_user_playlists_page(
        self, token: str, page_token: Optional[str] = None
    ) -> Tuple[List[UserPlaylist], Optional[str]]:
        request = (
            self._youtube(token)
            .playlists()
            .list(
                part="snippet,contentDetails,status",
                mine=True,
                maxResults=self._page_size,
                pageToken=page_token,
            )
        )
        resp = await execute_request(request, "playlists.list mine")

        playlists = [
            p
            for p in map(_to_user_playlist, resp.get("items") or [])
            if p is not None and not is_unsupported_playlist_id(p.playlist_id)
        ]
        return playlists, resp.get("nextPageToken")

    async def fetch_durations(
        self, token: str, video_ids: Iterable[str]
    ) -> Dict[str, int]:
        """
        Batch-fetch durations via videos.list (up to 50 ids per call).
        Returns map: video_id -> seconds. Unparseable durations are omitted.
        """
        ids = [v for v in dict.fromkeys(video_ids) if isinstance(v, str) and v]
        out: Dict[str, int] = {}

        for i in range(0, len(ids), PAGE_SIZE):
            chunk = ids[i : i + PAGE_SIZE]
            request = (
                self._youtube(token)
                .videos()
                .list(part="contentDetails", id=",".join(chunk), maxResults=PAGE_SIZE)
            )
            resp = await execute_request(request, "videos.list durations")

            for it in resp.get("items") or []:
                vid = it.get("id")
                raw = (it.get("contentDetails") or {}).get("duration")
                if not isinstance(vid, str) or not raw:
                    continue
                seconds = parse_duration_seconds(raw)
                if seconds is not None:
                    out[vid] = seconds

        return out
