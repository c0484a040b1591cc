"""
YouTube Data API v3 Client

Playlist listing, creation and item insertion for one account.
Includes retry logic for rate limiting and transient errors, and
classifies failed inserts instead of raising them.
"""

import json
import logging
import time
from typing import Any, Callable, TypeVar

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from yt_playlist_migrator.core.fetcher import fetch_all
from yt_playlist_migrator.core.models import AddResult, ErrorKind, Page, Playlist, PlaylistItem

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded"}

T = TypeVar('T')


class YouTubeAuthError(Exception):
    """YouTube authentication failed."""
    pass


class YouTubeAPIError(Exception):
    """YouTube API operation failed."""
    pass


class YouTubeQuotaExceededError(Exception):
    """YouTube API quota exceeded."""
    pass


def _error_details(e: HttpError) -> tuple[list[str], str]:
    """Return (reasons, message) from an API error body."""
    try:
        content = e.content.decode("utf-8") if isinstance(e.content, bytes) else e.content
        error = json.loads(content).get("error", {})
    except (ValueError, AttributeError, TypeError):
        return [], str(e)
    if not isinstance(error, dict):
        return [], str(error)
    reasons = [err.get("reason", "") for err in error.get("errors", []) if isinstance(err, dict)]
    return reasons, error.get("message", "")


def _is_quota_error(e: HttpError) -> bool:
    status = e.resp.status if e.resp else 0
    reasons, _ = _error_details(e)
    return status == 403 and bool(QUOTA_REASONS.intersection(reasons))


class YouTubeClient:
    """YouTube Data API client with retry logic."""

    def __init__(self, credentials: Any = None, service: Any = None,
                 sleep: Callable[[float], None] = time.sleep):
        self._sleep = sleep
        if service is not None:
            self._service = service
            return
        try:
            self._service = build("youtube", "v3", credentials=credentials)
            logger.info("YouTube client initialized")
        except Exception as e:
            raise YouTubeAuthError(f"Failed to build YouTube service: {e}")

    def _retry(self, operation: Callable[[], T], name: str, max_retries: int = 3,
               idempotent: bool = True) -> T:
        """
        Execute operation with retry logic for transient errors.

        Non-idempotent calls (inserts) are never retried after a server or
        network error: the server may already have applied them.
        """
        for attempt in range(max_retries):
            try:
                return operation()
            except HttpError as e:
                status = e.resp.status if e.resp else 0

                # Quota exceeded - don't retry
                if _is_quota_error(e):
                    raise YouTubeQuotaExceededError(f"Quota exceeded on {name}: {e}")

                # Rate limit - wait and retry once
                if status == 403 and attempt == 0:
                    reasons, _ = _error_details(e)
                    if "rateLimitExceeded" in reasons or "userRateLimitExceeded" in reasons:
                        logger.warning(f"Rate limited on {name}, waiting 60s...")
                        self._sleep(60)
                        continue

                # Server error - retry with backoff
                if idempotent and status >= 500 and attempt < max_retries - 1:
                    wait = 2 ** attempt
                    logger.warning(f"Server error on {name}, retrying in {wait}s...")
                    self._sleep(wait)
                    continue

                raise

            except (ConnectionError, TimeoutError, OSError) as e:
                if idempotent and attempt < max_retries - 1:
                    wait = 2 ** attempt
                    logger.warning(f"Network error on {name}, retrying in {wait}s...")
                    self._sleep(wait)
                    continue
                raise YouTubeAPIError(f"Network error on {name}: {e}")

        raise YouTubeAPIError(f"{name} failed after {max_retries} attempts")

    def _call(self, operation: Callable[[], T], name: str, idempotent: bool = True) -> T:
        """Run operation through _retry, turning leftover HTTP errors into YouTubeAPIError."""
        try:
            return self._retry(operation, name, idempotent=idempotent)
        except HttpError as e:
            raise YouTubeAPIError(f"API error on {name}: {e}") from e

    def list_playlists_page(self, page_token: str | None) -> Page[Playlist]:
        """One page of the authenticated user's playlists."""
        def do_list():
            return self._service.playlists().list(
                part="snippet,contentDetails,status",
                mine=True,
                maxResults=PAGE_SIZE,
                pageToken=page_token
            ).execute()

        response = self._call(do_list, "list playlists")
        playlists = [self._extract_playlist(p) for p in response.get("items") or []]
        return Page([p for p in playlists if p], response.get("nextPageToken"))

    def list_playlist_items_page(self, playlist_id: str, page_token: str | None) -> Page[PlaylistItem]:
        """One page of a playlist's items."""
        def do_list():
            return self._service.playlistItems().list(
                part="snippet,contentDetails",
                playlistId=playlist_id,
                maxResults=PAGE_SIZE,
                pageToken=page_token
            ).execute()

        response = self._call(do_list, f"list playlist {playlist_id}")
        items = [self._extract_item(i) for i in response.get("items") or []]
        return Page([i for i in items if i], response.get("nextPageToken"))

    def get_my_playlists(self) -> list[Playlist]:
        """Get all playlists of the authenticated user."""
        playlists = fetch_all(self.list_playlists_page)
        logger.info(f"Retrieved {len(playlists)} playlists")
        return playlists

    def get_playlist_items(self, playlist_id: str) -> list[PlaylistItem]:
        """Get all items from a playlist."""
        items = fetch_all(lambda token: self.list_playlist_items_page(playlist_id, token))
        logger.info(f"Retrieved {len(items)} items from playlist {playlist_id}")
        return items

    def find_playlist_by_title(self, title: str) -> Playlist | None:
        """First playlist with exactly this title, or None."""
        for playlist in self.get_my_playlists():
            if playlist.title == title:
                return playlist
        return None

    def create_playlist(self, title: str, description: str, privacy: str) -> Playlist:
        """Create a playlist and return it."""
        def do_insert():
            body = {
                "snippet": {"title": title, "description": description},
                "status": {"privacyStatus": privacy}
            }
            return self._service.playlists().insert(
                part="snippet,status", body=body
            ).execute()

        response = self._call(do_insert, f"create playlist '{title}'", idempotent=False)
        playlist = self._extract_playlist(response)
        if playlist is None:
            raise YouTubeAPIError(f"Create playlist '{title}' returned no id")
        logger.info(f"Created playlist '{title}' ({playlist.playlist_id})")
        return playlist

    def _extract_playlist(self, item: dict) -> Playlist | None:
        """Extract Playlist from API response."""
        playlist_id = item.get("id", "")
        if not playlist_id:
            return None
        snippet = item.get("snippet", {})
        return Playlist(
            playlist_id=playlist_id,
            title=snippet.get("title", ""),
            description=snippet.get("description", ""),
            privacy=item.get("status", {}).get("privacyStatus", ""),
            item_count=item.get("contentDetails", {}).get("itemCount", 0)
        )

    def _extract_item(self, item: dict) -> PlaylistItem | None:
        """Extract PlaylistItem from API response."""
        item_id = item.get("id", "")
        if not item_id:
            return None
        snippet = item.get("snippet", {})
        content = item.get("contentDetails", {})
        video_id = content.get("videoId") or snippet.get("resourceId", {}).get("videoId", "")

        return PlaylistItem(
            item_id=item_id,
            video_id=video_id,
            title=snippet.get("title", ""),
            channel=snippet.get("videoOwnerChannelTitle", ""),
            position=snippet.get("position", 0)
        )

    def add_to_playlist(self, playlist_id: str, video_id: str) -> AddResult:
        """Add video to playlist. Failures are classified, not raised."""
        def do_insert():
            body = {
                "snippet": {
                    "playlistId": playlist_id,
                    "resourceId": {"kind": "youtube#video", "videoId": video_id}
                }
            }
            return self._service.playlistItems().insert(
                part="snippet", body=body
            ).execute()

        try:
            self._retry(do_insert, f"add {video_id}", idempotent=False)
            return AddResult.success()
        except YouTubeQuotaExceededError as e:
            return AddResult.failure(ErrorKind.QUOTA_EXCEEDED, str(e))
        except HttpError as e:
            return self._classify_add_error(e, video_id)
        except YouTubeAPIError as e:
            return AddResult.failure(ErrorKind.TRANSPORT, str(e))

    def _classify_add_error(self, e: HttpError, video_id: str) -> AddResult:
        status = e.resp.status if e.resp else 0
        reasons, message = _error_details(e)

        if status == 404 and ("videoNotFound" in reasons or "video not found" in message.lower()):
            return AddResult.failure(ErrorKind.REFERENCE_NOT_FOUND,
                                     f"Video {video_id} not found or access denied")
        if status == 400 and "failedPrecondition" in reasons:
            return AddResult.failure(ErrorKind.PRECONDITION_FAILED,
                                     f"Precondition failed for video {video_id}: {message}")

        logger.debug(f"Unclassified error adding {video_id}: status={status} reasons={reasons}")
        return AddResult.failure(ErrorKind.TRANSPORT, f"API error adding {video_id}: {e}")
