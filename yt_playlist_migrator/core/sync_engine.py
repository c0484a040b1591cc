"""
Sync Engine

Adds the videos of a source playlist that are missing from its target.

Algorithm: Add-Missing Pass
---------------------------
1. Collect the video IDs already in the target playlist
2. Walk the source items in source order and add each missing video
3. Classify every failed add:
   - ReferenceNotFound / PreconditionFailed: skip the video, keep going
   - TransportError: skip the video, keep going
   - QuotaExceeded: stop, and tell the caller to stop every other playlist

The engine never touches the progress store. The caller credits
``added_count`` and checkpoints, so a halted pass still keeps what it added.

Quota costs:
- playlistItems.insert: 50 units
"""

import logging
import time
from typing import Callable, Protocol, Sequence

from yt_playlist_migrator.core.models import (
    AddResult,
    ErrorKind,
    MemberError,
    PlaylistItem,
    SyncResult,
    watch_url,
)

logger = logging.getLogger(__name__)


class AddFn(Protocol):
    def __call__(self, playlist_id: str, video_id: str) -> AddResult: ...


class SyncEngine:
    """Idempotent add-missing synchronization for one playlist pair."""

    def __init__(self, delay: float = 0.0, sleep: Callable[[float], None] = time.sleep):
        self._delay = delay
        self._sleep = sleep

    def synchronize(self, source_playlist_id: str, source_items: Sequence[PlaylistItem],
                    target_playlist_id: str, target_items: Sequence[PlaylistItem],
                    add_fn: AddFn) -> SyncResult:
        """Add every source video not yet in the target. Returns SyncResult."""
        existing = {item.video_id for item in target_items}
        result = SyncResult()
        calls = 0

        logger.debug(f"Sync {source_playlist_id} -> {target_playlist_id}: "
                     f"{len(source_items)} source, {len(existing)} already in target")

        for item in source_items:
            video_id = item.video_id
            if not video_id:
                result.errors.append(MemberError(
                    video_id, ErrorKind.REFERENCE_NOT_FOUND,
                    f"Item {item.item_id} has no video reference"))
                logger.warning(f"Skipping item {item.item_id} in {source_playlist_id}: no video reference")
                continue

            if video_id in existing:
                logger.debug(f"Already in target: {video_id}")
                continue

            if calls and self._delay > 0:
                self._sleep(self._delay)
            calls += 1

            outcome = add_fn(target_playlist_id, video_id)
            if outcome.ok:
                result.added_count += 1
                existing.add(video_id)
                logger.info(f"Added: {item.title or video_id}")
                continue

            kind = outcome.kind or ErrorKind.TRANSPORT
            result.errors.append(MemberError(video_id, kind, outcome.message))

            if kind.is_fatal:
                result.quota_exceeded = True
                logger.error(f"Quota exceeded adding {video_id} to {target_playlist_id}, "
                             f"halting after {result.added_count} added")
                break

            if kind.is_skippable:
                logger.warning(f"Skipping {video_id} ({kind.value}): {outcome.message}. "
                               f"Investigate: {watch_url(video_id)}")
            else:
                logger.error(f"Failed to add {video_id} ({kind.value}): {outcome.message}")

        logger.info(f"Sync {source_playlist_id}: +{result.added_count}, "
                    f"{len(result.errors)} not added"
                    + (" (QUOTA EXCEEDED)" if result.quota_exceeded else ""))
        return result
