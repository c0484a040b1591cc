"""Post-migration verification against freshly fetched playlists."""

import logging
from typing import Callable, Iterable, Optional, Sequence

from yt_playlist_migrator.core.models import (
    Playlist,
    PlaylistItem,
    VerificationResult,
    VerificationStatus,
    VerificationSummary,
)

logger = logging.getLogger(__name__)


class Verifier:
    """
    Compares each source playlist with the target playlist its name maps to.

    The target is always looked up by the expected name, never through the
    progress file, so the result checks what actually landed in the target
    account.
    """

    def __init__(self, prefix: str):
        self._prefix = prefix

    def expected_target_name(self, source_title: str) -> str:
        return f"{self._prefix}{source_title}"

    def verify(self, source: Playlist, source_items: Sequence[PlaylistItem],
               resolve_target: Callable[[str], Optional[Playlist]],
               fetch_items: Callable[[str], Sequence[PlaylistItem]]) -> VerificationResult:
        source_ids = {item.video_id for item in source_items if item.video_id}
        result = VerificationResult(
            source_name=source.title,
            source_id=source.playlist_id,
            source_count=len(source_items),
            expected_target_name=self.expected_target_name(source.title),
        )

        try:
            target = resolve_target(result.expected_target_name)
        except Exception as e:
            logger.error(f"Error finding target playlist '{result.expected_target_name}': {e}")
            result.status = VerificationStatus.FETCH_ERROR
            result.notes = f"API error while searching for target playlist: {e}"
            return result

        if target is None:
            result.status = VerificationStatus.TARGET_NOT_FOUND
            result.missing = set(source_ids)
            result.notes = "Expected target playlist was not found in the target account."
            return result

        result.target_id = target.playlist_id
        try:
            target_items = fetch_items(target.playlist_id)
        except Exception as e:
            logger.error(f"Error fetching items for target playlist "
                         f"'{result.expected_target_name}' ({target.playlist_id}): {e}")
            result.status = VerificationStatus.FETCH_ERROR
            result.notes = f"Found target playlist, but could not retrieve its videos: {e}"
            return result

        target_ids = {item.video_id for item in target_items if item.video_id}
        result.target_count = len(target_items)
        result.missing = source_ids - target_ids
        result.extra = target_ids - source_ids

        if not result.missing and not result.extra and result.source_count == result.target_count:
            result.status = VerificationStatus.COMPLETE
        else:
            result.status = VerificationStatus.PARTIAL
            notes = []
            if result.missing:
                notes.append(f"{len(result.missing)} video(s) missing from target.")
            if result.extra:
                notes.append(f"{len(result.extra)} extra video(s) in target.")
            if not notes:
                notes.append(f"Item counts differ ({result.source_count} source, "
                             f"{result.target_count} target).")
            result.notes = " ".join(notes)

        logger.info(f"Verified '{source.title}': {result.status.value}")
        return result

    def failed_source(self, source: Playlist, error: Exception) -> VerificationResult:
        """Result for a source playlist whose items could not be fetched."""
        logger.error(f"Error fetching items for source playlist '{source.title}' "
                     f"({source.playlist_id}): {error}")
        return VerificationResult(
            source_name=source.title,
            source_id=source.playlist_id,
            source_count=0,
            expected_target_name=self.expected_target_name(source.title),
            status=VerificationStatus.FETCH_ERROR,
            notes=f"Could not retrieve videos from source: {error}",
        )


def summarize(results: Iterable[VerificationResult]) -> VerificationSummary:
    summary = VerificationSummary()
    for res in results:
        summary.playlists_analyzed += 1
        summary.total_source_videos += res.source_count
        if res.status in (VerificationStatus.COMPLETE, VerificationStatus.PARTIAL):
            summary.total_target_videos += res.target_count
        summary.status_counts[res.status] = summary.status_counts.get(res.status, 0) + 1
    return summary
