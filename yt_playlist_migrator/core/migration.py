"""
Migration Runner

Drives one migration run across the selected source playlists:

1. Resolve the target playlist by its expected title, or create it
2. Fetch source items (and target items when the target already existed)
3. Add what is missing through the SyncEngine
4. Credit the added count and checkpoint the progress file
5. Halt every remaining playlist once the quota is exhausted

Each playlist is isolated: an API error on one is reported and the run
moves on. Only the quota stops the run.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Protocol, Sequence

from yt_playlist_migrator.clients.youtube import YouTubeAPIError, YouTubeQuotaExceededError
from yt_playlist_migrator.core.models import (
    AddResult,
    MemberError,
    MigrationConfig,
    Playlist,
    PlaylistItem,
    SyncResult,
    VerificationResult,
    VerificationSummary,
)
from yt_playlist_migrator.core.progress import ProgressStore
from yt_playlist_migrator.core.sync_engine import SyncEngine
from yt_playlist_migrator.core.verifier import Verifier, summarize

logger = logging.getLogger(__name__)


class SourceClientProtocol(Protocol):
    def get_my_playlists(self) -> list[Playlist]: ...
    def get_playlist_items(self, playlist_id: str) -> list[PlaylistItem]: ...


class TargetClientProtocol(SourceClientProtocol, Protocol):
    def find_playlist_by_title(self, title: str) -> Playlist | None: ...
    def create_playlist(self, title: str, description: str, privacy: str) -> Playlist: ...
    def add_to_playlist(self, playlist_id: str, video_id: str) -> AddResult: ...


@dataclass
class RunReport:
    """What happened to each selected playlist."""
    migrated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    halted: list[str] = field(default_factory=list)
    member_errors: dict[str, list[MemberError]] = field(default_factory=dict)
    videos_added: int = 0
    quota_exceeded: bool = False


class MigrationRunner:
    def __init__(self, source: SourceClientProtocol, target: TargetClientProtocol,
                 store: ProgressStore, engine: SyncEngine, config: MigrationConfig,
                 today: Callable[[], date] = date.today):
        self._source = source
        self._target = target
        self._store = store
        self._engine = engine
        self._config = config
        self._verifier = Verifier(config.playlist_prefix)
        self._today = today

    def scan_source(self) -> list[Playlist]:
        """Fetch source playlists and record them in the progress file."""
        playlists = self._source.get_my_playlists()
        logger.info(f"Found {len(playlists)} playlists in the source account")

        self._store.set_export_date(self._today())
        for playlist in playlists:
            self._store.record_source_playlist(playlist.playlist_id, playlist.title,
                                               playlist.item_count)
        self._store.persist()
        return playlists

    def _resolve_target(self, source: Playlist) -> tuple[Playlist, list[PlaylistItem]]:
        title = self._verifier.expected_target_name(source.title)
        target = self._target.find_playlist_by_title(title)
        if target is not None:
            items = self._target.get_playlist_items(target.playlist_id)
            logger.info(f"Found existing target '{title}' ({target.playlist_id}) "
                        f"with {len(items)} videos")
            return target, items

        logger.info(f"Creating target playlist '{title}'")
        target = self._target.create_playlist(title, source.description,
                                              self._config.default_privacy)
        return target, []

    def migrate_playlist(self, source: Playlist) -> SyncResult:
        """Migrate one playlist and checkpoint what was added."""
        target, target_items = self._resolve_target(source)

        source_items = self._source.get_playlist_items(source.playlist_id)
        logger.info(f"Source '{source.title}' has {len(source_items)} items")

        result = self._engine.synchronize(source.playlist_id, source_items,
                                          target.playlist_id, target_items,
                                          self._target.add_to_playlist)

        if result.added_count > 0:
            self._store.record_videos_imported(source.playlist_id, result.added_count)
            self._store.persist()
            logger.info(f"Progress saved for '{source.title}' (+{result.added_count})")
        else:
            logger.info(f"No new videos added to '{target.title}'")

        return result

    def migrate(self, playlists: Sequence[Playlist]) -> RunReport:
        report = RunReport()
        logger.info("=" * 50)
        logger.info(f"Starting migration for {len(playlists)} playlist(s)")

        for source in playlists:
            title = source.title

            if self._store.is_fully_migrated(source.playlist_id):
                logger.info(f"Playlist '{title}' already fully migrated, skipping")
                report.skipped.append(title)
                continue

            if report.quota_exceeded:
                logger.warning(f"Halted '{title}' ({source.playlist_id}) due to quota error")
                report.halted.append(title)
                continue

            logger.info(f"Processing source playlist '{title}' ({source.playlist_id})")
            try:
                result = self.migrate_playlist(source)
            except YouTubeQuotaExceededError as e:
                logger.error(f"FATAL: quota exceeded while processing '{title}': {e}")
                report.failed[title] = f"Quota exceeded: {e}"
                report.quota_exceeded = True
                continue
            except YouTubeAPIError as e:
                logger.error(f"API error migrating '{title}': {e}")
                report.failed[title] = str(e)
                continue

            report.videos_added += result.added_count
            if result.errors:
                report.member_errors[title] = result.errors
            if result.quota_exceeded:
                report.halted.append(title)
                report.quota_exceeded = True
            else:
                report.migrated.append(title)

        if report.quota_exceeded:
            logger.info("Migration INTERRUPTED due to quota error")
        else:
            logger.info("Migration finished")
        logger.info(f"Added {report.videos_added} videos")
        logger.info("=" * 50)
        return report

    def verify(self, playlists: Sequence[Playlist]) -> tuple[list[VerificationResult], VerificationSummary]:
        """Compare every playlist with its target using fresh fetches."""
        results = []
        for source in playlists:
            try:
                source_items = self._source.get_playlist_items(source.playlist_id)
            except (YouTubeAPIError, YouTubeQuotaExceededError) as e:
                results.append(self._verifier.failed_source(source, e))
                continue
            results.append(self._verifier.verify(source, source_items,
                                                 self._target.find_playlist_by_title,
                                                 self._target.get_playlist_items))
        return results, summarize(results)
