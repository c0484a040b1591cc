"""
Migration Progress Store

Keeps per-playlist migration counters in a line-oriented text file so an
interrupted run can resume without re-crediting work.

File layout:

    # Playlist Migration Progress
    Export Date: 2024-05-01
    Total Playlists in Source Account: 2
    ...
    # Playlist Details
    [PLxyz] Name: Music
    [PLxyz] Total Videos: 20
    [PLxyz] Imported Videos: 12

A corrupt global section resets the whole state; a corrupt playlist record
only drops that record.
"""

import logging
import os
import re
import tempfile
from datetime import date
from pathlib import Path
from typing import Callable

from yt_playlist_migrator.core.models import MigrationState, ProgressRecord

logger = logging.getLogger(__name__)

HEADER = "# Playlist Migration Progress"
DETAILS_HEADER = "# Playlist Details"

EXPORT_DATE_KEY = "Export Date"
TOTAL_PLAYLISTS_IN_SOURCE_KEY = "Total Playlists in Source Account"
TOTAL_VIDEOS_IN_SOURCE_KEY = "Total Videos in Source Account"
LAST_IMPORT_DATE_KEY = "Last Import Date"
TOTAL_PLAYLISTS_MIGRATED_KEY = "Total Playlists Migrated"
TOTAL_VIDEOS_MIGRATED_KEY = "Total Videos Migrated"
DAILY_VIDEOS_IMPORTED_KEY = "Daily Videos Imported"

NAME_KEY = "Name"
TOTAL_VIDEOS_KEY = "Total Videos"
IMPORTED_VIDEOS_KEY = "Imported Videos"
# Older files used the generic wording
KEY_ALIASES = {
    "Total Members": TOTAL_VIDEOS_KEY,
    "Imported Members": IMPORTED_VIDEOS_KEY,
}

DETAIL_PATTERN = re.compile(r"\[(.*?)\]\s*(.*?):\s?(.*)")
UNKNOWN_NAME = "Unknown Playlist"


class ProgressStoreError(Exception):
    """Progress file could not be written."""
    pass


def _parse_count(value: str) -> int:
    count = int(value)
    if count < 0:
        raise ValueError(f"negative count: {value}")
    return count


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class ProgressStore:
    def __init__(self, progress_file: Path, today: Callable[[], date] = date.today):
        self._file = Path(progress_file)
        self._today = today
        self._state = self.load()

    @property
    def state(self) -> MigrationState:
        return self._state

    @property
    def path(self) -> Path:
        return self._file

    def load(self) -> MigrationState:
        """Read the progress file, falling back to an empty state."""
        if not self._file.exists():
            return MigrationState()

        try:
            lines = self._file.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Progress load failed: {e}")
            return MigrationState()

        global_data: dict[str, str] = {}
        raw_details: dict[str, dict[str, str]] = {}
        in_details = False

        for line in lines:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                if stripped == DETAILS_HEADER:
                    in_details = True
                elif stripped == HEADER:
                    in_details = False
                continue

            if in_details:
                # Values keep their surrounding spaces, names may have them
                match = DETAIL_PATTERN.fullmatch(line.lstrip())
                if match:
                    playlist_id, key, value = match.groups()
                    key = KEY_ALIASES.get(key.strip(), key.strip())
                    playlist_id = playlist_id.strip()
                    raw_details.setdefault(playlist_id, {})[key] = value
            else:
                key, sep, value = stripped.partition(":")
                if sep:
                    global_data[key.strip()] = value.strip()

        playlists: dict[str, ProgressRecord] = {}
        for playlist_id, details in raw_details.items():
            try:
                playlists[playlist_id] = ProgressRecord(
                    name=details.get(NAME_KEY, UNKNOWN_NAME),
                    total_videos=_parse_count(details.get(TOTAL_VIDEOS_KEY, "0")),
                    imported_videos=_parse_count(details.get(IMPORTED_VIDEOS_KEY, "0")),
                )
            except ValueError as e:
                logger.warning(f"Skipping corrupt progress record {playlist_id}: {e}")

        try:
            state = MigrationState(
                export_date=_parse_date(global_data.get(EXPORT_DATE_KEY)),
                total_playlists_in_source=_parse_count(global_data.get(TOTAL_PLAYLISTS_IN_SOURCE_KEY, "0")),
                total_videos_in_source=_parse_count(global_data.get(TOTAL_VIDEOS_IN_SOURCE_KEY, "0")),
                last_import_date=_parse_date(global_data.get(LAST_IMPORT_DATE_KEY)),
                total_playlists_migrated=_parse_count(global_data.get(TOTAL_PLAYLISTS_MIGRATED_KEY, "0")),
                total_videos_migrated=_parse_count(global_data.get(TOTAL_VIDEOS_MIGRATED_KEY, "0")),
                daily_videos_imported=_parse_count(global_data.get(DAILY_VIDEOS_IMPORTED_KEY, "0")),
                playlists=playlists,
            )
        except ValueError as e:
            logger.warning(f"Corrupt progress header in {self._file}, starting over: {e}")
            return MigrationState()

        logger.debug(f"Loaded progress for {len(playlists)} playlists")
        return state

    def set_export_date(self, export_date: date) -> None:
        """Set the export date once; later calls are ignored."""
        if self._state.export_date is None:
            self._state.export_date = export_date

    def record_source_playlist(self, playlist_id: str, name: str, total_videos: int) -> None:
        """Upsert a source playlist, keeping any imported count already credited."""
        existing = self._state.playlists.get(playlist_id)
        imported = existing.imported_videos if existing else 0
        self._state.playlists[playlist_id] = ProgressRecord(name, total_videos, imported)

        records = self._state.playlists.values()
        self._state.total_playlists_in_source = len(self._state.playlists)
        self._state.total_videos_in_source = sum(r.total_videos for r in records)
        self._state.total_playlists_migrated = sum(1 for r in records if r.fully_migrated)

    def record_videos_imported(self, playlist_id: str, count: int) -> bool:
        """Credit videos added for a playlist. Returns False if nothing was recorded."""
        if count <= 0:
            return False

        record = self._state.playlists.get(playlist_id)
        if record is None:
            logger.warning(f"Cannot record imported videos for unknown playlist {playlist_id}")
            return False

        record.imported_videos += count

        today = self._today()
        if self._state.last_import_date == today:
            self._state.daily_videos_imported += count
        else:
            self._state.daily_videos_imported = count
        self._state.last_import_date = today

        self._state.total_videos_migrated += count
        self._state.total_playlists_migrated = sum(
            1 for r in self._state.playlists.values() if r.fully_migrated
        )
        return True

    def is_fully_migrated(self, playlist_id: str) -> bool:
        record = self._state.playlists.get(playlist_id)
        return record is not None and record.fully_migrated

    def _serialize(self) -> str:
        s = self._state
        lines = [HEADER]
        if s.export_date:
            lines.append(f"{EXPORT_DATE_KEY}: {s.export_date.isoformat()}")
        lines.append(f"{TOTAL_PLAYLISTS_IN_SOURCE_KEY}: {s.total_playlists_in_source}")
        lines.append(f"{TOTAL_VIDEOS_IN_SOURCE_KEY}: {s.total_videos_in_source}")
        if s.last_import_date:
            lines.append(f"{LAST_IMPORT_DATE_KEY}: {s.last_import_date.isoformat()}")
        lines.append(f"{TOTAL_PLAYLISTS_MIGRATED_KEY}: {s.total_playlists_migrated}")
        lines.append(f"{TOTAL_VIDEOS_MIGRATED_KEY}: {s.total_videos_migrated}")
        lines.append(f"{DAILY_VIDEOS_IMPORTED_KEY}: {s.daily_videos_imported}")

        if s.playlists:
            lines.append("")
            lines.append(DETAILS_HEADER)
            for playlist_id in sorted(s.playlists):
                record = s.playlists[playlist_id]
                name = " ".join(record.name.splitlines())
                lines.append(f"[{playlist_id}] {NAME_KEY}: {name}")
                lines.append(f"[{playlist_id}] {TOTAL_VIDEOS_KEY}: {record.total_videos}")
                lines.append(f"[{playlist_id}] {IMPORTED_VIDEOS_KEY}: {record.imported_videos}")

        return "\n".join(lines) + "\n"

    def persist(self) -> None:
        """Rewrite the progress file atomically."""
        try:
            self._file.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=self._file.parent, prefix=".progress_", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(self._serialize())
                os.replace(temp_path, self._file)
            except Exception:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        except OSError as e:
            logger.error(f"Progress save failed: {e}")
            raise ProgressStoreError(f"Could not write {self._file}: {e}") from e
