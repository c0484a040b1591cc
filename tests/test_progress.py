"""Tests for the progress store."""

import os
from datetime import date, timedelta
from pathlib import Path

import pytest

from yt_playlist_migrator.core.models import MigrationState
from yt_playlist_migrator.core.progress import ProgressStore, ProgressStoreError


class Clock:
    def __init__(self, day: date):
        self.day = day

    def __call__(self) -> date:
        return self.day


@pytest.fixture
def clock():
    return Clock(date(2024, 5, 1))


@pytest.fixture
def store(tmp_path, clock):
    return ProgressStore(tmp_path / "migration_status.txt", today=clock)


def test_missing_file_gives_default_state(store):
    assert store.state == MigrationState()


def test_record_source_playlist_totals(store):
    store.record_source_playlist("p1", "Music", 10)
    store.record_source_playlist("p2", "Talks", 5)

    assert store.state.total_playlists_in_source == 2
    assert store.state.total_videos_in_source == 15
    assert store.state.playlists["p1"].imported_videos == 0


def test_rescan_keeps_imported_count(store):
    store.record_source_playlist("p1", "Music", 10)
    store.record_videos_imported("p1", 4)
    store.record_source_playlist("p1", "Music", 8)

    record = store.state.playlists["p1"]
    assert record.total_videos == 8
    assert record.imported_videos == 4
    assert store.state.total_videos_in_source == 8


def test_record_imported_is_monotonic(store):
    store.record_source_playlist("p1", "Music", 10)
    before = 0
    for count in [0, 3, 0, 2, -5, 1]:
        store.record_videos_imported("p1", count)
        after = store.state.playlists["p1"].imported_videos
        assert after >= before
        before = after
    assert before == 6
    assert store.state.total_videos_migrated == 6


def test_non_positive_count_is_noop(store):
    store.record_source_playlist("p1", "Music", 10)
    assert store.record_videos_imported("p1", 0) is False
    assert store.record_videos_imported("p1", -1) is False
    assert store.state.last_import_date is None


def test_unknown_playlist_warns_without_raising(store, caplog):
    assert store.record_videos_imported("nope", 3) is False
    assert "unknown playlist nope" in caplog.text
    assert store.state.total_videos_migrated == 0


def test_daily_counter_accumulates_then_resets(store, clock):
    store.record_source_playlist("p1", "Music", 20)
    store.record_videos_imported("p1", 3)
    store.record_videos_imported("p1", 4)
    assert store.state.daily_videos_imported == 7
    assert store.state.last_import_date == date(2024, 5, 1)

    clock.day += timedelta(days=1)
    store.record_videos_imported("p1", 2)
    assert store.state.daily_videos_imported == 2
    assert store.state.last_import_date == date(2024, 5, 2)
    assert store.state.total_videos_migrated == 9


def test_fully_migrated_count(store):
    store.record_source_playlist("p1", "Music", 2)
    store.record_source_playlist("p2", "Empty", 0)
    store.record_videos_imported("p1", 2)

    assert store.state.total_playlists_migrated == 1
    assert store.is_fully_migrated("p1")
    assert not store.is_fully_migrated("p2")


def test_export_date_set_once(store):
    store.set_export_date(date(2024, 5, 1))
    store.set_export_date(date(2023, 1, 1))
    assert store.state.export_date == date(2024, 5, 1)


def test_persist_load_round_trip(store, clock, tmp_path):
    store.set_export_date(date(2024, 4, 30))
    store.record_source_playlist("p1", "Music: the good stuff", 10)
    store.record_source_playlist("p2", "Talks", 5)
    store.record_videos_imported("p1", 10)
    store.record_videos_imported("p2", 2)
    store.persist()

    reloaded = ProgressStore(tmp_path / "migration_status.txt", today=clock)
    assert reloaded.state == store.state
    assert reloaded.state.playlists["p1"].name == "Music: the good stuff"


def test_name_spaces_survive_round_trip(store, clock, tmp_path):
    store.record_source_playlist("p1", "  Lo-fi  ", 3)
    store.record_source_playlist("p2", "Talks ", 1)
    store.persist()

    reloaded = ProgressStore(tmp_path / "migration_status.txt", today=clock)
    assert reloaded.state.playlists["p1"].name == "  Lo-fi  "
    assert reloaded.state.playlists["p2"].name == "Talks "
    assert reloaded.state == store.state


def test_persisted_format(store, tmp_path):
    store.set_export_date(date(2024, 4, 30))
    store.record_source_playlist("PLa", "Music", 3)
    store.record_videos_imported("PLa", 1)
    store.persist()

    text = (tmp_path / "migration_status.txt").read_text()
    assert text.startswith("# Playlist Migration Progress\n")
    assert "Export Date: 2024-04-30\n" in text
    assert "Last Import Date: 2024-05-01\n" in text
    assert "# Playlist Details\n" in text
    assert "[PLa] Name: Music\n" in text
    assert "[PLa] Total Videos: 3\n" in text
    assert "[PLa] Imported Videos: 1\n" in text


def test_persist_leaves_no_temp_files(store, tmp_path):
    store.record_source_playlist("p1", "Music", 1)
    store.persist()
    store.persist()
    assert [p.name for p in tmp_path.iterdir()] == ["migration_status.txt"]


def test_persist_failure_keeps_previous_file(store, tmp_path, monkeypatch):
    store.record_source_playlist("p1", "Music", 1)
    store.persist()
    original = (tmp_path / "migration_status.txt").read_text()

    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", fail_replace)
    store.record_videos_imported("p1", 1)
    with pytest.raises(ProgressStoreError):
        store.persist()

    assert (tmp_path / "migration_status.txt").read_text() == original
    assert [p.name for p in tmp_path.iterdir()] == ["migration_status.txt"]


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "migration_status.txt"
    path.write_text(text)
    return path


def test_corrupt_global_section_resets_state(tmp_path):
    path = _write(tmp_path, "\n".join([
        "# Playlist Migration Progress",
        "Export Date: yesterday",
        "Total Videos Migrated: 5",
        "# Playlist Details",
        "[p1] Name: Music",
        "[p1] Total Videos: 3",
        "[p1] Imported Videos: 1",
    ]))
    assert ProgressStore(path).state == MigrationState()


def test_corrupt_record_is_isolated(tmp_path):
    path = _write(tmp_path, "\n".join([
        "# Playlist Migration Progress",
        "Total Videos Migrated: 5",
        "",
        "# Playlist Details",
        "[p1] Name: Music",
        "[p1] Total Videos: three",
        "[p1] Imported Videos: 1",
        "[p2] Name: Talks",
        "[p2] Total Videos: 4",
        "[p2] Imported Videos: 2",
        "[p3] Name: Broken",
        "[p3] Imported Videos: -1",
    ]))
    state = ProgressStore(path).state

    assert set(state.playlists) == {"p2"}
    assert state.playlists["p2"].imported_videos == 2
    assert state.total_videos_migrated == 5


def test_unknown_lines_ignored_and_aliases_accepted(tmp_path):
    path = _write(tmp_path, "\n".join([
        "# Playlist Migration Progress",
        "Some Future Key: 12",
        "garbage line without separator",
        "Total Videos in Source Account: 4",
        "",
        "# Playlist Details",
        "not a detail line",
        "[p1] Name: Music",
        "[p1] Total Members: 4",
        "[p1] Imported Members: 4",
    ]))
    state = ProgressStore(path).state

    assert state.total_videos_in_source == 4
    assert state.playlists["p1"].total_videos == 4
    assert state.playlists["p1"].fully_migrated
