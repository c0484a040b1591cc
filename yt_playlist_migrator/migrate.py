#!/usr/bin/env python3
"""YouTube Playlist Migrator - Entry Point"""

import argparse
import fcntl
import logging
import os
import sys
import time
from pathlib import Path
from typing import Mapping

from yt_playlist_migrator.clients.auth import authorize
from yt_playlist_migrator.clients.youtube import (
    YouTubeAPIError,
    YouTubeAuthError,
    YouTubeClient,
    YouTubeQuotaExceededError,
)
from yt_playlist_migrator.core.migration import MigrationRunner, RunReport
from yt_playlist_migrator.core.models import MigrationConfig, Playlist
from yt_playlist_migrator.core.progress import ProgressStore
from yt_playlist_migrator.core.report import write_report
from yt_playlist_migrator.core.sync_engine import SyncEngine

PROGRESS_FILE = "migration_status.txt"
LOG_FILE = "migration.log"
LOCK_FILE = ".migration.lock"
TOKENS_DIR = "tokens"
PRIVACY_VALUES = ("public", "private", "unlisted")

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    pass


def setup_logging(data_dir: Path) -> None:
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    data_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.FileHandler(data_dir / LOG_FILE, encoding="utf-8"),
            logging.StreamHandler()
        ]
    )


def acquire_lock(lock_file: Path) -> int | None:
    try:
        # Check for stale lock (older than 30 min = likely orphaned)
        if lock_file.exists():
            age = time.time() - lock_file.stat().st_mtime
            if age > 1800:  # 30 minutes
                logger.warning(f"Removing stale lock file (age: {age:.0f}s)")
                lock_file.unlink(missing_ok=True)

        fd = os.open(str(lock_file), os.O_CREAT | os.O_RDWR)
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        os.write(fd, f"{os.getpid()}\n".encode())
        return fd
    except OSError:
        return None


def release_lock(fd: int, lock_file: Path) -> None:
    try:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)
        lock_file.unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"Lock release failed: {e}")


def load_config(environ: Mapping[str, str] = os.environ) -> MigrationConfig:
    privacy = environ.get("DEFAULT_PLAYLIST_PRIVACY", "private").strip().lower()
    if privacy not in PRIVACY_VALUES:
        raise ConfigError(f"DEFAULT_PLAYLIST_PRIVACY must be one of {', '.join(PRIVACY_VALUES)}, got '{privacy}'")

    raw_delay = environ.get("API_CALL_DELAY_MS", "0")
    try:
        delay_ms = int(raw_delay)
    except ValueError:
        raise ConfigError(f"API_CALL_DELAY_MS must be an integer, got '{raw_delay}'")
    if delay_ms < 0:
        raise ConfigError(f"API_CALL_DELAY_MS must not be negative, got {delay_ms}")

    return MigrationConfig(
        playlist_prefix=environ.get("MIGRATED_PLAYLIST_PREFIX", "Migrated - "),
        default_privacy=privacy,
        api_call_delay=delay_ms / 1000,
        data_dir=Path(environ.get("MIGRATOR_DATA_DIR", ".")),
    )


def select_playlists(playlists: list[Playlist], choice: str) -> list[Playlist]:
    """Resolve 'all' or a count into the leading playlists to migrate."""
    choice = choice.strip()
    if choice.lower() == "all":
        return list(playlists)
    try:
        count = int(choice)
    except ValueError:
        logger.warning("Invalid input. No playlists will be migrated.")
        return []
    if count <= 0:
        logger.warning("Invalid number. No playlists will be migrated.")
        return []
    if count > len(playlists):
        logger.warning(f"Number exceeds available playlists. Migrating all {len(playlists)} playlists.")
    return list(playlists[:count])


def log_report(report: RunReport) -> None:
    for title, reason in report.failed.items():
        logger.warning(f"Failed playlist '{title}': {reason}")
    for title in report.halted:
        logger.warning(f"Halted playlist '{title}': quota exceeded, rerun later")
    for title, errors in report.member_errors.items():
        for error in errors:
            logger.warning(f"Not added to '{title}': {error.video_id} ({error.kind.value}) {error.message}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Migrate YouTube playlists between accounts")
    parser.add_argument("--count", help="number of playlists to migrate, or 'all'")
    parser.add_argument("--no-verify", action="store_true", help="skip the verification report")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.data_dir)

    lock_file = config.data_dir / LOCK_FILE
    lock_fd = acquire_lock(lock_file)
    if lock_fd is None:
        logger.warning("Another migration running, exiting")
        return 0

    try:
        client_secrets = Path(os.environ.get("GOOGLE_CLIENT_SECRETS", "client_secret.json"))
        tokens = config.data_dir / TOKENS_DIR

        logger.info("Authorizing SOURCE account, follow the browser prompts...")
        try:
            source = YouTubeClient(authorize(tokens / "source", client_secrets))
            logger.info("Authorizing TARGET account, follow the browser prompts...")
            target = YouTubeClient(authorize(tokens / "target", client_secrets))
        except YouTubeAuthError as e:
            logger.error(f"YouTube auth failed: {e}")
            return 1

        store = ProgressStore(config.data_dir / PROGRESS_FILE)
        engine = SyncEngine(delay=config.api_call_delay)
        runner = MigrationRunner(source, target, store, engine, config)

        source_playlists = runner.scan_source()
        choice = args.count
        if choice is None:
            choice = input(f"Number of playlists to migrate (e.g., 1, 2, or 'all' for all "
                           f"{len(source_playlists)} playlists): ")
        selected = select_playlists(source_playlists, choice)
        if not selected:
            logger.info("No playlists selected for migration.")
            return 0

        report = runner.migrate(selected)
        log_report(report)

        if not args.no_verify:
            results, summary = runner.verify(selected)
            write_report(results, summary, config.data_dir)

        return 1 if report.quota_exceeded or report.failed else 0

    except YouTubeQuotaExceededError as e:
        logger.error(f"Quota exceeded: {e}")
        return 1
    except YouTubeAPIError as e:
        logger.error(f"YouTube API error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1
    finally:
        release_lock(lock_fd, lock_file)


if __name__ == "__main__":
    sys.exit(main())
