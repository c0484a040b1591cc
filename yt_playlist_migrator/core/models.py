"""Data models for migration, progress tracking and verification."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")

WATCH_URL = "https://www.youtube.com/watch?v={}"


def watch_url(video_id: str) -> str:
    return WATCH_URL.format(video_id)


@dataclass
class Playlist:
    """A playlist owned by one of the accounts."""
    playlist_id: str
    title: str
    description: str = ""
    privacy: str = "private"
    item_count: int = 0


@dataclass
class PlaylistItem:
    """An item from YouTube playlist."""
    item_id: str
    video_id: str
    title: str
    channel: str
    position: int = 0


@dataclass
class Page(Generic[T]):
    """One page of a paginated listing."""
    items: Optional[List[T]]
    next_token: Optional[str] = None


class ErrorKind(Enum):
    """Closed classification of a failed add call."""
    REFERENCE_NOT_FOUND = "ReferenceNotFound"
    PRECONDITION_FAILED = "PreconditionFailed"
    QUOTA_EXCEEDED = "QuotaExceeded"
    TRANSPORT = "TransportError"

    @property
    def is_skippable(self) -> bool:
        return self in (ErrorKind.REFERENCE_NOT_FOUND, ErrorKind.PRECONDITION_FAILED)

    @property
    def is_fatal(self) -> bool:
        return self is ErrorKind.QUOTA_EXCEEDED


@dataclass
class AddResult:
    """Outcome of adding one video to a playlist."""
    ok: bool
    kind: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls) -> "AddResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "AddResult":
        return cls(ok=False, kind=kind, message=message)


@dataclass
class MemberError:
    """A video that could not be added."""
    video_id: str
    kind: ErrorKind
    message: str


@dataclass
class SyncResult:
    """Result of synchronizing one source playlist into its target."""
    added_count: int = 0
    errors: List[MemberError] = field(default_factory=list)
    quota_exceeded: bool = False

    @property
    def skipped(self) -> List[str]:
        return [e.video_id for e in self.errors]


@dataclass
class ProgressRecord:
    """Migration counters for one source playlist."""
    name: str
    total_videos: int
    imported_videos: int = 0

    @property
    def fully_migrated(self) -> bool:
        return self.total_videos > 0 and self.imported_videos >= self.total_videos


@dataclass
class MigrationState:
    """Everything the progress file knows about a migration."""
    export_date: Optional[date] = None
    total_playlists_in_source: int = 0
    total_videos_in_source: int = 0
    last_import_date: Optional[date] = None
    total_playlists_migrated: int = 0
    total_videos_migrated: int = 0
    daily_videos_imported: int = 0
    playlists: dict[str, ProgressRecord] = field(default_factory=dict)


class VerificationStatus(Enum):
    COMPLETE = "Complete"
    PARTIAL = "Partial"
    TARGET_NOT_FOUND = "Target Playlist Not Found"
    FETCH_ERROR = "Fetch Error"


NOT_FOUND = "Not Found"


@dataclass
class VerificationResult:
    """Comparison of one source playlist with its migrated copy."""
    source_name: str
    source_id: str
    source_count: int
    expected_target_name: str
    target_id: str = NOT_FOUND
    target_count: int = 0
    status: VerificationStatus = VerificationStatus.FETCH_ERROR
    missing: set[str] = field(default_factory=set)
    extra: set[str] = field(default_factory=set)
    notes: str = ""


@dataclass
class VerificationSummary:
    """Aggregate over all verification results."""
    playlists_analyzed: int = 0
    total_source_videos: int = 0
    total_target_videos: int = 0
    status_counts: dict[VerificationStatus, int] = field(default_factory=dict)

    def count(self, status: VerificationStatus) -> int:
        return self.status_counts.get(status, 0)


@dataclass
class MigrationConfig:
    """Run configuration, passed explicitly to the components."""
    playlist_prefix: str = "Migrated - "
    default_privacy: str = "private"
    api_call_delay: float = 0.0
    data_dir: Path = Path(".")
