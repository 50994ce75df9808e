"""
Core data models for the build map pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Format a moment as an ISO-8601 UTC string with millisecond precision.

    The trailing offset is written as ``Z`` so stored timestamps look the
    same regardless of which backend produced them.
    """
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, order=True)
class Snapshot:
    """
    A build observed in the remote snapshot archive.

    Attributes:
        platform: Platform identifier (listing prefix), e.g. 'Linux_x64'
        revision: Build revision, meaningful only within its platform
    """
    platform: str
    revision: int


@dataclass(frozen=True)
class Milestone:
    """
    A release milestone and the revision its branch diverged at.

    Attributes:
        milestone: Milestone number
        revision: Main branch position for the milestone
    """
    milestone: int
    revision: int


@dataclass(frozen=True)
class SyncLogEntry:
    """Last completed sync time for one platform."""
    platform: str
    updated_at: str

    def to_dict(self) -> Dict[str, str]:
        return {"prefix": self.platform, "updatedAt": self.updated_at}


@dataclass(frozen=True)
class ResolvedRecord:
    """
    Nearest available build at or below a milestone's branch point.

    Attributes:
        milestone: Milestone number
        platform: Platform identifier
        revision: Greatest snapshot revision not exceeding the milestone's
    """
    milestone: int
    platform: str
    revision: int

    def sort_key(self):
        return (self.revision, self.platform, self.milestone)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "milestone": self.milestone,
            "prefix": self.platform,
            "revision": self.revision,
        }


class SyncStatus(str, Enum):
    """Outcome of one platform sync."""
    UP_TO_DATE = "up_to_date"
    SYNCED = "synced"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass
class SyncResult:
    """
    Result of synchronizing one platform.

    Attributes:
        platform: Platform identifier
        status: Outcome of the sync
        last_change: LAST_CHANGE marker reported by the remote (if fetched)
        pages: Number of listing pages committed
        entries: Number of valid listing entries seen
        inserted: Number of snapshot rows newly stored
        error_message: Error message if the sync failed
        started_at: When the sync started
        ended_at: When the sync finished
    """
    platform: str
    status: SyncStatus = SyncStatus.SYNCED
    last_change: Optional[int] = None
    pages: int = 0
    entries: int = 0
    inserted: int = 0
    error_message: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status in (SyncStatus.UP_TO_DATE, SyncStatus.SYNCED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "status": self.status.value,
            "last_change": self.last_change,
            "pages": self.pages,
            "entries": self.entries,
            "inserted": self.inserted,
            "error_message": self.error_message,
        }


@dataclass
class ExportDocument:
    """The portable export: resolved records plus sync timestamps."""
    records: List[ResolvedRecord] = field(default_factory=list)
    sync_logs: List[SyncLogEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [record.to_dict() for record in self.records],
            "updatedAt": [entry.to_dict() for entry in self.sync_logs],
        }
