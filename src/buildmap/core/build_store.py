"""
Store interface for snapshots, milestones and sync logs.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Set

from ..core.models import Milestone, Snapshot, SyncLogEntry


class BuildStore(ABC):
    """
    Abstract base class for build stores.

    A build store persists the deduplicated snapshot history of every
    platform, the current branch point of every milestone, and the last
    completed sync time per platform. Every batch operation is atomic.
    """

    # Snapshots

    @abstractmethod
    def has_snapshot(self, platform: str, revision: int) -> bool:
        """
        Check whether a (platform, revision) pair has been stored.

        Args:
            platform: Platform identifier
            revision: Build revision

        Returns:
            True if the pair exists
        """
        pass

    @abstractmethod
    def insert_snapshots(self, snapshots: Iterable[Snapshot]) -> int:
        """
        Insert snapshots, ignoring pairs that already exist.

        The whole batch is committed in one transaction; on failure nothing
        from the batch is persisted.

        Args:
            snapshots: Snapshots to insert

        Returns:
            Number of rows newly inserted
        """
        pass

    def insert_if_absent(self, platform: str, revision: int) -> bool:
        """Insert a single snapshot. Returns True if it was new."""
        return self.insert_snapshots([Snapshot(platform, revision)]) == 1

    @abstractmethod
    def list_snapshot_prefixes(self) -> Set[str]:
        """Return the platforms that have at least one stored snapshot."""
        pass

    @abstractmethod
    def list_revisions(self, platform: str) -> List[int]:
        """Return every stored revision for a platform, ascending."""
        pass

    @abstractmethod
    def max_revision_at_or_below(self, platform: str, ceiling: int) -> Optional[int]:
        """
        Find the greatest stored revision not exceeding a ceiling.

        Args:
            platform: Platform identifier
            ceiling: Inclusive upper bound

        Returns:
            The revision, or None if every stored revision exceeds the ceiling
        """
        pass

    @abstractmethod
    def count_snapshots(self, platform: Optional[str] = None) -> int:
        """Count stored snapshots, optionally for one platform."""
        pass

    # Sync logs

    @abstractmethod
    def touch_sync_log(self, platform: str, updated_at: str) -> None:
        """Record the completion time of a platform sync (upsert)."""
        pass

    @abstractmethod
    def list_sync_logs(self) -> List[SyncLogEntry]:
        """Return every sync log row, ordered by platform."""
        pass

    # Milestones

    @abstractmethod
    def upsert_milestones(self, milestones: Iterable[Milestone]) -> int:
        """
        Insert milestones or overwrite the revision of known ones.

        The whole batch is committed in one transaction.

        Args:
            milestones: Milestones to upsert

        Returns:
            Number of milestones written
        """
        pass

    def upsert_milestone(self, milestone: int, revision: int) -> None:
        """Upsert a single milestone."""
        self.upsert_milestones([Milestone(milestone, revision)])

    @abstractmethod
    def list_milestones(self) -> List[Milestone]:
        """Return every milestone, ordered by milestone number."""
        pass

    def close(self) -> None:
        """Close any open resources. Optional."""
        pass
