"""
Sync passes that bring the local store up to date with the remote sources.
"""

from .snapshot_sync import SnapshotSync
from .milestone_sync import MilestoneSync

__all__ = ["SnapshotSync", "MilestoneSync"]
