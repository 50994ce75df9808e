"""
Milestone-to-build resolution.

For every milestone and every platform with stored snapshots, finds the
greatest snapshot revision that does not exceed the milestone's branch
point. Each platform's revisions are loaded once, sorted, and searched with
``bisect``.
"""

import logging
from bisect import bisect_right
from typing import Dict, List, Optional, Sequence

from ..core.build_store import BuildStore
from ..core.models import Milestone, ResolvedRecord


logger = logging.getLogger(__name__)


def nearest_at_or_below(revisions: Sequence[int], ceiling: int) -> Optional[int]:
    """
    Return the greatest value in a sorted sequence that is <= ceiling.

    >>> nearest_at_or_below([10, 50, 90], 60)
    50
    >>> nearest_at_or_below([10, 50, 90], 5) is None
    True
    """
    index = bisect_right(revisions, ceiling)
    if index == 0:
        return None
    return revisions[index - 1]


def resolve_records(
    milestones: Sequence[Milestone],
    revisions_by_platform: Dict[str, Sequence[int]],
) -> List[ResolvedRecord]:
    """
    Resolve every (milestone, platform) pair that has an eligible snapshot.

    Args:
        milestones: Milestones to resolve
        revisions_by_platform: Sorted revisions per platform

    Returns:
        Records ordered by revision, then platform, then milestone
    """
    records = []
    for platform in sorted(revisions_by_platform):
        revisions = revisions_by_platform[platform]
        for milestone in milestones:
            revision = nearest_at_or_below(revisions, milestone.revision)
            if revision is not None:
                records.append(ResolvedRecord(
                    milestone=milestone.milestone,
                    platform=platform,
                    revision=revision,
                ))

    records.sort(key=ResolvedRecord.sort_key)
    return records


class Resolver:
    """Reads milestones and snapshots from a store and resolves them."""

    def __init__(self, store: BuildStore):
        self.store = store

    def resolve(self) -> List[ResolvedRecord]:
        milestones = self.store.list_milestones()
        revisions_by_platform = {
            platform: self.store.list_revisions(platform)
            for platform in self.store.list_snapshot_prefixes()
        }

        records = resolve_records(milestones, revisions_by_platform)
        logger.debug(
            f"Resolved {len(records)} records from {len(milestones)} milestones "
            f"across {len(revisions_by_platform)} platforms"
        )
        return records
