"""
Milestone sync: refresh every milestone's branch point from the feed.
"""

import logging
from typing import Optional

from ..core.build_store import BuildStore
from ..core.connector import Connector
from ..sources.milestone_feed import MilestoneFeed


logger = logging.getLogger(__name__)


class MilestoneSync:
    """
    Upserts the full milestone feed into the store.

    The feed is authoritative at fetch time: a known milestone's revision is
    always overwritten. The feed is fully fetched and decoded before the
    store is touched, and then written as one batch.
    """

    def __init__(self, store: BuildStore, connector: Connector, feed: Optional[MilestoneFeed] = None):
        self.store = store
        self.connector = connector
        self.feed = feed or MilestoneFeed()

    def sync(self) -> int:
        """
        Fetch the feed and upsert every milestone.

        Returns:
            Number of milestones written

        Raises:
            FetchError: If the feed could not be fetched or decoded
            StoreError: If the batch could not be committed
        """
        logger.info(f"Fetching milestones from {self.feed.url}")
        milestones = self.feed.fetch(self.connector)

        written = self.store.upsert_milestones(milestones)
        logger.info(f"Upserted {written} milestones")
        return written
