"""
Incremental snapshot sync for one platform.

A sync pass:
1. Fetches the platform's LAST_CHANGE marker
2. Stops early if the marker revision is already stored
3. Otherwise walks every listing page in token order, committing each
   page's snapshots as one insert-or-ignore batch
4. Records the completion time in the sync log

A pass can be stopped between pages; it then ends as INTERRUPTED and the
sync log is left alone.

Inserts are idempotent, so an interrupted pass is repaired by simply
running it again; pages committed before the interruption are kept.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.build_store import BuildStore
from ..core.connector import Connector
from ..core.models import SyncResult, SyncStatus, utc_timestamp
from ..sources.snapshot_archive import SnapshotArchive


logger = logging.getLogger(__name__)


class SnapshotSync:
    """
    Synchronizes the stored snapshot history of a platform with the archive.

    The store and connector are passed in explicitly; a single instance can
    be shared by threads syncing different platforms.
    """

    def __init__(
        self,
        store: BuildStore,
        connector: Connector,
        archive: Optional[SnapshotArchive] = None,
        clock: Optional[Callable[[], datetime]] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ):
        """
        Initialize the snapshot sync.

        Args:
            store: Build store receiving snapshots and sync logs
            connector: Connector used for every remote fetch
            archive: Archive URL conventions (defaults to the public bucket)
            clock: Returns the current time (UTC); overridable for tests
            should_stop: Polled after each committed page; when it returns
                True the pass ends early without touching the sync log
        """
        self.store = store
        self.connector = connector
        self.archive = archive or SnapshotArchive()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.should_stop = should_stop or (lambda: False)

    def is_fully_synced(self, platform: str, last_change: int) -> bool:
        """
        Decide whether a platform needs no listing walk.

        Assumes the archive is append-only with increasing revisions: once the
        newest marker is stored, every older directory was stored by an
        earlier completed pass. Subclass and override for a stronger check.
        """
        return self.store.has_snapshot(platform, last_change)

    def sync(self, platform: str) -> SyncResult:
        """
        Run one sync pass for a platform.

        Args:
            platform: Platform identifier (top-level archive directory)

        Returns:
            SyncResult describing what happened

        Raises:
            FetchError: If a remote document could not be fetched or decoded
            StoreError: If a page batch could not be committed
        """
        result = SyncResult(platform=platform, started_at=self.clock())
        log_context = {"platform": platform}

        logger.info(f"Checking snapshots for {platform}...", extra=log_context)
        result.last_change = self.archive.fetch_last_change(self.connector, platform)

        if self.is_fully_synced(platform, result.last_change):
            logger.info(
                f"Snapshots for {platform} are up-to-date (LAST_CHANGE {result.last_change})",
                extra=log_context,
            )
            result.status = SyncStatus.UP_TO_DATE
            result.ended_at = self.clock()
            return result

        listing = self.archive.listing(self.connector, platform)
        for page in listing.iter_pages():
            inserted = self.store.insert_snapshots(page.snapshots)

            result.pages += 1
            result.entries += len(page.snapshots)
            result.inserted += inserted

            discarded = len(page.prefixes) - len(page.snapshots)
            if discarded:
                logger.debug(
                    f"Discarded {discarded} non-revision prefixes on page {result.pages}",
                    extra=log_context,
                )
            logger.info(
                f"Loaded snapshots for {platform}...{result.entries} ({result.inserted} new)",
                extra=log_context,
            )

            if page.next_page_token and self.should_stop():
                result.status = SyncStatus.INTERRUPTED
                result.ended_at = self.clock()
                logger.warning(
                    f"Stopped {platform} after {result.pages} pages; sync log left unchanged",
                    extra=log_context,
                )
                return result

        self.store.touch_sync_log(platform, utc_timestamp(self.clock()))

        result.status = SyncStatus.SYNCED
        result.ended_at = self.clock()
        logger.info(
            f"Synced {platform}: {result.pages} pages, {result.entries} entries, "
            f"{result.inserted} new snapshots",
            extra=log_context,
        )
        return result
