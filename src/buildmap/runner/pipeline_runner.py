"""
Pipeline runner: sync every platform, sync milestones, export.

Platform syncs run sequentially by default or on a bounded thread pool.
Each platform only writes rows keyed by its own name, so parallel syncs do
not interfere; the store serializes their page commits. A failing platform
is recorded and the remaining platforms still run.
"""

import logging
import signal
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.build_store import BuildStore
from ..core.connector import Connector
from ..core.exceptions import BuildMapError
from ..core.models import SyncResult, SyncStatus
from ..export.json_exporter import DEFAULT_EXPORT_PATH, JsonExporter
from ..sources.milestone_feed import MilestoneFeed
from ..sources.snapshot_archive import SnapshotArchive
from ..sync.milestone_sync import MilestoneSync
from ..sync.snapshot_sync import SnapshotSync


logger = logging.getLogger(__name__)


@dataclass
class RunnerConfig:
    """
    Configuration for the pipeline runner.

    Attributes:
        platforms: Platforms to sync, in order
        max_workers: Maximum concurrent platform syncs (1 = sequential)
        fail_fast: Abort the run on the first platform failure
        export_path: Where the JSON export is written
        export_indent: JSON indentation of the export
    """
    platforms: List[str] = field(default_factory=list)
    max_workers: int = 1
    fail_fast: bool = False
    export_path: Path = DEFAULT_EXPORT_PATH
    export_indent: int = 2


@dataclass
class RunMetrics:
    """Aggregate results for a run."""
    run_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    platform_results: List[SyncResult] = field(default_factory=list)
    milestones_upserted: int = 0
    milestone_error: Optional[str] = None
    records_exported: int = 0
    export_path: Optional[str] = None
    status: str = "running"

    @property
    def failed_platforms(self) -> List[str]:
        return [r.platform for r in self.platform_results if r.status == SyncStatus.FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed_platforms and self.milestone_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "status": self.status,
            "platforms": [r.to_dict() for r in self.platform_results],
            "milestones_upserted": self.milestones_upserted,
            "milestone_error": self.milestone_error,
            "records_exported": self.records_exported,
            "export_path": self.export_path,
        }


class BuildMapRunner:
    """
    Orchestrates one full pipeline run.

    Manages the workflow:
    1. Sync snapshots for every configured platform
    2. Sync the milestone feed
    3. Resolve and export the build map
    """

    def __init__(
        self,
        store: BuildStore,
        connector: Connector,
        config: Optional[RunnerConfig] = None,
        archive: Optional[SnapshotArchive] = None,
        feed: Optional[MilestoneFeed] = None,
    ):
        """
        Initialize the runner.

        Args:
            store: Build store shared by every step
            connector: Connector used for every remote fetch
            config: Runner configuration (uses defaults if not provided)
            archive: Snapshot archive URL conventions
            feed: Milestone feed source
        """
        self.store = store
        self.connector = connector
        self.config = config or RunnerConfig()
        self._shutdown_event = threading.Event()

        self.snapshot_sync = SnapshotSync(
            store,
            connector,
            archive=archive,
            should_stop=self._shutdown_event.is_set,
        )
        self.milestone_sync = MilestoneSync(store, connector, feed=feed)
        self.exporter = JsonExporter(
            store,
            output_path=self.config.export_path,
            indent=self.config.export_indent,
        )


    def run(self, run_id: Optional[str] = None) -> RunMetrics:
        """
        Run the full sync-then-export pipeline once.

        Args:
            run_id: Optional run identifier (auto-generated if not provided)

        Returns:
            RunMetrics with per-platform results

        Raises:
            ExportError: If the export could not be written
            BuildMapError: On the first platform failure when fail_fast is set
        """
        if run_id is None:
            run_id = str(uuid.uuid4())

        log_context = {"run_id": run_id}
        logger.info(
            f"Starting build map run: {len(self.config.platforms)} platforms, "
            f"max_workers={self.config.max_workers}",
            extra=log_context,
        )

        metrics = RunMetrics(run_id=run_id, started_at=datetime.now(timezone.utc))
        self._shutdown_event.clear()

        restore_signals = self._install_signal_handlers()
        try:
            if self.config.max_workers > 1 and len(self.config.platforms) > 1:
                metrics.platform_results = self._sync_platforms_concurrently()
            else:
                metrics.platform_results = self._sync_platforms_sequentially()
        finally:
            restore_signals()

        if self._shutdown_event.is_set():
            metrics.status = "interrupted"
            metrics.ended_at = datetime.now(timezone.utc)
            logger.warning("Run interrupted before milestone sync and export", extra=log_context)
            return metrics

        try:
            metrics.milestones_upserted = self.milestone_sync.sync()
        except BuildMapError as e:
            metrics.milestone_error = str(e)
            logger.error(f"Milestone sync failed: {e}", extra=log_context)

        document = self.exporter.export()
        metrics.records_exported = len(document.records)
        metrics.export_path = str(self.exporter.output_path)

        metrics.ended_at = datetime.now(timezone.utc)
        metrics.status = "completed" if metrics.succeeded else "completed_with_errors"

        logger.info(f"Run complete: {run_id} ({metrics.status})", extra=log_context)
        logger.info(
            f"Platforms: {len(metrics.platform_results)} "
            f"(failed: {', '.join(metrics.failed_platforms) or 'none'}), "
            f"milestones: {metrics.milestones_upserted}, records: {metrics.records_exported}",
            extra=log_context,
        )
        return metrics

    def _sync_platform(self, platform: str) -> SyncResult:
        """Sync one platform, turning failures into a FAILED result."""
        try:
            return self.snapshot_sync.sync(platform)
        except BuildMapError as e:
            logger.error(f"Snapshot sync failed for {platform}: {e}", extra={"platform": platform})
            if self.config.fail_fast:
                raise
            return SyncResult(
                platform=platform,
                status=SyncStatus.FAILED,
                error_message=str(e),
                ended_at=datetime.now(timezone.utc),
            )

    def _sync_platforms_sequentially(self) -> List[SyncResult]:
        results = []
        for platform in self.config.platforms:
            if self._shutdown_event.is_set():
                logger.info(f"Shutdown requested, skipping {platform}")
                break
            results.append(self._sync_platform(platform))
        return results

    def _sync_platforms_concurrently(self) -> List[SyncResult]:
        results: Dict[str, SyncResult] = {}

        def _run(platform: str) -> Optional[SyncResult]:
            if self._shutdown_event.is_set():
                return None
            return self._sync_platform(platform)

        with ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="buildmap-sync",
        ) as executor:
            futures = {executor.submit(_run, platform): platform for platform in self.config.platforms}
            try:
                for future in as_completed(futures):
                    result = future.result()
                    if result is not None:
                        results[futures[future]] = result
            except BaseException:
                for pending in futures:
                    pending.cancel()
                self._shutdown_event.set()
                raise

        # Report in configured order regardless of completion order
        return [results[p] for p in self.config.platforms if p in results]

    def _install_signal_handlers(self):
        """Route SIGINT/SIGTERM to a graceful shutdown; returns a restore callable."""
        if threading.current_thread() is not threading.main_thread():
            return lambda: None

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handle_shutdown_signal(signum, frame):
            if self._shutdown_event.is_set():
                # Second signal: stop waiting for in-flight pages
                logger.warning(f"Received signal {signum} again, aborting immediately")
                _restore()
                raise KeyboardInterrupt
            logger.info(f"Received signal {signum}, stopping after the current listing pages...")
            self.shutdown()

        signal.signal(signal.SIGINT, _handle_shutdown_signal)
        signal.signal(signal.SIGTERM, _handle_shutdown_signal)

        def _restore():
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)

        return _restore

    def shutdown(self) -> None:
        """Stop starting new platform syncs; in-flight ones stop after their current page."""
        self._shutdown_event.set()

    def close(self) -> None:
        """Close all resources."""
        logger.debug("Closing runner resources")
        self.connector.close()
        self.store.close()
