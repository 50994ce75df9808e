"""
SQLite-based build store.

The default backend: a single database file holding the snapshot history,
milestones and sync logs. One connection is shared by every thread and all
access goes through a lock, so concurrent platform syncs commit their page
batches one at a time.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from ..core.build_store import BuildStore
from ..core.exceptions import StoreError
from ..core.models import Milestone, Snapshot, SyncLogEntry


logger = logging.getLogger(__name__)


MEMORY_PATH = ":memory:"


class SqliteBuildStore(BuildStore):
    """
    SQLite-based implementation of the build store.

    Uniqueness is enforced by the schema: snapshots are unique on
    (prefix, revision), milestones on milestone, sync logs on prefix.
    """

    def __init__(self, db_path: Union[str, Path] = MEMORY_PATH, auto_init: bool = True):
        """
        Initialize the SQLite build store.

        Args:
            db_path: Path to the SQLite database file, or ':memory:'
            auto_init: Whether to create tables automatically
        """
        self.db_path = db_path if str(db_path) == MEMORY_PATH else Path(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._connect()

        if auto_init:
            self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
        )
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to SQLite build store: {self.db_path}")

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._lock:
            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    prefix TEXT NOT NULL,
                    revision INTEGER NOT NULL
                )
            """)

            cursor.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS ix_snapshots_prefix_revision
                ON snapshots (prefix, revision)
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS milestones (
                    milestone INTEGER NOT NULL UNIQUE,
                    revision INTEGER NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sync_logs (
                    prefix TEXT NOT NULL UNIQUE,
                    updatedAt TEXT NOT NULL
                )
            """)

            self.conn.commit()
        logger.debug("Initialized build store schema")

    def _query(self, sql: str, params: tuple = ()) -> list:
        """Run a read query, reporting driver errors as StoreError."""
        with self._lock:
            if self.conn is None:
                raise StoreError("SQLite build store is closed")
            try:
                cursor = self.conn.cursor()
                cursor.execute(sql, params)
                return cursor.fetchall()
            except sqlite3.Error as e:
                logger.error(f"Query failed: {e}")
                raise StoreError(f"Failed to read build store: {e}") from e

    # Snapshots

    def has_snapshot(self, platform: str, revision: int) -> bool:
        rows = self._query("""
            SELECT 1 FROM snapshots WHERE prefix = ? AND revision = ? LIMIT 1
        """, (platform, revision))
        return bool(rows)

    def insert_snapshots(self, snapshots: Iterable[Snapshot]) -> int:
        rows = [(snapshot.platform, snapshot.revision) for snapshot in snapshots]
        if not rows:
            return 0

        with self._lock:
            try:
                cursor = self.conn.cursor()
                inserted = 0
                for row in rows:
                    cursor.execute("""
                        INSERT OR IGNORE INTO snapshots (prefix, revision) VALUES (?, ?)
                    """, row)
                    inserted += cursor.rowcount
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error(f"Failed to insert snapshot batch: {e}")
                raise StoreError(f"Failed to insert {len(rows)} snapshots: {e}") from e

        logger.debug(f"Inserted {inserted}/{len(rows)} snapshots")
        return inserted

    def list_snapshot_prefixes(self) -> Set[str]:
        rows = self._query("SELECT DISTINCT prefix FROM snapshots")
        return {row["prefix"] for row in rows}

    def list_revisions(self, platform: str) -> List[int]:
        rows = self._query("""
            SELECT revision FROM snapshots WHERE prefix = ? ORDER BY revision ASC
        """, (platform,))
        return [row["revision"] for row in rows]

    def max_revision_at_or_below(self, platform: str, ceiling: int) -> Optional[int]:
        rows = self._query("""
            SELECT MAX(revision) AS revision
            FROM snapshots
            WHERE prefix = ? AND revision <= ?
        """, (platform, ceiling))
        return rows[0]["revision"] if rows else None

    def count_snapshots(self, platform: Optional[str] = None) -> int:
        if platform is None:
            rows = self._query("SELECT COUNT(*) AS count FROM snapshots")
        else:
            rows = self._query("SELECT COUNT(*) AS count FROM snapshots WHERE prefix = ?", (platform,))
        return rows[0]["count"]

    # Sync logs

    def touch_sync_log(self, platform: str, updated_at: str) -> None:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("""
                    INSERT INTO sync_logs (prefix, updatedAt) VALUES (?, ?)
                    ON CONFLICT(prefix) DO UPDATE SET updatedAt = excluded.updatedAt
                """, (platform, updated_at))
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error(f"Failed to update sync log for {platform}: {e}")
                raise StoreError(f"Failed to update sync log for {platform}: {e}") from e

    def list_sync_logs(self) -> List[SyncLogEntry]:
        rows = self._query("SELECT prefix, updatedAt FROM sync_logs ORDER BY prefix ASC")
        return [SyncLogEntry(platform=row["prefix"], updated_at=row["updatedAt"]) for row in rows]

    # Milestones

    def upsert_milestones(self, milestones: Iterable[Milestone]) -> int:
        rows = [(item.milestone, item.revision) for item in milestones]
        if not rows:
            return 0

        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.executemany("""
                    INSERT INTO milestones (milestone, revision) VALUES (?, ?)
                    ON CONFLICT(milestone) DO UPDATE SET revision = excluded.revision
                """, rows)
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error(f"Failed to upsert milestone batch: {e}")
                raise StoreError(f"Failed to upsert {len(rows)} milestones: {e}") from e

        return len(rows)

    def list_milestones(self) -> List[Milestone]:
        rows = self._query("SELECT milestone, revision FROM milestones ORDER BY milestone ASC")
        return [Milestone(milestone=row["milestone"], revision=row["revision"]) for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.debug("Closed SQLite build store connection")
