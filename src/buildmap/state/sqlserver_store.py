"""
SQL Server-based build store.

Optional backend for deployments that keep the build map next to other
data in SQL Server. Requires pyodbc and an ODBC driver.
"""

import logging
import re
import threading
from typing import Iterable, List, Optional, Set

try:
    import pyodbc
except ImportError:
    pyodbc = None

from ..core.build_store import BuildStore
from ..core.exceptions import StoreError
from ..core.models import Milestone, Snapshot, SyncLogEntry


logger = logging.getLogger(__name__)


RESERVED_WORDS = {
    'select', 'insert', 'update', 'delete', 'drop', 'create', 'alter',
    'exec', 'execute', 'union', 'where', 'from', 'table', 'database',
    'schema', 'index', 'grant', 'revoke', 'truncate', 'declare', 'set'
}


class SqlServerBuildStore(BuildStore):
    """
    SQL Server-based implementation of the build store.

    Each thread gets its own connection, so parallel platform syncs commit
    their page batches in independent transactions. Upserts use MERGE with
    HOLDLOCK so concurrent batches cannot race on the unique keys.
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        host: str = "localhost",
        port: int = 1433,
        database: str = "BuildMap",
        username: str = "sa",
        password: Optional[str] = None,
        driver: str = "ODBC Driver 18 for SQL Server",
        schema: str = "buildmap",
        auto_init: bool = True,
        trust_server_certificate: bool = True,
    ):
        """
        Initialize the SQL Server build store.

        Args:
            connection_string: Full ODBC connection string (if provided, other params ignored)
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password
            driver: ODBC driver name
            schema: Schema name for tables (default: 'buildmap')
            auto_init: Whether to create schema and tables automatically
            trust_server_certificate: Whether to trust self-signed certificates
        """
        if pyodbc is None:
            raise ImportError(
                "pyodbc is required for SqlServerBuildStore. "
                "Install with: pip install 'buildmap[sqlserver]'"
            )

        if not self._is_valid_identifier(schema):
            raise ValueError(f"Invalid schema name: {schema}")

        self.schema = schema

        if connection_string:
            self.connection_string = connection_string
        else:
            trust_cert = "yes" if trust_server_certificate else "no"
            self.connection_string = (
                f"Driver={{{driver}}};"
                f"Server={host},{port};"
                f"Database={database};"
                f"UID={username};"
                f"PWD={password};"
                f"TrustServerCertificate={trust_cert}"
            )

        self._thread_local = threading.local()
        self._connections = []
        self._connections_lock = threading.Lock()
        self._connect()

        if auto_init:
            self._init_schema()

    @staticmethod
    def _is_valid_identifier(name: str) -> bool:
        """
        Validate that a name is a safe SQL identifier.

        Must start with a letter or underscore, contain only letters, digits
        and underscores, be at most 128 characters and not a reserved word.
        """
        if not name or len(name) > 128:
            return False
        if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', name):
            return False
        return name.lower() not in RESERVED_WORDS

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._get_conn()
            logger.debug(f"Connected to SQL Server build store (schema: {self.schema})")
        except pyodbc.Error as e:
            logger.error(f"Failed to connect to SQL Server: {e}")
            raise StoreError(f"Failed to connect to SQL Server: {e}") from e

    def _get_conn(self):
        """Get (or create) a thread-local connection."""
        conn = getattr(self._thread_local, "conn", None)
        if conn is None:
            conn = pyodbc.connect(self.connection_string, autocommit=False)
            self._thread_local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def _init_schema(self) -> None:
        """Create schema and tables if they are missing."""
        conn = self._get_conn()
        cursor = conn.cursor()

        try:
            # Schema name is validated in __init__; CREATE SCHEMA cannot take parameters
            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = ?)
                BEGIN
                    EXEC('CREATE SCHEMA [{self.schema}]')
                END
            """, (self.schema,))

            cursor.execute(f"""
                IF OBJECT_ID(N'[{self.schema}].[snapshots]', N'U') IS NULL
                BEGIN
                    CREATE TABLE [{self.schema}].[snapshots] (
                        prefix NVARCHAR(100) NOT NULL,
                        revision BIGINT NOT NULL,
                        CONSTRAINT UQ_snapshots_prefix_revision UNIQUE (prefix, revision)
                    )
                END
            """)

            cursor.execute(f"""
                IF OBJECT_ID(N'[{self.schema}].[milestones]', N'U') IS NULL
                BEGIN
                    CREATE TABLE [{self.schema}].[milestones] (
                        milestone INT NOT NULL PRIMARY KEY,
                        revision BIGINT NOT NULL
                    )
                END
            """)

            cursor.execute(f"""
                IF OBJECT_ID(N'[{self.schema}].[sync_logs]', N'U') IS NULL
                BEGIN
                    CREATE TABLE [{self.schema}].[sync_logs] (
                        prefix NVARCHAR(100) NOT NULL PRIMARY KEY,
                        updatedAt NVARCHAR(40) NOT NULL
                    )
                END
            """)

            conn.commit()
            logger.debug(f"Initialized build store schema [{self.schema}]")

        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to initialize schema: {e}")
            raise StoreError(f"Failed to initialize schema [{self.schema}]: {e}") from e

    def _query(self, sql: str, params: tuple = ()) -> list:
        """Run a read query, reporting driver errors as StoreError."""
        try:
            cursor = self._get_conn().cursor()
            cursor.execute(sql, params)
            return cursor.fetchall()
        except pyodbc.Error as e:
            logger.error(f"Query failed: {e}")
            raise StoreError(f"Failed to read build store: {e}") from e

    # Snapshots

    def has_snapshot(self, platform: str, revision: int) -> bool:
        rows = self._query(f"""
            SELECT TOP 1 1 FROM [{self.schema}].[snapshots]
            WHERE prefix = ? AND revision = ?
        """, (platform, revision))
        return bool(rows)

    def insert_snapshots(self, snapshots: Iterable[Snapshot]) -> int:
        rows = [(snapshot.platform, snapshot.revision) for snapshot in snapshots]
        if not rows:
            return 0

        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            inserted = 0
            for platform, revision in rows:
                cursor.execute(f"""
                    MERGE [{self.schema}].[snapshots] WITH (HOLDLOCK) AS target
                    USING (SELECT ? AS prefix, ? AS revision) AS source
                    ON target.prefix = source.prefix AND target.revision = source.revision
                    WHEN NOT MATCHED THEN
                        INSERT (prefix, revision) VALUES (source.prefix, source.revision);
                """, (platform, revision))
                inserted += max(cursor.rowcount, 0)
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to insert snapshot batch: {e}")
            raise StoreError(f"Failed to insert {len(rows)} snapshots: {e}") from e

        return inserted

    def list_snapshot_prefixes(self) -> Set[str]:
        rows = self._query(f"SELECT DISTINCT prefix FROM [{self.schema}].[snapshots]")
        return {row[0] for row in rows}

    def list_revisions(self, platform: str) -> List[int]:
        rows = self._query(f"""
            SELECT revision FROM [{self.schema}].[snapshots]
            WHERE prefix = ? ORDER BY revision ASC
        """, (platform,))
        return [int(row[0]) for row in rows]

    def max_revision_at_or_below(self, platform: str, ceiling: int) -> Optional[int]:
        rows = self._query(f"""
            SELECT MAX(revision) FROM [{self.schema}].[snapshots]
            WHERE prefix = ? AND revision <= ?
        """, (platform, ceiling))
        if not rows or rows[0][0] is None:
            return None
        return int(rows[0][0])

    def count_snapshots(self, platform: Optional[str] = None) -> int:
        if platform is None:
            rows = self._query(f"SELECT COUNT(*) FROM [{self.schema}].[snapshots]")
        else:
            rows = self._query(
                f"SELECT COUNT(*) FROM [{self.schema}].[snapshots] WHERE prefix = ?",
                (platform,),
            )
        return int(rows[0][0])

    # Sync logs

    def touch_sync_log(self, platform: str, updated_at: str) -> None:
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(f"""
                MERGE [{self.schema}].[sync_logs] WITH (HOLDLOCK) AS target
                USING (SELECT ? AS prefix) AS source
                ON target.prefix = source.prefix
                WHEN MATCHED THEN
                    UPDATE SET updatedAt = ?
                WHEN NOT MATCHED THEN
                    INSERT (prefix, updatedAt) VALUES (?, ?);
            """, (platform, updated_at, platform, updated_at))
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to update sync log for {platform}: {e}")
            raise StoreError(f"Failed to update sync log for {platform}: {e}") from e

    def list_sync_logs(self) -> List[SyncLogEntry]:
        rows = self._query(f"""
            SELECT prefix, updatedAt FROM [{self.schema}].[sync_logs]
            ORDER BY prefix COLLATE Latin1_General_BIN2 ASC
        """)
        return [SyncLogEntry(platform=row[0], updated_at=row[1]) for row in rows]

    # Milestones

    def upsert_milestones(self, milestones: Iterable[Milestone]) -> int:
        rows = [(item.milestone, item.revision) for item in milestones]
        if not rows:
            return 0

        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            for milestone, revision in rows:
                cursor.execute(f"""
                    MERGE [{self.schema}].[milestones] WITH (HOLDLOCK) AS target
                    USING (SELECT ? AS milestone) AS source
                    ON target.milestone = source.milestone
                    WHEN MATCHED THEN
                        UPDATE SET revision = ?
                    WHEN NOT MATCHED THEN
                        INSERT (milestone, revision) VALUES (?, ?);
                """, (milestone, revision, milestone, revision))
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to upsert milestone batch: {e}")
            raise StoreError(f"Failed to upsert {len(rows)} milestones: {e}") from e

        return len(rows)

    def list_milestones(self) -> List[Milestone]:
        rows = self._query(f"""
            SELECT milestone, revision FROM [{self.schema}].[milestones] ORDER BY milestone ASC
        """)
        return [Milestone(milestone=int(row[0]), revision=int(row[1])) for row in rows]

    def close(self) -> None:
        """Close every thread's connection."""
        with self._connections_lock:
            for conn in self._connections:
                try:
                    conn.close()
                except pyodbc.Error as e:
                    logger.debug(f"Ignoring error while closing connection: {e}")
            self._connections.clear()
        self._thread_local = threading.local()
        logger.debug("Closed SQL Server build store connections")
