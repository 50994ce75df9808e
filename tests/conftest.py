"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from buildmap.connectors import FixtureConnector
from buildmap.sources import SnapshotArchive, MilestoneFeed
from buildmap.state import SqliteBuildStore


logger = logging.getLogger(__name__)


# ============================================================================
# Environment detection
# ============================================================================

def is_sqlserver_available() -> bool:
    """Check if SQL Server is available for testing."""
    password = os.environ.get("BUILDMAP_SQLSERVER_PASSWORD")
    if not password:
        return False

    try:
        import pyodbc

        host = os.environ.get("BUILDMAP_SQLSERVER_HOST", "localhost")
        port = int(os.environ.get("BUILDMAP_SQLSERVER_PORT", "1433"))
        database = os.environ.get("BUILDMAP_SQLSERVER_DATABASE", "BuildMap")
        username = os.environ.get("BUILDMAP_SQLSERVER_USER", "sa")
        driver = os.environ.get("BUILDMAP_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server")

        conn = pyodbc.connect(
            f"Driver={{{driver}}};"
            f"Server={host},{port};"
            f"Database={database};"
            f"UID={username};"
            f"PWD={password};"
            f"TrustServerCertificate=yes",
            timeout=5,
        )
        conn.close()
        return True

    except Exception as e:
        logger.debug(f"SQL Server not available: {e}")
        return False


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires SQL Server)")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if SQL Server is not available."""
    if is_sqlserver_available():
        return

    skip_sqlserver = pytest.mark.skip(
        reason="SQL Server not available (set BUILDMAP_SQLSERVER_PASSWORD and ensure SQL Server is running)"
    )

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_sqlserver)


# ============================================================================
# Fake remote
# ============================================================================

class FakeRemote:
    """
    Populates a FixtureConnector with archive listings and a milestone feed.

    Listing pages are chained with tokens named after their page index
    ("page-1", "page-2", ...) unless explicit tokens are given.
    """

    def __init__(self, connector: FixtureConnector, archive: SnapshotArchive, feed: MilestoneFeed):
        self.connector = connector
        self.archive = archive
        self.feed = feed

    def set_last_change(self, platform: str, revision) -> str:
        url = self.archive.last_change_url(platform)
        self.connector.add_text(url, f"{revision}")
        return url

    def set_listing(
        self,
        platform: str,
        pages: List[List[str]],
        tokens: Optional[List[str]] = None,
    ) -> List[str]:
        """Register listing pages; returns the URL of each page in order."""
        if tokens is None:
            tokens = [f"page-{i}" for i in range(1, len(pages))]
        assert len(tokens) == len(pages) - 1

        urls = []
        previous_token = None
        for index, prefixes in enumerate(pages):
            url = self.archive.listing_url(platform, previous_token)
            body: Dict = {"kind": "storage#objects", "prefixes": prefixes}
            if index < len(tokens):
                body["nextPageToken"] = tokens[index]
                previous_token = tokens[index]
            self.connector.add_json(url, body)
            urls.append(url)
        return urls

    def set_platform(self, platform: str, revisions: List[int], page_size: int = 2) -> None:
        """Register a platform whose LAST_CHANGE is its newest revision."""
        prefixes = [f"{platform}/{revision}/" for revision in revisions]
        pages = [prefixes[i:i + page_size] for i in range(0, len(prefixes), page_size)] or [[]]
        self.set_listing(platform, pages)
        self.set_last_change(platform, max(revisions))

    def set_milestones(self, milestones: Dict[int, int]) -> None:
        self.connector.add_json(self.feed.url, [
            {"milestone": milestone, "chromium_main_branch_position": revision}
            for milestone, revision in milestones.items()
        ])


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def store(tmp_path):
    """Fixture providing a file-backed SQLite build store."""
    build_store = SqliteBuildStore(db_path=tmp_path / "chromium-data.sqlite")
    yield build_store
    build_store.close()


@pytest.fixture
def connector():
    """Fixture providing an empty fixture connector."""
    fixture_connector = FixtureConnector()
    yield fixture_connector
    fixture_connector.close()


@pytest.fixture
def archive():
    return SnapshotArchive()


@pytest.fixture
def feed():
    return MilestoneFeed()


@pytest.fixture
def remote(connector, archive, feed):
    """Fixture providing a fake snapshot archive and milestone feed."""
    return FakeRemote(connector, archive, feed)


@pytest.fixture(scope="session")
def sqlserver_config() -> dict:
    """SQL Server connection settings from the environment."""
    return {
        "host": os.environ.get("BUILDMAP_SQLSERVER_HOST", "localhost"),
        "port": int(os.environ.get("BUILDMAP_SQLSERVER_PORT", "1433")),
        "database": os.environ.get("BUILDMAP_SQLSERVER_DATABASE", "BuildMap"),
        "username": os.environ.get("BUILDMAP_SQLSERVER_USER", "sa"),
        "password": os.environ.get("BUILDMAP_SQLSERVER_PASSWORD"),
        "driver": os.environ.get("BUILDMAP_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server"),
        "schema": os.environ.get("BUILDMAP_SQLSERVER_TEST_SCHEMA", "buildmap_test"),
    }


@pytest.fixture
def sqlserver_build_store(sqlserver_config: dict):
    """
    SQL Server build store in a dedicated test schema, emptied around each test.
    """
    if not sqlserver_config["password"]:
        pytest.skip("SQL Server password not configured")

    from buildmap.state import SqlServerBuildStore

    build_store = SqlServerBuildStore(
        host=sqlserver_config["host"],
        port=sqlserver_config["port"],
        database=sqlserver_config["database"],
        username=sqlserver_config["username"],
        password=sqlserver_config["password"],
        driver=sqlserver_config["driver"],
        schema=sqlserver_config["schema"],
        auto_init=True,
    )

    def _clear():
        conn = build_store._get_conn()
        cursor = conn.cursor()
        for table in ("snapshots", "milestones", "sync_logs"):
            cursor.execute(f"DELETE FROM [{build_store.schema}].[{table}]")
        conn.commit()

    _clear()
    yield build_store
    _clear()
    build_store.close()
