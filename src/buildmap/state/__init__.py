"""
Build store implementations.

The default backend is SQLite (SqliteBuildStore), a single file next to the
export. SQL Server (SqlServerBuildStore) is available when pyodbc is
installed.

To select backend, set the BUILDMAP_DB_BACKEND environment variable:
    - BUILDMAP_DB_BACKEND=sqlite (default)
    - BUILDMAP_DB_BACKEND=sqlserver
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from ..core.build_store import BuildStore
from ..core.exceptions import ConfigError
from .sqlite_store import SqliteBuildStore
from .sqlserver_store import SqlServerBuildStore


logger = logging.getLogger(__name__)


DEFAULT_DB_PATH = Path("data/chromium-data.sqlite")


def create_build_store(
    backend: Optional[str] = None,
    # SQLite options
    db_path: Optional[Union[str, Path]] = None,
    # SQL Server options
    connection_string: Optional[str] = None,
    host: str = "localhost",
    port: int = 1433,
    database: str = "BuildMap",
    username: str = "sa",
    password: Optional[str] = None,
    driver: str = "ODBC Driver 18 for SQL Server",
    schema: str = "buildmap",
    trust_server_certificate: bool = True,
    auto_init: bool = True,
) -> BuildStore:
    """
    Factory function to create the build store for a backend.

    Args:
        backend: 'sqlite' or 'sqlserver'. Defaults to BUILDMAP_DB_BACKEND or 'sqlite'.

        SQLite options:
            db_path: Path to SQLite database file

        SQL Server options:
            connection_string: Full ODBC connection string
            host, port, database, username, password, driver: Discrete settings
            schema: Schema name for tables
            trust_server_certificate: Trust self-signed certs
            auto_init: Auto-create schema/tables

    Returns:
        BuildStore instance

    Raises:
        ConfigError: If backend is not recognized
    """
    if backend is None:
        backend = os.environ.get("BUILDMAP_DB_BACKEND", "sqlite")
    backend = backend.lower()

    if backend == "sqlite":
        return SqliteBuildStore(db_path=db_path or DEFAULT_DB_PATH, auto_init=auto_init)

    elif backend == "sqlserver":
        if password is None:
            password = os.environ.get("BUILDMAP_SQLSERVER_PASSWORD")
        if connection_string is None:
            connection_string = os.environ.get("BUILDMAP_SQLSERVER_CONN_STR")

        logger.info(f"Using SQL Server build store ({host}:{port}/{database}, schema {schema})")
        return SqlServerBuildStore(
            connection_string=connection_string,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            driver=driver,
            schema=schema,
            auto_init=auto_init,
            trust_server_certificate=trust_server_certificate,
        )

    raise ConfigError(
        f"Unknown backend: {backend}. "
        "Supported backends: 'sqlite' (default), 'sqlserver'"
    )


__all__ = ["SqliteBuildStore", "SqlServerBuildStore", "create_build_store", "DEFAULT_DB_PATH"]
