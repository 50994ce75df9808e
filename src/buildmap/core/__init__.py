"""
Core abstractions and interfaces for the build map pipeline.
"""

from .models import (
    Snapshot, Milestone, SyncLogEntry, ResolvedRecord,
    SyncStatus, SyncResult, ExportDocument, utc_timestamp
)
from .connector import Connector, ConnectorRequest, ConnectorResponse
from .build_store import BuildStore
from .exceptions import BuildMapError, FetchError, StoreError, ExportError, ConfigError

__all__ = [
    "Snapshot",
    "Milestone",
    "SyncLogEntry",
    "ResolvedRecord",
    "SyncStatus",
    "SyncResult",
    "ExportDocument",
    "utc_timestamp",
    "Connector",
    "ConnectorRequest",
    "ConnectorResponse",
    "BuildStore",
    "BuildMapError",
    "FetchError",
    "StoreError",
    "ExportError",
    "ConfigError",
]
