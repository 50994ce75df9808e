"""
Remote sources: the snapshot archive listing and the milestone feed.
"""

from .snapshot_archive import (
    SnapshotArchive, SnapshotListing, ListingPage, parse_prefix,
    DEFAULT_BUCKET, DEFAULT_STORAGE_API_URL, DEFAULT_DOWNLOAD_API_URL,
)
from .milestone_feed import MilestoneFeed, DEFAULT_MILESTONES_URL

__all__ = [
    "SnapshotArchive",
    "SnapshotListing",
    "ListingPage",
    "parse_prefix",
    "MilestoneFeed",
    "DEFAULT_BUCKET",
    "DEFAULT_STORAGE_API_URL",
    "DEFAULT_DOWNLOAD_API_URL",
    "DEFAULT_MILESTONES_URL",
]
