"""
Snapshot archive source.

The archive is an object-storage bucket with one directory per platform and
one sub-directory per build revision (``<platform>/<revision>/``). Each
platform also carries a ``LAST_CHANGE`` object holding the newest revision
number as plain text.

Listing directories is paginated: each page returns up to a few thousand
``prefixes`` and an optional ``nextPageToken`` to continue from.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional
from urllib.parse import quote, urlencode

from ..core.connector import Connector
from ..core.exceptions import FetchError
from ..core.models import Snapshot
from .base import fetch_json, fetch_text


logger = logging.getLogger(__name__)


DEFAULT_BUCKET = "chromium-browser-snapshots"
DEFAULT_STORAGE_API_URL = "https://www.googleapis.com/storage/v1"
DEFAULT_DOWNLOAD_API_URL = "https://www.googleapis.com/download/storage/v1"
LISTING_FIELDS = "items(kind,mediaLink,metadata,name,size,updated),kind,prefixes,nextPageToken"


def parse_prefix(prefix: str) -> Optional[Snapshot]:
    """
    Parse a listing prefix of the form ``<platform>/<revision>/``.

    Prefixes whose revision component is not a positive integer (the bucket
    also holds non-revision directories) yield None.

    >>> parse_prefix("Linux_x64/1234/")
    Snapshot(platform='Linux_x64', revision=1234)
    >>> parse_prefix("Linux_x64/abcd/") is None
    True
    """
    parts = prefix.split("/")
    if len(parts) < 2:
        return None

    platform, revision_text = parts[0], parts[1].strip()
    if not platform or not (revision_text.isascii() and revision_text.isdigit()):
        return None

    revision = int(revision_text)
    if revision <= 0:
        return None

    return Snapshot(platform=platform, revision=revision)


@dataclass
class ListingPage:
    """
    One page of a directory listing.

    Attributes:
        prefixes: Raw directory prefixes returned by the remote
        next_page_token: Continuation token, None on the last page
        snapshots: Prefixes that parsed as valid snapshots, in listing order
    """
    prefixes: List[str]
    next_page_token: Optional[str] = None
    snapshots: List[Snapshot] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload, url: Optional[str] = None) -> "ListingPage":
        """Build a page from a decoded listing document."""
        if not isinstance(payload, dict):
            raise FetchError(f"Unexpected listing document from {url}", url=url)

        prefixes = payload.get("prefixes") or []
        if not isinstance(prefixes, list):
            raise FetchError(f"Listing 'prefixes' is not a list in {url}", url=url)

        next_page_token = payload.get("nextPageToken") or None

        snapshots = []
        for prefix in prefixes:
            if not isinstance(prefix, str):
                continue
            snapshot = parse_prefix(prefix)
            if snapshot is not None:
                snapshots.append(snapshot)

        return cls(prefixes=prefixes, next_page_token=next_page_token, snapshots=snapshots)


class SnapshotArchive:
    """
    URL conventions of the snapshot bucket.

    Keeps every URL the pipeline requests in one place so the bucket, API
    hosts and fixtures stay in agreement.
    """

    def __init__(
        self,
        bucket: str = DEFAULT_BUCKET,
        storage_api_url: str = DEFAULT_STORAGE_API_URL,
        download_api_url: str = DEFAULT_DOWNLOAD_API_URL,
    ):
        self.bucket = bucket
        self.storage_api_url = storage_api_url.rstrip("/")
        self.download_api_url = download_api_url.rstrip("/")

    def last_change_url(self, platform: str) -> str:
        """URL of the platform's LAST_CHANGE marker object."""
        return (
            f"{self.download_api_url}/b/{quote(self.bucket, safe='')}/o/"
            f"{quote(platform, safe='')}%2FLAST_CHANGE?alt=media"
        )

    def listing_url(self, platform: str, page_token: Optional[str] = None) -> str:
        """URL of one page of the platform's directory listing."""
        params = {
            "delimiter": "/",
            "prefix": f"{platform}/",
            "fields": LISTING_FIELDS,
        }
        if page_token:
            params["pageToken"] = page_token
        return f"{self.storage_api_url}/b/{quote(self.bucket, safe='')}/o?{urlencode(params)}"

    def fetch_last_change(self, connector: Connector, platform: str) -> int:
        """
        Fetch the newest revision marker for a platform.

        Raises:
            FetchError: If the fetch failed or the marker is not an integer
        """
        url = self.last_change_url(platform)
        text = fetch_text(connector, url, metadata={"platform": platform})

        try:
            return int(text.strip())
        except ValueError:
            raise FetchError(
                f"LAST_CHANGE for {platform} is not an integer: {text[:50]!r}",
                url=url,
            )

    def listing(self, connector: Connector, platform: str) -> "SnapshotListing":
        return SnapshotListing(connector, self, platform)


class SnapshotListing:
    """
    Paged source of snapshots for one platform.

    Iterating fetches pages lazily, following the continuation token chain
    in order. Each call to ``iter_pages`` starts again from the first page;
    a listing is restartable but never resumed mid-stream.
    """

    def __init__(self, connector: Connector, archive: SnapshotArchive, platform: str):
        self.connector = connector
        self.archive = archive
        self.platform = platform

    def iter_pages(self) -> Iterator[ListingPage]:
        """
        Yield listing pages until the remote stops returning a token.

        Raises:
            FetchError: If any page cannot be fetched or decoded
        """
        page_token = None
        seen_tokens = set()

        while True:
            url = self.archive.listing_url(self.platform, page_token)
            payload = fetch_json(self.connector, url, metadata={"platform": self.platform})
            page = ListingPage.from_payload(payload, url=url)

            yield page

            page_token = page.next_page_token
            if not page_token:
                break
            if page_token in seen_tokens:
                raise FetchError(
                    f"Listing for {self.platform} repeated page token {page_token!r}",
                    url=url,
                )
            seen_tokens.add(page_token)

    def iter_snapshots(self) -> Iterator[Snapshot]:
        """Yield every valid snapshot across all pages."""
        for page in self.iter_pages():
            yield from page.snapshots

    def __iter__(self) -> Iterator[Snapshot]:
        return self.iter_snapshots()
