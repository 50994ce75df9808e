"""
Milestone feed source.

The feed is a single JSON array; every item names a milestone and the main
branch position its release branch was cut from.
"""

import logging
from typing import List

from ..core.connector import Connector
from ..core.exceptions import FetchError
from ..core.models import Milestone
from .base import fetch_json


logger = logging.getLogger(__name__)


DEFAULT_MILESTONES_URL = "https://chromiumdash.appspot.com/fetch_milestones"


def _as_int(value) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        return int(value.strip())
    raise ValueError(f"not an integer: {value!r}")


class MilestoneFeed:
    """Fetches and decodes the milestone feed."""

    def __init__(self, url: str = DEFAULT_MILESTONES_URL):
        self.url = url

    def fetch(self, connector: Connector) -> List[Milestone]:
        """
        Fetch every milestone in the feed.

        Args:
            connector: Connector used for the request

        Returns:
            Milestones in feed order

        Raises:
            FetchError: If the feed cannot be fetched or an item is malformed
        """
        payload = fetch_json(connector, self.url)

        if not isinstance(payload, list):
            raise FetchError(f"Milestone feed is not a list: {self.url}", url=self.url)

        milestones = []
        for index, item in enumerate(payload):
            try:
                milestones.append(Milestone(
                    milestone=_as_int(item["milestone"]),
                    revision=_as_int(item["chromium_main_branch_position"]),
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise FetchError(
                    f"Malformed milestone feed item #{index}: {e}",
                    url=self.url,
                ) from e

        logger.debug(f"Decoded {len(milestones)} milestones from {self.url}")
        return milestones
