"""
Shared helpers for fetching remote documents through a connector.
"""

import logging
from typing import Any, Optional

from ..core.connector import Connector, ConnectorRequest, ConnectorResponse
from ..core.exceptions import FetchError


logger = logging.getLogger(__name__)


def fetch_response(connector: Connector, url: str, metadata: Optional[dict] = None) -> ConnectorResponse:
    """
    Fetch a URL and reject anything that is not a successful response.

    Raises:
        FetchError: If the transport failed or the status is not 2xx
    """
    response = connector.fetch(ConnectorRequest(uri=url, metadata=metadata))

    if not response.ok:
        error_msg = response.error_message or f"HTTP {response.status_code}"
        raise FetchError(
            f"Fetch failed for {url}: {error_msg}",
            url=url,
            status_code=response.status_code,
        )

    return response


def fetch_json(connector: Connector, url: str, metadata: Optional[dict] = None) -> Any:
    """
    Fetch a URL whose body must be a JSON document.

    Raises:
        FetchError: If the fetch failed or the body was not JSON
    """
    response = fetch_response(connector, url, metadata)

    # Decided by the decode itself, never by Content-Type: a truncated body
    # served as application/json must not pass as an empty document
    if response.json_error is not None:
        raise FetchError(
            f"Expected JSON from {url}: {response.json_error}",
            url=url,
            status_code=response.status_code,
        )

    return response.payload


def fetch_text(connector: Connector, url: str, metadata: Optional[dict] = None) -> str:
    """Fetch a URL and return its raw body."""
    response = fetch_response(connector, url, metadata)

    if response.text is not None:
        return response.text
    if isinstance(response.payload, dict) and "text" in response.payload:
        return response.payload["text"]
    if isinstance(response.payload, (int, str)):
        return str(response.payload)

    raise FetchError(f"No text body in response from {url}", url=url, status_code=response.status_code)
