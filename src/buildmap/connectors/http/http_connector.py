"""
HTTP connector for fetching listing pages, markers and feeds.
"""

import json
import logging
import threading
import time
from typing import Optional
from urllib.parse import urlencode

import requests

from ...core.connector import Connector, ConnectorRequest, ConnectorResponse


logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = "buildmap/1.0"


class HttpConnector(Connector):
    """
    Generic HTTP connector backed by a ``requests.Session``.

    Supports:
    - GET requests with query params
    - Custom headers and User-Agent
    - Rate limiting
    - Bounded retries with exponential backoff on transport errors
    """

    def __init__(
        self,
        name: str = "http",
        rate_limit_delay: float = 0.0,
        timeout: int = 30,
        max_retries: int = 3,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize the HTTP connector.

        Args:
            name: Connector name
            rate_limit_delay: Minimum seconds between requests
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for a request that fails in transport
            user_agent: Custom User-Agent header
        """
        self.name = name
        self.rate_limit_delay = rate_limit_delay
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.last_request_time = 0.0
        self._rate_limit_lock = threading.Lock()
        self.session = requests.Session()

    def fetch(self, request: ConnectorRequest) -> ConnectorResponse:
        """
        Fetch a document via HTTP.

        Transport failures are retried; HTTP error statuses are returned
        as-is for the caller to judge.

        Args:
            request: The request to execute

        Returns:
            ConnectorResponse with the result (status 0 if every attempt failed)
        """
        if request.method.upper() != "GET":
            raise ValueError(f"Unsupported HTTP method: {request.method}")

        # Rate limiting
        self._wait_for_rate_limit()

        # Prepare headers
        headers = dict(request.headers or {})
        if "User-Agent" not in headers:
            headers["User-Agent"] = self.user_agent

        # Build URL with query params
        url = request.uri
        if request.params:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode(request.params)}"

        # Retry logic
        last_error = None
        for attempt in range(self.max_retries):
            try:
                start_time = time.time()
                response = self.session.get(url, headers=headers, timeout=self.timeout)
                duration_ms = int((time.time() - start_time) * 1000)

                # Try to parse as JSON, fall back to text
                json_error = None
                try:
                    payload = response.json()
                except (json.JSONDecodeError, ValueError) as e:
                    # Wrap non-JSON responses in a JSON structure; a truncated
                    # JSON body lands here too, whatever its Content-Type says
                    json_error = str(e) or "body is not valid JSON"
                    payload = {
                        "content_type": response.headers.get("Content-Type", "unknown"),
                        "text": response.text,
                        "encoding": response.encoding,
                    }

                logger.debug(f"GET {url} -> {response.status_code} ({duration_ms} ms)")

                return ConnectorResponse(
                    status_code=response.status_code,
                    payload=payload,
                    text=response.text,
                    headers=dict(response.headers),
                    duration_ms=duration_ms,
                    json_error=json_error,
                )

            except requests.exceptions.RequestException as e:
                last_error = str(e)
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}"
                )

                if attempt < self.max_retries - 1:
                    # Exponential backoff
                    backoff = 2 ** attempt
                    time.sleep(backoff)
                    continue

        return ConnectorResponse(
            status_code=0,
            payload={},
            error_message=f"Request failed after {self.max_retries} attempts: {last_error}",
        )

    def _wait_for_rate_limit(self) -> None:
        """Enforce rate limiting between requests, across every thread sharing the connector."""
        with self._rate_limit_lock:
            if self.rate_limit_delay > 0:
                elapsed = time.time() - self.last_request_time
                if elapsed < self.rate_limit_delay:
                    time.sleep(self.rate_limit_delay - elapsed)
            self.last_request_time = time.time()

    def get_name(self) -> str:
        """Return the connector name."""
        return self.name

    def close(self) -> None:
        """Close the session."""
        if self.session:
            self.session.close()
