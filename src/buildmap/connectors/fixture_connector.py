"""
Fixture connector for tests and offline runs.

Serves canned documents keyed by the full request URL without any network
access. Text bodies are served as-is; raw bodies are decoded the way an HTTP
response would be; anything else is served as JSON.
"""

import json
import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlencode

from ..core.connector import Connector, ConnectorRequest, ConnectorResponse

logger = logging.getLogger(__name__)


class FixtureConnector(Connector):
    """
    Deterministic connector backed by an in-memory URL map.

    Features:
    - Text or JSON bodies per URL
    - Error simulation for specific URLs
    - Thread-safe request history for asserting call sequences
    """

    def __init__(
        self,
        routes: Optional[Dict[str, Any]] = None,
        error_urls: Optional[Iterable[str]] = None,
        simulate_latency_ms: int = 0,
    ):
        """
        Initialize the fixture connector.

        Args:
            routes: Mapping of URL to body (str for text, anything else for JSON)
            error_urls: URLs that answer with HTTP 500
            simulate_latency_ms: Simulated latency in milliseconds
        """
        self.routes: Dict[str, Any] = dict(routes or {})
        self.raw_content_types: Dict[str, str] = {}
        self.error_urls = set(error_urls or [])
        self.simulate_latency_ms = simulate_latency_ms
        self.request_history: List[ConnectorRequest] = []
        self._lock = threading.Lock()

    def add_text(self, url: str, body: str) -> None:
        self.raw_content_types.pop(url, None)
        self.routes[url] = body

    def add_json(self, url: str, body: Any) -> None:
        self.raw_content_types.pop(url, None)
        self.routes[url] = body

    def add_raw(self, url: str, body: str, content_type: str = "application/json") -> None:
        """Serve a body verbatim under a given Content-Type, decoding it like an HTTP response would."""
        self.raw_content_types[url] = content_type
        self.routes[url] = body

    def fail(self, url: str) -> None:
        """Make a URL answer with HTTP 500 from now on."""
        self.error_urls.add(url)

    def fetch(self, request: ConnectorRequest) -> ConnectorResponse:
        start_time = time.time()

        with self._lock:
            self.request_history.append(request)

        if self.simulate_latency_ms > 0:
            time.sleep(self.simulate_latency_ms / 1000.0)

        url = request.uri
        if request.params:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode(request.params)}"

        duration_ms = int((time.time() - start_time) * 1000)

        if url in self.error_urls:
            logger.debug(f"Simulating error for: {url}")
            return ConnectorResponse(
                status_code=500,
                payload={"error": "Simulated error for testing"},
                text="Simulated error for testing",
                error_message=f"Simulated error for {url}",
                duration_ms=duration_ms,
            )

        if url not in self.routes:
            logger.debug(f"No fixture for: {url}")
            return ConnectorResponse(
                status_code=404,
                payload={"error": f"Not found: {url}"},
                text=f"Not found: {url}",
                duration_ms=duration_ms,
            )

        body = self.routes[url]
        if isinstance(body, str):
            content_type = self.raw_content_types.get(url, "text/plain")
            payload = {"content_type": content_type, "text": body, "encoding": "utf-8"}
            json_error = "body is plain text"
            if url in self.raw_content_types:
                try:
                    payload, json_error = json.loads(body), None
                except ValueError as e:
                    json_error = str(e)
            return ConnectorResponse(
                status_code=200,
                payload=payload,
                text=body,
                headers={"Content-Type": content_type},
                duration_ms=duration_ms,
                json_error=json_error,
            )

        return ConnectorResponse(
            status_code=200,
            payload=body,
            text=json.dumps(body),
            headers={"Content-Type": "application/json"},
            duration_ms=duration_ms,
        )

    def requested_urls(self) -> List[str]:
        """Return the URIs requested so far, in order."""
        with self._lock:
            return [request.uri for request in self.request_history]

    def get_name(self) -> str:
        return "fixture"

    def reset(self) -> None:
        """Clear request history."""
        with self._lock:
            self.request_history.clear()
