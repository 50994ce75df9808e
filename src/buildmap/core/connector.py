"""
Connector interface for fetching remote documents.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ConnectorRequest:
    """
    Request to be sent by a connector.

    Attributes:
        uri: The URI to fetch
        method: HTTP method (GET, POST, etc.)
        headers: Optional request headers
        params: Optional query parameters
        metadata: Additional caller metadata (e.g. platform)
    """
    uri: str
    method: str = "GET"
    headers: Optional[Dict[str, str]] = None
    params: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class ConnectorResponse:
    """
    Response from a connector.

    Attributes:
        status_code: HTTP status code (0 when no response was received)
        payload: Parsed JSON body, or a text wrapper for non-JSON bodies
        text: Raw response body
        headers: Response headers
        duration_ms: Time taken for the request in milliseconds
        error_message: Error message if request failed
        json_error: Why the body did not decode as JSON (None if it did)
    """
    status_code: int
    payload: Any
    text: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    json_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300 and self.error_message is None


class Connector(ABC):
    """
    Abstract base class for all connectors.

    Connectors are the fetch capability of the pipeline: they turn a URL
    into a response and know nothing about listings or milestones.
    """

    @abstractmethod
    def fetch(self, request: ConnectorRequest) -> ConnectorResponse:
        """
        Fetch a remote document.

        Args:
            request: The request to execute

        Returns:
            ConnectorResponse with the result
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Return the connector name/identifier."""
        pass

    def close(self) -> None:
        """Close any open resources. Optional."""
        pass
