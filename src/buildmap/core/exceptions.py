"""
Custom exceptions for the build map pipeline.
"""

from typing import Optional


class BuildMapError(Exception):
    """Base exception for all build map errors."""
    pass


class FetchError(BuildMapError):
    """
    Error fetching a remote document.

    Raised when:
    - The transport fails after all connector attempts
    - The remote answers with a non-2xx status
    - The body cannot be parsed into the expected shape
    """

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class StoreError(BuildMapError):
    """
    Error persisting or reading build state.

    The failing batch has been rolled back when this is raised.
    """
    pass


class ExportError(BuildMapError):
    """Error writing the export document."""
    pass


class ConfigError(BuildMapError):
    """
    Error in build map configuration.

    Raised when:
    - Configuration file is missing or invalid
    - Unknown store backend is requested
    - Configuration values are out of valid range
    """
    pass
