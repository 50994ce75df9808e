"""
HTTP transport for remote documents.
"""

from .http_connector import HttpConnector

__all__ = ["HttpConnector"]
