"""
Connectors package for remote documents.
"""

from .http import HttpConnector
from .fixture_connector import FixtureConnector

__all__ = [
    "HttpConnector",
    "FixtureConnector",
]
