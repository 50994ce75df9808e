"""
Resolution of milestones to builds and the portable JSON export.
"""

from .resolver import Resolver, resolve_records, nearest_at_or_below
from .json_exporter import JsonExporter, DEFAULT_EXPORT_PATH

__all__ = [
    "Resolver",
    "resolve_records",
    "nearest_at_or_below",
    "JsonExporter",
    "DEFAULT_EXPORT_PATH",
]
