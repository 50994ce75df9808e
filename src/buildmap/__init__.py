"""
buildmap: maps release milestones to the nearest archived browser builds.

Incrementally syncs the snapshot archive listing for a set of platforms,
syncs the milestone feed, and exports for every milestone the newest build
per platform at or before the milestone's branch point.
"""

__version__ = "1.0.0"
