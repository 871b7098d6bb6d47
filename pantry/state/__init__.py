"""
State persistence for Pantry.

Tracks resource state, change history and stored generated values in SQLite.
"""

from pantry.state.store import Store, ResourceState, HistoryEntry, GeneratedValue

__all__ = ["Store", "ResourceState", "HistoryEntry", "GeneratedValue"]
