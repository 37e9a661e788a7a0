"""
Persistence package exposing the SQLite state store.
"""

from .store import SQLiteStateStore

__all__ = ["SQLiteStateStore"]
