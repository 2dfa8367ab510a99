"""Persistence: store interfaces and their SQLite implementation."""

from .database import CodeEchoDB
from .ports import ChangeStore, ProjectStore
from .sqlite_store import SQLiteChangeStore, SQLiteProjectStore

__all__ = [
    "ChangeStore",
    "ProjectStore",
    "CodeEchoDB",
    "SQLiteChangeStore",
    "SQLiteProjectStore",
]
