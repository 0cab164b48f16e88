"""
Database package: clean public API.

This makes `from app.db import Base, Database, get_db` work
and keeps imports consistent across models and dependencies.
"""

from .session import (
    Base,
    Database,
    get_db,
)

__all__ = [
    "Base",
    "Database",
    "get_db",
]
