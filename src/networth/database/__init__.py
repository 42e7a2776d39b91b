"""Database layer for networth application."""

from networth.database.base import Database
from networth.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
