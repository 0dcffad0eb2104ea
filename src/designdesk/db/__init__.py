"""Database module for Designdesk."""

from designdesk.db.connection import Database, close_database, get_database
from designdesk.db.repositories import ExecutorRepository, RequestRepository

__all__ = [
    "Database",
    "close_database",
    "get_database",
    "ExecutorRepository",
    "RequestRepository",
]
