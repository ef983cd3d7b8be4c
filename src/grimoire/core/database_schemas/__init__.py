"""
Database schema package for GRIMOIRE.

Holds schemas.sql, applied by DatabaseManager on start.
"""

from ..database import DatabaseManager, FetchType, QueryResult

__all__ = [
    "DatabaseManager",
    "FetchType",
    "QueryResult",
]
