"""
SQLite persistence for GRIMOIRE telemetry.

MODULE STRUCTURE:
=================
- DatabaseManager: connection, schema bootstrap, rollback and
  serialized async execution. Used by SearchMetricStore.

The campaign asset store itself is external; only the search_metrics
table lives here.
"""

import sqlite3
import asyncio
from pathlib import Path
from typing import Optional, List, Dict, Any, Union
from dataclasses import dataclass
from enum import Enum

from grimoire.core.exceptions import (
    DatabaseError,
    SQLiteBusyError,
    SQLiteCorruptError,
    SQLiteConstraintError,
)
from grimoire.core.logging import logger


DEFAULT_DB_PATH = ".grimoire/data/grimoire.db"
QUERY_TIMEOUT_SECONDS = 30.0


def _classify_sqlite_error(sqlite_error: sqlite3.Error) -> DatabaseError:
    """
    Classify SQLite specific errors and return appropriate exception.

    - SQLITE_BUSY (5): locked -> SQLiteBusyError (retryable)
    - SQLITE_CORRUPT (11): corrupt -> SQLiteCorruptError (not retryable)
    - SQLITE_CONSTRAINT (19): violation -> SQLiteConstraintError (not retryable)
    - Others: DatabaseError (retryable)
    """
    error_msg = str(sqlite_error)
    error_code = getattr(sqlite_error, 'sqlite_errorcode', None)
    context = {"sqlite_code": error_code, "original_error": error_msg}
    lowered = error_msg.lower()

    if error_code == 5 or 'database is locked' in lowered or 'busy' in lowered:
        exc: DatabaseError = SQLiteBusyError(f"Database temporarily locked: {error_msg}", context=context)
        exc.add_suggestion("Retry automatically with exponential backoff")
        exc.add_suggestion("Check for long open transactions")
        return exc

    if error_code == 11 or 'corrupt' in lowered:
        exc = SQLiteCorruptError(f"Database corruption detected: {error_msg}", context=context)
        exc.add_suggestion("Run 'PRAGMA integrity_check' for diagnostics")
        exc.add_suggestion("Telemetry is disposable: delete the file to start over")
        return exc

    if error_code == 19 or any(
        constraint in lowered for constraint in ['unique', 'foreign key', 'check', 'not null']
    ):
        exc = SQLiteConstraintError(f"Database constraint violation: {error_msg}", context=context)
        exc.add_suggestion("Verify that the metric row meets the table constraints")
        return exc

    exc = DatabaseError(f"SQLite error: {error_msg}", context=context)
    exc.add_suggestion("Check file and directory permissions")
    return exc


class FetchType(Enum):
    """Fetch modes for queries."""

    ONE = "one"
    ALL = "all"
    NONE = "none"


@dataclass
class QueryResult:
    """Result of one query."""

    data: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]]
    rows_affected: int
    last_row_id: Optional[int]


class DatabaseManager:
    """
    Centralized SQLite manager.

    1. Single reused connection
    2. Rollback on failed statements
    3. Schema applied from database_schemas/schemas.sql on start

    A single asyncio.Lock serializes every execute_async call, which
    is what makes check_same_thread=False safe here.
    """

    def __init__(self, db_path: Optional[str] = None):
        logger.info("DatabaseManager initializing...")
        try:
            self.db_path = db_path or self._get_default_path()
            self._connection: Optional[sqlite3.Connection] = None
            self._lock = asyncio.Lock()
            self._init_schema()
            logger.info("DatabaseManager ready", db_path=self.db_path)
        except Exception as e:
            logger.error("DatabaseManager initialization failed", error=str(e))
            raise

    def _get_default_path(self) -> str:
        path = Path(DEFAULT_DB_PATH)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)

    def _get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
        return self._connection

    def _init_schema(self) -> None:
        """
        Creates the telemetry schema if missing.

        Tables:

        1. search_metrics - one row per recorded search
           - Indexed on campaign_id, created_at
           - Sampled-only columns are NULL on unsampled rows
        """
        schemas_path = Path(__file__).parent / "database_schemas" / "schemas.sql"
        if not schemas_path.exists():
            logger.error("schemas.sql not found", path=str(schemas_path))
            raise DatabaseError(f"Schema file not found: {schemas_path}")

        with open(schemas_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()

        conn = self._get_connection()
        try:
            conn.executescript(schema_sql)
            conn.commit()
        except sqlite3.Error as e:
            raise _classify_sqlite_error(e)

    async def execute_async(
        self, query: str, params: tuple[Any, ...] = (), fetch: Optional[FetchType] = None
    ) -> QueryResult:
        """
        Runs a query in the default executor without blocking the event loop.

        Args:
            query: SQL query to execute
            params: Query parameters
            fetch: Fetch type (ONE, ALL, NONE)

        Returns:
            QueryResult with obtained data

        Raises:
            DatabaseError: If execution fails or exceeds the timeout
        """
        async with self._lock:
            loop = asyncio.get_running_loop()

            def _execute() -> QueryResult:
                conn = self._get_connection()
                cursor = conn.cursor()

                try:
                    cursor.execute(query, params)

                    if fetch == FetchType.ONE:
                        row = cursor.fetchone()
                        return QueryResult(
                            data=dict(row) if row else None,
                            rows_affected=cursor.rowcount,
                            last_row_id=cursor.lastrowid,
                        )
                    elif fetch == FetchType.ALL:
                        rows = cursor.fetchall()
                        return QueryResult(
                            data=[dict(r) for r in rows], rows_affected=cursor.rowcount, last_row_id=None
                        )
                    else:
                        conn.commit()
                        return QueryResult(
                            data=None, rows_affected=cursor.rowcount, last_row_id=cursor.lastrowid
                        )
                except sqlite3.Error as e:
                    conn.rollback()
                    raise _classify_sqlite_error(e)
                finally:
                    cursor.close()

            try:
                return await asyncio.wait_for(
                    loop.run_in_executor(None, _execute), timeout=QUERY_TIMEOUT_SECONDS
                )
            except asyncio.TimeoutError:
                logger.error("Database query timed out", timeout_s=QUERY_TIMEOUT_SECONDS)
                raise DatabaseError("Query execution timed out")
            except DatabaseError:
                raise
            except Exception as e:
                logger.error("Database query failed", error=str(e))
                raise DatabaseError(f"Failed to execute query: {e}", cause=e)

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
