"""
Unified exception hierarchy for GRIMOIRE.

Single source of the exceptions raised by the search engine and
its telemetry path.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime
from grimoire.core.id_generator import generate_id
from grimoire.core.utils.datetime_utils import utc_now, format_iso


class GrimoireError(Exception):
    """
    Base error of the GRIMOIRE system.

    Features:
    1. Structured serialization
    2. Rich context
    3. Resolution suggestions
    4. Unique ID for tracking
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        self.id: str = generate_id()
        self.timestamp: datetime = utc_now()
        self.message: str = message
        self.code: str = code or self.__class__.__name__
        self.context: Dict[str, Any] = context or {}
        self.cause: Optional[Exception] = cause
        self.suggestions: List[str] = []
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serializes the error for the API layer.

        Returns:
            {
                "error_id": "hex32chars",
                "code": "RetrievalError",
                "message": "Keyword channel failed",
                "timestamp": "2024-01-20T10:30:00Z",
                "context": {...}
            }
        """
        result: Dict[str, Any] = {
            "error_id": self.id,
            "code": self.code,
            "message": self.message,
            "timestamp": format_iso(self.timestamp),
            "context": self.context,
        }

        if self.cause:
            result["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}

        if self.suggestions:
            result["suggestions"] = self.suggestions

        return result

    def add_suggestion(self, suggestion: str) -> None:
        """
        Adds a resolution hint, ignoring empty values and duplicates.

        Example:
            error = RetrievalError("Vector channel failed")
            error.add_suggestion("Check that the vector index exists")
        """
        if not suggestion or not isinstance(suggestion, str):
            return

        if suggestion not in self.suggestions:
            self.suggestions.append(suggestion)

    def is_retryable(self) -> bool:
        """Whether the failed operation may be retried as-is."""
        return False


class ConfigurationError(GrimoireError):
    """Invalid or unreadable configuration."""

    pass


class ValidationError(GrimoireError):
    """
    Invalid caller input.

    Context carries the offending field:
    {"field": "limit", "value": 0, "reason": "must_be_positive"}
    """

    pass


class DatabaseError(GrimoireError):
    """Error in the SQLite telemetry database."""

    def is_retryable(self) -> bool:
        """Locks and timeouts usually clear up."""
        return True


class SQLiteBusyError(DatabaseError):
    """SQLITE_BUSY - database temporarily locked. Always retryable."""

    def is_retryable(self) -> bool:
        return True


class SQLiteCorruptError(DatabaseError):
    """SQLITE_CORRUPT - permanent, requires manual intervention."""

    def is_retryable(self) -> bool:
        return False


class SQLiteConstraintError(DatabaseError):
    """SQLITE_CONSTRAINT - the row violates the schema."""

    def is_retryable(self) -> bool:
        return False


class ExternalServiceError(GrimoireError):
    """
    An external collaborator failed (embedding service, store).

    Tracking:
    - Service that failed
    - Attempts made
    """

    def is_retryable(self) -> bool:
        return True


class EmbeddingError(ExternalServiceError):
    """The query embedding could not be produced (quota, network, bad response)."""

    pass


class RetrievalError(ExternalServiceError):
    """
    A retrieval channel failed.

    Context carries the channel name ("vector" or "keyword")
    and the campaign the search was scoped to.
    """

    pass


class MaterializationError(GrimoireError):
    """A raw store record is structurally invalid (missing id, recordType, ...)."""

    pass


__all__ = [
    "GrimoireError",
    "ConfigurationError",
    "ValidationError",
    "DatabaseError",
    "SQLiteBusyError",
    "SQLiteCorruptError",
    "SQLiteConstraintError",
    "ExternalServiceError",
    "EmbeddingError",
    "RetrievalError",
    "MaterializationError",
]
