"""
GRIMOIRE Core module.

Exports the fundamental system components.
"""

# Configuration
from grimoire.core.config import Settings, ConfigValidator, SearchConfig, EmbeddingConfig

# Database
from .database import DatabaseManager, FetchType, QueryResult

# Exceptions and errors
from grimoire.core.exceptions import (
    GrimoireError,
    ConfigurationError,
    ValidationError,
    DatabaseError,
    SQLiteBusyError,
    SQLiteCorruptError,
    SQLiteConstraintError,
    ExternalServiceError,
    EmbeddingError,
    RetrievalError,
    MaterializationError,
)

# Logging
from grimoire.core.logging import (
    AsyncLogger,
    SensitiveDataMasker,
    PerformanceLogger,
    logger,  # Pre-configured global logger
)

# Tokens
from grimoire.core.token_counter import (
    TokenEncoder,
    TransformersEncoder,
    TruncationResult,
    truncate_to_token_limit,
    count_tokens,
)

# Tracing and metrics
from grimoire.core.tracing import tracer, LocalTracer, MetricsCollector

# ID generator
from grimoire.core.id_generator import IDGenerator, generate_id, is_valid_id

ID_LENGTH = 32  # Hex ID length

__all__ = [
    # Configuration
    "Settings",
    "ConfigValidator",
    "SearchConfig",
    "EmbeddingConfig",
    # Database
    "DatabaseManager",
    "FetchType",
    "QueryResult",
    # Exceptions
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
    # Logging
    "AsyncLogger",
    "SensitiveDataMasker",
    "PerformanceLogger",
    "logger",
    # Tokens
    "TokenEncoder",
    "TransformersEncoder",
    "TruncationResult",
    "truncate_to_token_limit",
    "count_tokens",
    # Tracing
    "tracer",
    "LocalTracer",
    "MetricsCollector",
    # IDs
    "IDGenerator",
    "generate_id",
    "is_valid_id",
    "ID_LENGTH",
]
