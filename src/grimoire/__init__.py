"""
GRIMOIRE - Hybrid search over tabletop campaign assets.

Vector and keyword retrieval fused with reciprocal rank fusion, plus
sampled search quality telemetry.
"""

from grimoire._version import __version__, __version_info__

__author__ = "Bextia"
__license__ = "BSL"

# Core components
from grimoire.core import (
    logger,
    Settings,
    SearchConfig,
    EmbeddingConfig,
    DatabaseManager,
    generate_id,
    GrimoireError,
    ValidationError,
    ConfigurationError,
    EmbeddingError,
    RetrievalError,
)

# Embeddings
from grimoire.embeddings import QueryEmbedder, QueryEmbeddingCache, OllamaEmbeddingProvider

# Models
from grimoire.models import (
    RecordType,
    CampaignAsset,
    RankedResult,
    SearchPayload,
    SearchTimings,
    SearchMetric,
)

# Search
from grimoire.retrieval import (
    HybridSearch,
    RawHit,
    SearchMetricsSampler,
    SearchMetricStore,
    reciprocal_rank_fusion,
)

__all__ = [
    "__version__",
    "__version_info__",
    # Core
    "logger",
    "Settings",
    "SearchConfig",
    "EmbeddingConfig",
    "DatabaseManager",
    "generate_id",
    "GrimoireError",
    "ValidationError",
    "ConfigurationError",
    "EmbeddingError",
    "RetrievalError",
    # Embeddings
    "QueryEmbedder",
    "QueryEmbeddingCache",
    "OllamaEmbeddingProvider",
    # Models
    "RecordType",
    "CampaignAsset",
    "RankedResult",
    "SearchPayload",
    "SearchTimings",
    "SearchMetric",
    # Search
    "HybridSearch",
    "RawHit",
    "SearchMetricsSampler",
    "SearchMetricStore",
    "reciprocal_rank_fusion",
]
