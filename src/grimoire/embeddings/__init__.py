"""
Query embedding for GRIMOIRE.

Usage:
    from grimoire.embeddings import QueryEmbedder
    embedder = QueryEmbedder.from_config(EmbeddingConfig.from_settings(settings))
    vector = await embedder.embed_query("the smuggler captain")
"""

from grimoire.embeddings.cache import QueryEmbeddingCache, CacheStats
from grimoire.embeddings.provider import EmbeddingProvider, OllamaEmbeddingProvider
from grimoire.embeddings.query_embedder import QueryEmbedder

__all__ = [
    "QueryEmbeddingCache",
    "CacheStats",
    "EmbeddingProvider",
    "OllamaEmbeddingProvider",
    "QueryEmbedder",
]
