"""
Query embedding with token budgeting.
"""

import asyncio
from typing import List, Optional

from grimoire.core.config import EmbeddingConfig
from grimoire.core.exceptions import EmbeddingError
from grimoire.core.logging import logger, SensitiveDataMasker
from grimoire.core.token_counter import TokenEncoder, TransformersEncoder, truncate_to_token_limit
from grimoire.embeddings.cache import QueryEmbeddingCache
from grimoire.embeddings.provider import EmbeddingProvider, OllamaEmbeddingProvider


class QueryEmbedder:
    """
    Turns free-form search text into a query vector.

    - Blank text gives [] and the provider is not called
    - Text over the context window keeps its first context_window
      tokens, decoded back to text, and a warning is logged
    - Vectors are cached by trimmed, lower-cased query
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        encoder: Optional[TokenEncoder] = None,
        context_window: int = 8192,
        cache: Optional[QueryEmbeddingCache] = None,
    ) -> None:
        if context_window <= 0:
            raise ValueError(f"context_window must be positive, got {context_window}")
        self.provider = provider
        self.encoder = encoder
        self.context_window = context_window
        self.cache = cache
        self._masker = SensitiveDataMasker()

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> "QueryEmbedder":
        return cls(
            provider=OllamaEmbeddingProvider(
                base_url=config.base_url,
                model=config.model,
                timeout_seconds=config.timeout_seconds,
            ),
            encoder=TransformersEncoder(config.tokenizer),
            context_window=config.context_window,
            cache=QueryEmbeddingCache(max_size=config.cache_max_size),
        )

    async def _fit_context_window(self, text: str) -> str:
        if self.encoder is None:
            return text

        # Tokenizer download and encoding are blocking
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, truncate_to_token_limit, text, self.encoder, self.context_window
        )
        if result.truncated:
            logger.warning(
                "Query exceeds embedding context window, truncating",
                token_count=result.token_count,
                context_window=self.context_window,
            )
        return result.text

    async def embed_query(self, text: str) -> List[float]:
        """
        Embeds one query.

        Raises:
            EmbeddingError: tokenizer or provider failure, or an empty vector back
        """
        if not text or not text.strip():
            return []

        if self.cache is not None:
            cached = self.cache.get(text)
            if cached is not None:
                logger.debug("Query embedding cache hit", query_length=len(text))
                return cached

        try:
            to_embed = await self._fit_context_window(text)
            vector = await self.provider.embed(to_embed)
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error(
                "Query embedding failed",
                error=str(e),
                error_type=type(e).__name__,
                query_preview=self._masker.preview(text),
            )
            raise EmbeddingError(f"Query embedding failed: {e}", cause=e)

        if not vector:
            raise EmbeddingError(
                "Failed to generate query embedding",
                context={"query_length": len(text)},
            )

        if self.cache is not None:
            self.cache.set(text, vector)
        return list(vector)
