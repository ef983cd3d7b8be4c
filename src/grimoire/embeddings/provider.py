"""
Embedding providers.

The provider only turns text into a vector. Truncation and caching
happen in QueryEmbedder before a provider is ever called.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import aiohttp

from grimoire.core.exceptions import EmbeddingError
from grimoire.core.logging import logger
from grimoire.core.utils.retry import retry_async


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can embed one text."""

    async def embed(self, text: str) -> List[float]:
        """Returns the embedding vector of text, raising EmbeddingError on failure."""
        ...  # pragma: no cover


class OllamaEmbeddingProvider:
    """
    Embedding client for a local Ollama server.

    1. One shared aiohttp session, opened on first use
    2. Retry with exponential backoff on connection errors
    3. Every failure surfaces as EmbeddingError
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:11434",
        model: str = "nomic-embed-text",
        timeout_seconds: float = 30,
        max_attempts: int = 3,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self._session: Optional[aiohttp.ClientSession] = None
        logger.info("OllamaEmbeddingProvider ready", base_url=self.base_url, model=self.model)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def embed(self, text: str) -> List[float]:
        payload = {"model": self.model, "input": text}
        attempt_count = 0

        async def _do_embed() -> List[float]:
            nonlocal attempt_count
            attempt_count += 1

            async with self._get_session().post(
                f"{self.base_url}/api/embed",
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                response.raise_for_status()
                result: Dict[str, Any] = await response.json()

            embeddings = result.get("embeddings") or []
            if not embeddings or not embeddings[0]:
                raise EmbeddingError(
                    "Ollama returned no embedding",
                    context={"model": self.model, "keys": sorted(result.keys())},
                )
            return [float(value) for value in embeddings[0]]

        try:
            vector = await retry_async(
                _do_embed,
                max_attempts=self.max_attempts,
                backoff="exponential",
                initial_delay=0.5,
                retry_on=(aiohttp.ClientError,),
                logger=logger,
            )
        except aiohttp.ClientError as e:
            error = EmbeddingError(
                "Failed to get embedding from Ollama after retries",
                code="OLLAMA_NO_EMBEDDING",
                context={"url": self.base_url, "model": self.model, "attempts": attempt_count},
                cause=e,
            )
            error.add_suggestion(f"Check that the model is pulled: ollama pull {self.model}")
            raise error

        if attempt_count > 1:
            logger.info("Embedding succeeded after retry", attempt=attempt_count)
        return vector

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
