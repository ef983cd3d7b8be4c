"""
Token budgeting for query embedding.

Embedding models reject inputs past their context window, so long
queries are cut to the first N tokens and decoded back to text before
they reach the embedding service.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from transformers import AutoTokenizer

from grimoire.core.exceptions import ExternalServiceError
from grimoire.core.logging import logger


class TokenEncoder(ABC):
    """Interface for different token encoders."""

    @abstractmethod
    def encode(self, text: str) -> List[int]:
        """Encode text to tokens."""
        pass

    @abstractmethod
    def decode(self, tokens: List[int]) -> str:
        """Decode tokens to text."""
        pass


class TransformersEncoder(TokenEncoder):
    """
    Encoder backed by a Hugging Face tokenizer.

    The tokenizer is downloaded on first use, not at construction,
    so building a QueryEmbedder never touches the network.
    """

    _shared: Dict[str, Any] = {}

    def __init__(self, model_name: str) -> None:
        self.model_name = model_name
        self._tokenizer: Optional[Any] = None

    def _load_tokenizer(self) -> Any:
        if self._tokenizer is not None:
            return self._tokenizer

        if self.model_name in TransformersEncoder._shared:
            self._tokenizer = TransformersEncoder._shared[self.model_name]
            return self._tokenizer

        logger.info("Loading tokenizer", model_name=self.model_name)
        try:
            tokenizer = AutoTokenizer.from_pretrained(self.model_name)
        except Exception as e:
            error = ExternalServiceError(
                f"Could not download tokenizer {self.model_name}",
                context={
                    "model": self.model_name,
                    "error_type": type(e).__name__,
                    "error_details": str(e),
                },
                cause=e,
            )
            error.add_suggestion("Check internet connection")
            error.add_suggestion("Check that embeddings.tokenizer names a Hugging Face tokenizer")
            logger.error("Error downloading tokenizer", error=error.to_dict())
            raise error

        TransformersEncoder._shared[self.model_name] = tokenizer
        self._tokenizer = tokenizer
        return tokenizer

    def encode(self, text: str) -> List[int]:
        if not text:
            return []
        return list(self._load_tokenizer().encode(text, add_special_tokens=False))

    def decode(self, tokens: List[int]) -> str:
        return self._load_tokenizer().decode(tokens, skip_special_tokens=True)


@dataclass
class TruncationResult:
    """Outcome of fitting a text into a token budget."""

    text: str
    truncated: bool
    token_count: int


def truncate_to_token_limit(text: str, encoder: TokenEncoder, max_tokens: int) -> TruncationResult:
    """
    Keeps the first max_tokens tokens of text.

    token_count is the size of the original text, so callers can log
    how much was cut.
    """
    if max_tokens <= 0:
        raise ValueError(f"max_tokens must be positive, got {max_tokens}")

    tokens = encoder.encode(text)
    if len(tokens) <= max_tokens:
        return TruncationResult(text=text, truncated=False, token_count=len(tokens))

    return TruncationResult(
        text=encoder.decode(tokens[:max_tokens]), truncated=True, token_count=len(tokens)
    )


def count_tokens(text: str, encoder: TokenEncoder) -> int:
    return len(encoder.encode(text))
