"""Token counting for Mimir - model-aware tiktoken encoders with a process-scoped cache."""

import math
from typing import Dict, List, Optional

import tiktoken
from loguru import logger


class TokenizerRegistry:
    """Registry of tiktoken encoders keyed by model name.

    One registry is created at startup and passed to the chunker, the
    embedding batcher and the query service. Unknown models fall back to the
    ``cl100k_base`` encoding.
    """

    DEFAULT_ENCODING = "cl100k_base"

    def __init__(self, default_model: Optional[str] = None):
        """Initialize tokenizer registry.

        Args:
            default_model: Model used when callers do not pass one
        """
        self._default_model = default_model
        self._encoders: Dict[str, tiktoken.Encoding] = {}

    @property
    def default_model(self) -> Optional[str]:
        return self._default_model

    def _cache_key(self, model: Optional[str]) -> str:
        name = model or self._default_model
        return name.strip().lower() if name else self.DEFAULT_ENCODING

    def get_encoder(self, model: Optional[str] = None) -> tiktoken.Encoding:
        """Return the encoder for a model, creating and caching it on first use."""
        key = self._cache_key(model)
        encoder = self._encoders.get(key)
        if encoder is not None:
            return encoder

        if key == self.DEFAULT_ENCODING:
            encoder = tiktoken.get_encoding(self.DEFAULT_ENCODING)
        else:
            try:
                encoder = tiktoken.encoding_for_model(key)
            except KeyError:
                logger.debug(f"No tokenizer registered for model '{key}', using {self.DEFAULT_ENCODING}")
                encoder = tiktoken.get_encoding(self.DEFAULT_ENCODING)

        self._encoders[key] = encoder
        return encoder

    def encode(self, text: str, model: Optional[str] = None) -> List[int]:
        """Encode text, treating special-token strings as ordinary text."""
        return self.get_encoder(model).encode(text, disallowed_special=())

    def decode(self, tokens: List[int], model: Optional[str] = None) -> str:
        """Decode tokens back into text."""
        return self.get_encoder(model).decode(tokens)

    def count_tokens(self, text: str, model: Optional[str] = None) -> int:
        """Count tokens in text.

        Falls back to a four-characters-per-token estimate when the text
        cannot be encoded.
        """
        if not text:
            return 0
        try:
            return len(self.encode(text, model))
        except Exception as e:
            logger.debug(f"Token encoding failed, estimating from length: {e}")
            return math.ceil(len(text) / 4)

    def count_batch(self, texts: List[str], model: Optional[str] = None) -> int:
        """Total token count of a list of texts."""
        return sum(self.count_tokens(text, model) for text in texts)

    def clear(self) -> None:
        """Drop all cached encoders."""
        self._encoders.clear()

    def __len__(self) -> int:
        return len(self._encoders)
