"""LiteLLM-backed embedder for code chunks.

Texts are sent to ``litellm.embedding()`` in request batches of
``batch_size``; retries on transient errors are delegated to LiteLLM
(``num_retries``). The provider API key is validated before the first call.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,  # Local, no key required
}


def provider_env_var(model: str) -> str | None:
    """Return the API key env var required by *model*, or None if no key is needed."""
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    return _PROVIDER_ENV.get(provider)


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = provider_env_var(model)

    if env_var is None:
        return  # No key required (e.g. ollama, unknown providers)

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


@dataclass
class EmbeddingConfig:
    """Configuration for embedding generation."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    api_base: str | None = None
    batch_size: int = 64
    num_retries: int = 3


class LiteLLMEmbedder:
    """Embed texts with ``litellm.embedding()``.

    Args:
        config: Embedding configuration (model, dimensions, batching).
        check_key: Validate the provider API key on construction.
    """

    def __init__(self, config: EmbeddingConfig | None = None, check_key: bool = True) -> None:
        self._config = config or EmbeddingConfig()
        if self._config.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if check_key:
            validate_api_key(self._config.model)

    @property
    def model(self) -> str:
        return self._config.model

    def dimensions(self) -> int:
        return self._config.dimensions

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts*, preserving order. Returns one vector per text.

        Raises:
            ValueError: If the provider returns vectors of the wrong size.
        """
        vectors: list[list[float]] = []
        size = self._config.batch_size
        for start in range(0, len(texts), size):
            batch = list(texts[start : start + size])
            logger.debug("Embedding %d texts with %s", len(batch), self._config.model)
            vectors.extend(self._request(batch))
        return vectors

    def _request(self, batch: list[str]) -> list[list[float]]:
        kwargs: dict[str, object] = {
            "model": self._config.model,
            "input": batch,
            "num_retries": self._config.num_retries,
        }
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        response = litellm.embedding(**kwargs)
        vectors = [item["embedding"] for item in response.data]
        for vector in vectors:
            if len(vector) != self._config.dimensions:
                raise ValueError(
                    f"Model {self._config.model} returned {len(vector)}-dim vectors; "
                    f"expected {self._config.dimensions}. Check embedding.dimensions."
                )
        return vectors
