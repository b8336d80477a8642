"""
HTTP client for an Ollama-style text embedding service.

The client never reads the environment; build an EmbeddingConfig with
``config.resolve_embedding_config`` and pass it in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from .errors import ApiError, ConnectivityError, InvalidResponseError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:11434"
DEFAULT_MODEL = "nomic-text"
DEFAULT_TIMEOUT_MILLIS = 30000
EMBEDDING_DIMENSIONS = 768


@dataclass(frozen=True)
class EmbeddingConfig:
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    timeout_millis: int = DEFAULT_TIMEOUT_MILLIS


class EmbeddingClient:
    """
    Converts text to embedding vectors via ``POST {api_url}/api/embeddings``.

    Example:
        >>> with EmbeddingClient(EmbeddingConfig(model="nomic-text")) as client:
        ...     vector = client.generate_embedding("hello")
    """

    def __init__(self, config: EmbeddingConfig | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self.api_url = self.config.api_url.rstrip("/")
        self.model = self.config.model
        self._client = httpx.Client(timeout=self.config.timeout_millis / 1000, transport=transport)

        logger.debug(
            "Initialized EmbeddingClient: api_url=%s, model=%s, timeout_ms=%d",
            self.api_url,
            self.model,
            self.config.timeout_millis,
        )

    def generate_embedding(self, text: str) -> list[float]:
        """
        Generate one embedding vector for ``text``.

        A vector whose length differs from EMBEDDING_DIMENSIONS is still
        returned; the mismatch is only logged.

        Raises:
            ConnectivityError: Connection refused or request timed out
            ApiError: Any other transport or HTTP status failure
            InvalidResponseError: Response lacks a numeric ``embedding`` list
        """
        url = f"{self.api_url}/api/embeddings"
        try:
            response = self._client.post(url, json={"model": self.model, "prompt": text})
            response.raise_for_status()
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise ConnectivityError(
                f"Failed to connect to embedding service at {self.api_url}. "
                f'Make sure it is running and the model "{self.model}" is loaded.',
                api_url=self.api_url,
                model=self.model,
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ApiError(f"Embedding API error: {exc}", status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            raise ApiError(f"Embedding API error: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise InvalidResponseError("Invalid embedding response: body is not JSON") from exc

        embedding = body.get("embedding") if isinstance(body, dict) else None
        if not isinstance(embedding, list):
            raise InvalidResponseError("Invalid embedding response: missing 'embedding' field")
        try:
            vector = [float(value) for value in embedding]
        except (TypeError, ValueError) as exc:
            raise InvalidResponseError("Invalid embedding response: non-numeric values") from exc

        if len(vector) != EMBEDDING_DIMENSIONS:
            logger.warning(
                "Expected %d-dim embedding but got %d dimensions from model %s",
                EMBEDDING_DIMENSIONS,
                len(vector),
                self.model,
            )
        return vector

    def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """One vector per text, in input order. The first failure aborts the batch."""
        if not texts:
            return []
        return [self.generate_embedding(text) for text in texts]

    def get_empty_embedding(self) -> list[float]:
        return [0.0] * EMBEDDING_DIMENSIONS

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> EmbeddingClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()
