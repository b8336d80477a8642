"""
Process configuration, read from the environment once by the composing layer.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .embeddings import (
    DEFAULT_API_URL,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_MILLIS,
    EmbeddingConfig,
)

DEFAULT_STORAGE_PATH = "data/contexts"


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def resolve_embedding_config(
    api_url: str | None = None,
    model: str | None = None,
    timeout_millis: int | None = None,
    environ: Mapping[str, str] | None = None,
) -> EmbeddingConfig:
    """
    Build an EmbeddingConfig: explicit value, then environment, then default.

    Args:
        api_url: Base URL of the embedding service
        model: Embedding model identifier
        timeout_millis: Request timeout in milliseconds
        environ: Environment mapping (defaults to ``os.environ``)
    """
    env = os.environ if environ is None else environ

    if timeout_millis is None:
        raw_timeout = env.get("OLLAMA_TIMEOUT_MS")
        timeout_millis = (
            _parse_int("OLLAMA_TIMEOUT_MS", raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_MILLIS
        )

    return EmbeddingConfig(
        api_url=api_url or env.get("OLLAMA_API_URL") or DEFAULT_API_URL,
        model=model or env.get("OLLAMA_MODEL") or DEFAULT_MODEL,
        timeout_millis=timeout_millis,
    )


@dataclass(frozen=True)
class Settings:
    storage_path: str = DEFAULT_STORAGE_PATH
    encryption_key: str | None = None
    log_level: str = "INFO"
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            storage_path=env.get("CONTEXT_STORE_PATH") or DEFAULT_STORAGE_PATH,
            encryption_key=env.get("CONTEXT_STORE_ENCRYPTION_KEY") or None,
            log_level=(env.get("CONTEXT_STORE_LOG_LEVEL") or "INFO").upper(),
            embedding=resolve_embedding_config(environ=env),
        )
