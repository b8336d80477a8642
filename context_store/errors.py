"""
Exceptions raised by the context store and the embedding client.
"""

from __future__ import annotations


class ContextStoreError(Exception):
    """Base exception for all context store errors."""
    pass


class ValidationError(ContextStoreError, ValueError):
    """
    Invalid input supplied to a store operation.

    Raised when:
    - The session identifier is empty or not a string
    """
    pass


class StorageIOError(ContextStoreError):
    """
    The backing storage failed while reading or writing a record.

    Raised when:
    - Permission is denied on the storage root or a record
    - The device is full
    - Any other OS-level I/O fault occurs
    """

    def __init__(self, message: str, session_id: str | None = None, path: str | None = None):
        super().__init__(message)
        self.session_id = session_id
        self.path = path


class CorruptDataError(ContextStoreError):
    """
    A persisted record exists but cannot be turned back into a context.

    Raised when:
    - The record is not valid JSON
    - The record does not match the context schema
    - An encrypted record cannot be decrypted with the configured key
    """

    def __init__(self, message: str, session_id: str | None = None, path: str | None = None):
        super().__init__(message)
        self.session_id = session_id
        self.path = path


class EmbeddingError(Exception):
    """Base exception for embedding client errors."""
    pass


class ConnectivityError(EmbeddingError):
    """The embedding service refused the connection or timed out."""

    def __init__(self, message: str, api_url: str | None = None, model: str | None = None):
        super().__init__(message)
        self.api_url = api_url
        self.model = model


class ApiError(EmbeddingError):
    """Any other transport-level failure talking to the embedding service."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidResponseError(EmbeddingError):
    """The embedding service answered without a usable embedding vector."""
    pass
