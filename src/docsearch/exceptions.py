"""Client-side exception taxonomy.

Every failure path of the client raises one of these; nothing is retried or
swallowed. ``NotFoundError`` is deliberately not a ``ServiceError`` so callers
can treat an absent document as an expected outcome.
"""

from __future__ import annotations

from typing import Any


class DocSearchError(Exception):
    """Base exception for all docsearch errors."""


class TransportError(DocSearchError):
    """Raised when the search backend cannot be reached (network, timeout)."""


class ServiceError(DocSearchError):
    """Raised when the backend was reached but rejected the request.

    Args:
        status_code: HTTP status returned by the backend.
        message: Human-readable reason, usually ``"<error.type>: <error.reason>"``.
        body: Decoded response body (or raw text) for further inspection.
    """

    def __init__(self, status_code: int, message: str, body: Any = None) -> None:
        super().__init__(f"[{status_code}] {message}")
        self.status_code = status_code
        self.message = message
        self.body = body

    @property
    def is_client_error(self) -> bool:
        """True for 4xx responses (bad payload, bad request)."""
        return 400 <= self.status_code < 500


class NotFoundError(DocSearchError):
    """Raised when an operation targets a document id that does not exist."""

    def __init__(self, index: str, doc_id: int | str) -> None:
        super().__init__(f"Document '{doc_id}' not found in index '{index}'.")
        self.index = index
        self.doc_id = doc_id


class EncodingError(DocSearchError):
    """Raised when a document or field mapping cannot be serialized."""


class DecodingError(DocSearchError):
    """Raised when a payload or backend response has an unexpected shape."""
