"""
Exception hierarchy
--------------------
Every failure the pipeline raises on purpose derives from TaxRagError,
which carries an optional provider name ("gemini", "mongodb", ...) so the
logs say which external service misbehaved.

    TaxRagError
    +-- ConfigurationError      bad settings / missing credentials at startup
    +-- ExtractionError         PDF could not be read (skip the document)
    +-- EmbeddingServiceError   embedding call failed or returned garbage
    +-- ChunkStoreError         store unreachable or an operation failed
    |   +-- InvalidChunkError   malformed record rejected at insert time
    +-- RetrievalError          store failure while answering a query
    +-- GenerationServiceError  non-success / unreachable generation service
    |   +-- MalformedResponseError  success status, unexpected payload shape
    +-- QueryFailedError        the one generic error a query caller sees
"""
from __future__ import annotations

from typing import Optional

GENERIC_QUERY_ERROR = "An error occurred while processing your request"


class TaxRagError(Exception):
    """Base class for all expected pipeline failures."""

    def __init__(self, message: str, provider_name: Optional[str] = None) -> None:
        self.message = message
        self.provider_name = provider_name
        super().__init__(message)

    def __str__(self) -> str:
        if self.provider_name:
            return f"[{self.provider_name}] {self.message}"
        return self.message


class ConfigurationError(TaxRagError):
    pass


class ExtractionError(TaxRagError):
    pass


class EmbeddingServiceError(TaxRagError):
    pass


class ChunkStoreError(TaxRagError):
    pass


class InvalidChunkError(ChunkStoreError):
    pass


class RetrievalError(TaxRagError):
    pass


class GenerationServiceError(TaxRagError):
    """
    The generation service answered with a non-success status or could not
    be reached (status_code is None for transport failures).

    The upstream body is kept for operator logs only; it must never be
    echoed to end users.
    """

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message, provider_name)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(GenerationServiceError):
    pass


class QueryFailedError(TaxRagError):
    """Raised by the query pipeline; its message is always the generic one."""

    def __init__(self) -> None:
        super().__init__(GENERIC_QUERY_ERROR)
