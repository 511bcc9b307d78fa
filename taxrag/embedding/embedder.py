"""
Embedding Clients
------------------
One interface, embed(text) -> list[float], with two providers:

  GeminiEmbedder  -- Google Generative Language REST API (text-embedding-004)
  OpenAIEmbedder  -- OpenAI embeddings API (text-embedding-3-small)

Every returned vector is checked before it leaves this module: it must be
a non-empty list of finite numbers, not all zero, and the same length as
every earlier vector from this embedder.  A bad vector would silently
poison all similarity math downstream, so anything else raises
EmbeddingServiceError.

Transport failures are retried with exponential backoff (tenacity); HTTP
errors and malformed payloads are not.
"""
from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from langsmith import traceable
from loguru import logger
from openai import APIConnectionError, OpenAI, OpenAIError, RateLimitError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from taxrag.errors import EmbeddingServiceError
from taxrag.utils.helpers import truncate_text

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1"
GEMINI_EMBED_MODEL = "text-embedding-004"
OPENAI_EMBED_MODEL = "text-embedding-3-small"


def _backoff(max_attempts: int, retry_on: tuple[type[BaseException], ...]) -> Retrying:
    return Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
        retry=retry_if_exception_type(retry_on),
        reraise=True,
    )


class Embedder(ABC):
    """
    Base class: validates vectors, pins dimensionality, counts calls.

    Subclasses implement _request(), which returns the provider's raw
    vector (or raises EmbeddingServiceError).
    """

    provider_name: str = "embedding"

    def __init__(self, model: str) -> None:
        self.model = model
        self.dimensions: Optional[int] = None
        self.total_api_calls: int = 0

    @traceable(name="embed", run_type="embedding")
    def embed(self, text: str) -> list[float]:
        """Embed one text. Raises EmbeddingServiceError on any upstream problem."""
        start = time.perf_counter()
        raw = self._request(text)
        self.total_api_calls += 1
        vector = self._validate(raw)
        logger.debug(
            f"[Embedder] {self.provider_name}/{self.model} | {len(text)} chars | "
            f"dim={len(vector)} | {time.perf_counter() - start:.2f}s"
        )
        return vector

    @abstractmethod
    def _request(self, text: str) -> Any:
        ...

    def _validate(self, raw: Any) -> list[float]:
        if not isinstance(raw, (list, tuple)) or not raw:
            raise EmbeddingServiceError("Embedding response has no vector", self.provider_name)
        try:
            vector = [float(x) for x in raw]
        except (TypeError, ValueError) as exc:
            raise EmbeddingServiceError(
                f"Embedding vector has non-numeric values: {exc}", self.provider_name
            ) from exc
        if not all(math.isfinite(x) for x in vector):
            raise EmbeddingServiceError("Embedding vector has non-finite values", self.provider_name)
        if not any(vector):
            raise EmbeddingServiceError("Embedding vector is all zeros", self.provider_name)

        if self.dimensions is None:
            self.dimensions = len(vector)
        elif len(vector) != self.dimensions:
            raise EmbeddingServiceError(
                f"Embedding dimensionality changed: expected {self.dimensions}, got {len(vector)}",
                self.provider_name,
            )
        return vector

    def usage_summary(self) -> dict:
        return {
            "provider": self.provider_name,
            "model": self.model,
            "dimensions": self.dimensions,
            "total_api_calls": self.total_api_calls,
        }


# ---------------------------------------------------------------------------
# Gemini (REST)
# ---------------------------------------------------------------------------

class GeminiEmbedder(Embedder):
    """Calls models/{model}:embedContent and returns embedding.values."""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_EMBED_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(model)
        self._api_key = api_key
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout_seconds)
        self._retrying = _backoff(max_attempts, (httpx.TransportError,))

    def _request(self, text: str) -> Any:
        try:
            response = self._retrying(self._post, text)
        except httpx.HTTPError as exc:
            raise EmbeddingServiceError(f"Embedding request failed: {exc}", self.provider_name) from exc

        if response.status_code in (401, 403):
            raise EmbeddingServiceError(
                f"Embedding credentials rejected (HTTP {response.status_code})", self.provider_name
            )
        if not response.is_success:
            raise EmbeddingServiceError(
                f"Embedding API error: HTTP {response.status_code} - "
                f"{truncate_text(response.text, 200)}",
                self.provider_name,
            )

        try:
            return response.json()["embedding"]["values"]
        except (ValueError, KeyError, TypeError) as exc:
            raise EmbeddingServiceError(
                f"Malformed embedding response: {truncate_text(response.text, 200)}",
                self.provider_name,
            ) from exc

    def _post(self, text: str) -> httpx.Response:
        return self._client.post(
            f"/models/{self.model}:embedContent",
            headers={"x-goog-api-key": self._api_key},
            json={
                "model": f"models/{self.model}",
                "content": {"parts": [{"text": text}]},
            },
        )

    def close(self) -> None:
        self._client.close()


# ---------------------------------------------------------------------------
# OpenAI (SDK)
# ---------------------------------------------------------------------------

class OpenAIEmbedder(Embedder):
    """Wraps client.embeddings.create for a single input string."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = OPENAI_EMBED_MODEL,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        client: Optional[OpenAI] = None,
    ) -> None:
        super().__init__(model)
        # SDK-level retries are disabled; tenacity owns the retry policy.
        self._client = client or OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)
        self._retrying = _backoff(max_attempts, (APIConnectionError, RateLimitError))

    def _request(self, text: str) -> Any:
        try:
            response = self._retrying(self._client.embeddings.create, model=self.model, input=text)
        except OpenAIError as exc:
            raise EmbeddingServiceError(f"Embedding request failed: {exc}", self.provider_name) from exc

        if not response.data:
            raise EmbeddingServiceError("Embedding response has no data", self.provider_name)
        return list(response.data[0].embedding)
