"""
Generation Clients
-------------------
Three clients with an identical generate(prompt) -> str interface:

  GeminiGenerator    -- Google Generative Language REST API (generateContent)
  OpenAIGenerator    -- OpenAI chat completions (gpt-4o-mini, gpt-4o)
  AnthropicGenerator -- Anthropic messages (claude-haiku-4-5, claude-sonnet-4-6)

The prompt built by the prompt builder is sent as a single user turn.

Error contract (all providers):
  - non-success status or unreachable service -> GenerationServiceError
    carrying the upstream status (None for transport errors) and body
  - success status but no candidate / choice / text block
                                              -> MalformedResponseError
No retries here; a retry policy belongs to the caller.
"""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from langsmith import traceable
from loguru import logger

from taxrag.errors import GenerationServiceError, MalformedResponseError
from taxrag.utils.helpers import truncate_text

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1"
GEMINI_MODEL = "gemini-2.5-flash-lite"
OPENAI_MODEL = "gpt-4o-mini"
ANTHROPIC_MODEL = "claude-haiku-4-5-20251001"


class Generator(ABC):

    provider_name: str = "generation"

    def __init__(self, model: str, max_tokens: int = 1024, temperature: float = 0.1) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @traceable(name="generate", run_type="llm")
    def generate(self, prompt: str) -> str:
        start = time.perf_counter()
        answer = self._complete(prompt)
        logger.info(
            f"[{self.__class__.__name__}] {self.model} | prompt={len(prompt)} chars | "
            f"answer={len(answer)} chars | {time.perf_counter() - start:.2f}s"
        )
        return answer

    @abstractmethod
    def _complete(self, prompt: str) -> str:
        ...

    def _malformed(self, what: str) -> MalformedResponseError:
        return MalformedResponseError(f"Unexpected response shape: {what}", self.provider_name)


# ---------------------------------------------------------------------------
# Gemini (REST)
# ---------------------------------------------------------------------------

class GeminiGenerator(Generator):
    """POST models/{model}:generateContent; answer = candidates[0].content.parts[0].text"""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        base_url: str = GEMINI_BASE_URL,
        timeout_seconds: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(model, max_tokens, temperature)
        self._api_key = api_key
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout_seconds)

    def _complete(self, prompt: str) -> str:
        try:
            response = self._client.post(
                f"/models/{self.model}:generateContent",
                headers={"x-goog-api-key": self._api_key},
                json={
                    "contents": [{"parts": [{"text": prompt}]}],
                    "generationConfig": {
                        "maxOutputTokens": self.max_tokens,
                        "temperature": self.temperature,
                    },
                },
            )
        except httpx.HTTPError as exc:
            raise GenerationServiceError(
                f"Generation request failed: {exc}", self.provider_name
            ) from exc

        if not response.is_success:
            raise GenerationServiceError(
                f"Gemini API error: {response.status_code} - {truncate_text(response.text, 200)}",
                self.provider_name,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise self._malformed("body is not JSON") from exc
        return self._extract_text(data)

    def _extract_text(self, data: Any) -> str:
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason") if isinstance(data, dict) else None
            raise self._malformed(f"no candidates (blockReason={reason})")
        try:
            text = candidates[0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise self._malformed("candidates[0].content.parts[0].text missing") from exc
        if not isinstance(text, str):
            raise self._malformed("candidate text is not a string")
        return text

    def close(self) -> None:
        self._client.close()


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------

class OpenAIGenerator(Generator):

    provider_name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = OPENAI_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        timeout_seconds: float = 60.0,
        client: Any = None,
    ) -> None:
        from openai import OpenAI  # lazy import keeps import graph clean
        super().__init__(model, max_tokens, temperature)
        self._client = client or OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)

    def _complete(self, prompt: str) -> str:
        from openai import APIConnectionError, APIStatusError

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except APIStatusError as exc:
            raise GenerationServiceError(
                f"OpenAI API error: {exc.status_code}",
                self.provider_name,
                status_code=exc.status_code,
                body=exc.response.text,
            ) from exc
        except APIConnectionError as exc:
            raise GenerationServiceError(
                f"Generation request failed: {exc}", self.provider_name
            ) from exc

        if not response.choices:
            raise self._malformed("no choices")
        content = response.choices[0].message.content
        if content is None:
            raise self._malformed("choices[0].message.content is empty")
        return content


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

class AnthropicGenerator(Generator):

    provider_name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = ANTHROPIC_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        timeout_seconds: float = 60.0,
        client: Any = None,
    ) -> None:
        from anthropic import Anthropic  # lazy import
        super().__init__(model, max_tokens, temperature)
        self._client = client or Anthropic(api_key=api_key, timeout=timeout_seconds, max_retries=0)

    def _complete(self, prompt: str) -> str:
        from anthropic import APIConnectionError, APIStatusError

        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIStatusError as exc:
            raise GenerationServiceError(
                f"Anthropic API error: {exc.status_code}",
                self.provider_name,
                status_code=exc.status_code,
                body=exc.response.text,
            ) from exc
        except APIConnectionError as exc:
            raise GenerationServiceError(
                f"Generation request failed: {exc}", self.provider_name
            ) from exc

        texts = [block.text for block in (response.content or []) if getattr(block, "type", "") == "text"]
        if not texts:
            raise self._malformed("no text content blocks")
        return "".join(texts)
