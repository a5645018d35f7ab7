"""
Remote Backends
----------------
Two thin async clients, constructed once and injected into the pipeline:

  ChatBackend        -- any OpenAI-compatible chat completions endpoint.
                        Used against Fanar for free-text raw generation and
                        against OpenAI for schema-constrained structuring.
  TranslationClient  -- Fanar machine-translation endpoint (plain JSON POST).

Both raise BackendError for every remote failure so callers classify
errors in one place (`.retryable` is true for 429, 5xx and timeouts).
SDK-level retries are disabled: the pipeline owns its retry policy.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import openai
from loguru import logger
from openai import AsyncOpenAI

FANAR_CHAT_URL = "https://api.fanar.qa/v1"
FANAR_TRANSLATION_URL = "https://api.fanar.qa/v1/translations"


class BackendError(Exception):
    """A remote call failed (HTTP status, timeout, or unusable body)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        timeout: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.timeout = timeout

    @property
    def retryable(self) -> bool:
        if self.timeout:
            return True
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


@dataclass
class Completion:
    """Text returned by a chat call plus the reason generation stopped."""

    text: str
    finish_reason: str = "stop"
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def truncated(self) -> bool:
        return self.finish_reason == "length"


class ChatBackend:
    """
    Async chat-completions client over the OpenAI SDK.

    Args:
        model:    Model identifier sent with every request.
        api_key:  Bearer token.  Without one every call raises BackendError.
        base_url: Alternate OpenAI-compatible endpoint (e.g. Fanar).
        timeout:  Per-request timeout in seconds.
    """

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
    ) -> None:
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self._api_key = api_key
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise BackendError(f"No API key configured for {self.model}")
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def complete(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int,
        temperature: float,
        response_format: Optional[dict[str, Any]] = None,
    ) -> Completion:
        kwargs: dict[str, Any] = {}
        if response_format is not None:
            kwargs["response_format"] = response_format

        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs,
            )
        except openai.APITimeoutError as exc:
            raise BackendError(f"{self.model} timed out", timeout=True) from exc
        except openai.APIStatusError as exc:
            raise BackendError(
                f"{self.model} returned HTTP {exc.status_code}", status_code=exc.status_code
            ) from exc
        except openai.APIConnectionError as exc:
            raise BackendError(f"{self.model} connection error: {exc}") from exc

        if not response.choices:
            raise BackendError(f"{self.model} returned no choices")

        choice = response.choices[0]
        usage = response.usage
        return Completion(
            text=choice.message.content or "",
            finish_reason=choice.finish_reason or "stop",
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )


class TranslationClient:
    """Fanar machine translation (`POST /v1/translations`)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = FANAR_TRANSLATION_URL,
        model: str = "Fanar-Shaheen-MT-1",
        preprocessing: str = "default",
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key or os.getenv("FANAR_API_KEY")
        self.api_url = api_url
        self.model = model
        self.preprocessing = preprocessing
        self.timeout = timeout

    async def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        payload = {
            "model": self.model,
            "text": text.strip(),
            "langpair": f"{source_lang}-{target_lang}",
            "preprocessing": self.preprocessing,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.api_url, json=payload, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as exc:
            raise BackendError("translation timed out", timeout=True) from exc
        except httpx.HTTPStatusError as exc:
            raise BackendError(
                f"translation returned HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise BackendError(f"translation request failed: {exc}") from exc

        translated = (data or {}).get("text") if isinstance(data, dict) else None
        if not translated or not str(translated).strip():
            logger.debug("[TranslationClient] Empty translation body")
            raise BackendError("empty translation response")
        return str(translated).strip()
