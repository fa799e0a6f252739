"""OpenRouter chat-completion and image client."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

from studyspace.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transient error types that warrant retrying
_RETRYABLE_ERRORS = (APIConnectionError, RateLimitError)

# Upstream status -> (status returned to our caller, message)
_STATUS_MESSAGES = {
    401: (400, "AI service rejected the request: not authorized, check your API key."),
    402: (402, "AI service requires payment: add credits to your OpenRouter account."),
    429: (429, "AI service is receiving too many requests. Try again shortly."),
}
_NETWORK_MESSAGE = "Could not reach the AI service (network error)."


class AIServiceError(Exception):
    """Failure talking to the AI provider, with the HTTP status to report."""

    def __init__(self, message: str, status_code: int = 502):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def from_status(cls, upstream_status: int, detail: str = "") -> "AIServiceError":
        if upstream_status in _STATUS_MESSAGES:
            status, message = _STATUS_MESSAGES[upstream_status]
            return cls(message, status)
        suffix = f": {detail}" if detail else ""
        return cls(f"AI service error ({upstream_status}){suffix}", 502)

    @classmethod
    def network(cls) -> "AIServiceError":
        return cls(_NETWORK_MESSAGE, 503)


def _translate(error: Exception) -> AIServiceError:
    if isinstance(error, AIServiceError):
        return error
    if isinstance(error, APIStatusError):
        return AIServiceError.from_status(error.status_code, error.message)
    if isinstance(error, APIConnectionError):
        return AIServiceError.network()
    if isinstance(error, httpx.HTTPStatusError):
        return AIServiceError.from_status(error.response.status_code, error.response.text[:200])
    if isinstance(error, httpx.RequestError):
        return AIServiceError.network()
    return AIServiceError(f"Unexpected AI service failure: {error}")


class OpenRouterClient:
    """
    Thin wrapper over the OpenAI SDK pointed at OpenRouter.

    One instance per API key; the key is resolved per request
    (see api.deps.get_llm_client).
    """

    def __init__(self, api_key: str, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.api_key = api_key
        self.base_url = self.settings.openrouter_base_url.rstrip("/")
        self.headers = {
            "HTTP-Referer": self.settings.openrouter_app_url,
            "X-Title": self.settings.openrouter_app_title,
        }
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            default_headers=self.headers,
            timeout=self.settings.llm_request_timeout,
            max_retries=0,
        )

    async def _with_retry(self, call: Callable[[], Awaitable[T]], *, base_delay: float = 1.0) -> T:
        """
        Run an API call, retrying transient failures with exponential backoff.

        Attempts are capped by settings.llm_max_attempts. Every failure leaves
        as an AIServiceError.
        """
        max_attempts = max(1, self.settings.llm_max_attempts)
        for attempt in range(max_attempts):
            try:
                return await call()
            except _RETRYABLE_ERRORS as e:
                if attempt < max_attempts - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        "OpenRouter transient error (attempt %d/%d), retrying in %.1fs: %s",
                        attempt + 1, max_attempts, delay, str(e),
                    )
                    await asyncio.sleep(delay)
                else:
                    raise _translate(e) from e
            except (APIStatusError, httpx.HTTPError) as e:
                raise _translate(e) from e
        raise AIServiceError("AI service call did not run")

    async def complete(
        self,
        messages: list[dict],
        *,
        model: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> str:
        """Return the assistant text for one chat completion."""
        kwargs: dict = {
            "model": model or self.settings.chat_model,
            "messages": messages,
            "temperature": self.settings.chat_temperature if temperature is None else temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        response = await self._with_retry(lambda: self.client.chat.completions.create(**kwargs))
        if not response.choices:
            raise AIServiceError("AI service returned no choices")
        return response.choices[0].message.content or ""

    async def stream(
        self,
        messages: list[dict],
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas of a streamed chat completion."""
        stream = await self._with_retry(
            lambda: self.client.chat.completions.create(
                model=model or self.settings.chat_model,
                messages=messages,
                temperature=self.settings.chat_temperature if temperature is None else temperature,
                stream=True,
            )
        )
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except (APIStatusError, APIConnectionError) as e:
            raise _translate(e) from e

    async def generate_image(self, prompt: str, *, model: str, size: str = "1024x1024") -> str:
        """
        Generate one image and return its URL (or a PNG data URL for base64 replies).
        """

        async def call() -> str:
            async with httpx.AsyncClient(timeout=self.settings.llm_request_timeout) as http:
                response = await http.post(
                    f"{self.base_url}/images/generations",
                    headers={"Authorization": f"Bearer {self.api_key}", **self.headers},
                    json={"model": model, "prompt": prompt, "n": 1, "size": size},
                )
                response.raise_for_status()
                data = response.json().get("data") or []
            if not data:
                raise AIServiceError(f"Image model {model} returned no image")
            image = data[0]
            if image.get("url"):
                return image["url"]
            if image.get("b64_json"):
                return f"data:image/png;base64,{image['b64_json']}"
            raise AIServiceError(f"Image model {model} returned no image")

        return await self._with_retry(call)
