"""Tests for OpenRouter error mapping and retries."""

import httpx
import pytest
from openai import APIConnectionError

from studyspace.config import Settings
from studyspace.services.llm_client import AIServiceError, OpenRouterClient, _translate


@pytest.mark.parametrize(
    ("upstream", "expected"),
    [(401, 400), (402, 402), (429, 429), (500, 502), (503, 502)],
)
def test_status_mapping(upstream, expected):
    assert AIServiceError.from_status(upstream).status_code == expected


def test_unauthorized_message_mentions_key():
    assert "API key" in AIServiceError.from_status(401).message


def test_network_error():
    error = _translate(APIConnectionError(request=httpx.Request("POST", "https://openrouter.ai/api/v1")))
    assert error.status_code == 503


def test_httpx_status_error():
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/images/generations")
    response = httpx.Response(402, request=request, text="no credits")
    error = _translate(httpx.HTTPStatusError("payment", request=request, response=response))
    assert error.status_code == 402


def _client(max_attempts: int) -> OpenRouterClient:
    settings = Settings(jwt_secret_key="test", llm_max_attempts=max_attempts)
    return OpenRouterClient("sk-or-test", settings)


async def test_retry_recovers_from_transient_error():
    attempts = []

    async def call():
        attempts.append(1)
        if len(attempts) == 1:
            raise APIConnectionError(request=httpx.Request("POST", "https://openrouter.ai/api/v1"))
        return "ok"

    assert await _client(2)._with_retry(call, base_delay=0) == "ok"
    assert len(attempts) == 2


async def test_no_retry_by_default():
    attempts = []

    async def call():
        attempts.append(1)
        raise APIConnectionError(request=httpx.Request("POST", "https://openrouter.ai/api/v1"))

    with pytest.raises(AIServiceError) as excinfo:
        await _client(1)._with_retry(call, base_delay=0)
    assert excinfo.value.status_code == 503
    assert len(attempts) == 1


async def test_status_errors_are_not_retried():
    attempts = []
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/images/generations")

    async def call():
        attempts.append(1)
        response = httpx.Response(401, request=request)
        raise httpx.HTTPStatusError("unauthorized", request=request, response=response)

    with pytest.raises(AIServiceError) as excinfo:
        await _client(3)._with_retry(call, base_delay=0)
    assert excinfo.value.status_code == 400
    assert len(attempts) == 1
