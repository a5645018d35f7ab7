"""Tests for remote backend error classification and the translation client."""
import asyncio
import json

import httpx
import pytest

from studygen import clients
from studygen.clients import BackendError, ChatBackend, Completion, TranslationClient


class TestBackendError:
    @pytest.mark.parametrize(
        "status,timeout,expected",
        [
            (429, False, True),
            (500, False, True),
            (503, False, True),
            (400, False, False),
            (401, False, False),
            (None, True, True),
            (None, False, False),
        ],
    )
    def test_retryable(self, status, timeout, expected):
        assert BackendError("x", status_code=status, timeout=timeout).retryable is expected


class TestChatBackend:
    def test_completion_truncation_flag(self):
        assert Completion(text="{", finish_reason="length").truncated
        assert not Completion(text="{}").truncated

    def test_missing_api_key_raises_backend_error(self):
        backend = ChatBackend(model="Fanar-S-1-7B", api_key=None)
        with pytest.raises(BackendError):
            asyncio.run(backend.complete("s", "u", max_tokens=10, temperature=0.0))


@pytest.fixture
def mock_http(monkeypatch):
    """Route TranslationClient's httpx.AsyncClient through a MockTransport."""
    state = {"handler": None, "requests": []}
    real_client = httpx.AsyncClient

    def transport_handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return state["handler"](request)

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(transport_handler), **kwargs)

    monkeypatch.setattr(clients.httpx, "AsyncClient", factory)
    return state


class TestTranslationClient:
    def test_posts_langpair_and_returns_text(self, mock_http):
        mock_http["handler"] = lambda req: httpx.Response(200, json={"text": "  مرحبا  "})
        client = TranslationClient(api_key="k")
        result = asyncio.run(client.translate(" hello ", "en", "ar"))

        assert result == "مرحبا"
        body = json.loads(mock_http["requests"][0].content)
        assert body == {
            "model": "Fanar-Shaheen-MT-1",
            "text": "hello",
            "langpair": "en-ar",
            "preprocessing": "default",
        }
        assert mock_http["requests"][0].headers["Authorization"] == "Bearer k"

    def test_rate_limit_is_retryable(self, mock_http):
        mock_http["handler"] = lambda req: httpx.Response(429, json={"error": "slow down"})
        with pytest.raises(BackendError) as excinfo:
            asyncio.run(TranslationClient(api_key="k").translate("hello", "en", "ar"))
        assert excinfo.value.status_code == 429
        assert excinfo.value.retryable

    def test_empty_body_is_not_retryable(self, mock_http):
        mock_http["handler"] = lambda req: httpx.Response(200, json={"text": ""})
        with pytest.raises(BackendError) as excinfo:
            asyncio.run(TranslationClient(api_key="k").translate("hello", "en", "ar"))
        assert not excinfo.value.retryable

    def test_timeout_is_retryable(self, mock_http):
        def handler(req):
            raise httpx.ReadTimeout("timed out", request=req)

        mock_http["handler"] = handler
        with pytest.raises(BackendError) as excinfo:
            asyncio.run(TranslationClient(api_key="k").translate("hello", "en", "ar"))
        assert excinfo.value.timeout
