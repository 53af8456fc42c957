"""
ChatCompletionGateway tests — no network, a fake requests session stands in.
"""

import pytest
import requests

from completions.ai.gateway import ChatCompletionGateway, ProviderError


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no JSON")
        return self._body


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc:
            raise self.exc
        return self.response


def _ok(content):
    return FakeResponse(200, {"choices": [{"message": {"content": content}}]})


def test_chat_returns_first_choice_verbatim():
    session = FakeSession(_ok("  Respuesta **tal cual**  "))
    gw = ChatCompletionGateway("sk-test", url="https://llm.example.com/v1/chat", model="m-1",
                               timeout=5, session=session)

    assert gw.chat([{"role": "user", "content": "hola"}]) == "  Respuesta **tal cual**  "

    url, kwargs = session.calls[0]
    assert url == "https://llm.example.com/v1/chat"
    assert kwargs["json"] == {"model": "m-1", "messages": [{"role": "user", "content": "hola"}]}
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["timeout"] == 5


@pytest.mark.parametrize("status", [401, 429, 500, 503])
def test_non_2xx_raises_provider_error_with_status(status):
    gw = ChatCompletionGateway("k", session=FakeSession(FakeResponse(status, text="boom")))
    with pytest.raises(ProviderError) as exc_info:
        gw.chat([])
    assert exc_info.value.status_code == status


def test_transport_failure_raises_provider_error():
    gw = ChatCompletionGateway("k", session=FakeSession(exc=requests.ConnectionError("refused")))
    with pytest.raises(ProviderError) as exc_info:
        gw.chat([])
    assert exc_info.value.status_code is None
    assert "unreachable" in str(exc_info.value)


@pytest.mark.parametrize("body", [None, {}, {"choices": []}, {"choices": [{"message": {}}]}])
def test_malformed_body_raises_provider_error(body):
    gw = ChatCompletionGateway("k", session=FakeSession(FakeResponse(200, body)))
    with pytest.raises(ProviderError):
        gw.chat([])


def test_from_config_reads_ai_settings():
    gw = ChatCompletionGateway.from_config({
        "AI_GATEWAY_API_KEY": "cfg-key",
        "AI_GATEWAY_URL": "https://llm.example.com",
        "AI_CHAT_MODEL": "tiny",
        "AI_REQUEST_TIMEOUT": 7,
    })
    assert (gw.api_key, gw.url, gw.model, gw.timeout) == ("cfg-key", "https://llm.example.com", "tiny", 7)

    explicit = ChatCompletionGateway.from_config({"AI_GATEWAY_API_KEY": "cfg-key"}, api_key="override")
    assert explicit.api_key == "override"
