import asyncio
import json

import httpx
import pytest

from cubox_tidy.app.notify import NotificationManager
from cubox_tidy.config import AppConfig, LLMConfig, NotificationsConfig
from cubox_tidy.errors import ExternalCallFailure
from cubox_tidy.llm_client import LLMClient
from cubox_tidy.models import NoticeLevel


def _completion(content="short summary", choices=None):
    if choices is None:
        choices = [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ]
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "deepseek-chat",
        "choices": choices,
    }


class Recorder:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(status, json=body)


@pytest.fixture
def quiet_notifier():
    return NotificationManager(AppConfig(notifications=NotificationsConfig(channels=[])))


def _client(recorder, notifier, **overrides):
    return LLMClient(LLMConfig(**overrides), notifier=notifier, transport=httpx.MockTransport(recorder))


def test_successful_summary(quiet_notifier):
    rec = Recorder((200, _completion("  a short summary  ")))
    client = _client(rec, quiet_notifier)

    result = asyncio.run(client.request_summary("用100 字以内总结下内容:\nhello", "sk-abc"))

    assert result == "a short summary"
    assert len(rec.requests) == 1
    request = rec.requests[0]
    assert str(request.url) == "https://api.deepseek.com/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer sk-abc"
    payload = json.loads(request.content)
    assert payload["model"] == "deepseek-chat"
    assert payload["stream"] is False
    assert payload["messages"] == [
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": "用100 字以内总结下内容:\nhello"},
    ]
    assert not quiet_notifier.history


def test_optional_params_are_sent_only_when_set(quiet_notifier):
    rec = Recorder((200, _completion()))
    client = _client(rec, quiet_notifier, max_tokens=200, temperature=0.3)
    asyncio.run(client.request_summary("p", "sk-abc"))
    payload = json.loads(rec.requests[0].content)
    assert payload["max_tokens"] == 200
    assert payload["temperature"] == 0.3


def test_server_error_is_not_retried(quiet_notifier):
    rec = Recorder((500, {"error": {"message": "boom"}}))
    client = _client(rec, quiet_notifier)

    assert asyncio.run(client.request_summary("p", "sk-abc")) is None
    assert len(rec.requests) == 1
    notice = quiet_notifier.latest()
    assert notice.level is NoticeLevel.ERROR
    assert "500" in notice.message


def test_unauthorized_reports_failure(quiet_notifier):
    rec = Recorder((401, {"error": {"message": "bad key"}}))
    client = _client(rec, quiet_notifier)
    assert asyncio.run(client.request_summary("p", "sk-wrong")) is None
    assert "401" in quiet_notifier.latest().message


@pytest.mark.parametrize(
    "body",
    [
        _completion(choices=[]),
        _completion(content=None),
        _completion(content="   "),
    ],
)
def test_missing_content_is_a_failure(quiet_notifier, body):
    client = _client(Recorder((200, body)), quiet_notifier)
    assert asyncio.run(client.request_summary("p", "sk-abc")) is None
    assert quiet_notifier.latest().level is NoticeLevel.ERROR


def test_missing_api_key_skips_request(quiet_notifier):
    rec = Recorder((200, _completion()))
    client = _client(rec, quiet_notifier)
    assert asyncio.run(client.request_summary("p", "")) is None
    assert rec.requests == []
    assert "not configured" in quiet_notifier.latest().message


def test_retry_when_configured(quiet_notifier):
    rec = Recorder((500, {"error": {"message": "flaky"}}), (200, _completion("second time")))
    client = _client(rec, quiet_notifier, max_retries=2)
    assert asyncio.run(client.request_summary("p", "sk-abc")) == "second time"
    assert len(rec.requests) == 2


def test_sync_twin(quiet_notifier):
    rec = Recorder((200, _completion("sync summary")))
    client = _client(rec, quiet_notifier)
    assert client.request_summary_sync("p", "sk-abc") == "sync summary"
    assert client.request_summary_sync("p", None) is None


def test_complete_raises_external_call_failure(quiet_notifier):
    client = _client(Recorder((503, {"error": {"message": "down"}})), quiet_notifier)
    with pytest.raises(ExternalCallFailure):
        client.complete_sync("p", "sk-abc")


def test_max_retries_must_be_positive():
    with pytest.raises(ValueError):
        LLMConfig(max_retries=0)
