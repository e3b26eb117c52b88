import json

import httpx
import pytest

from toolagent.domain.exceptions import (
    AgentTimeoutError,
    ApiError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from toolagent.domain.models import ChatMessage, ChatRequest
from toolagent.providers.openai_compatible import OpenAICompatibleClient
from toolagent.providers.registry import KIMI_CONFIG, OPENAI_CONFIG
from toolagent.tools.definitions import ToolCall, ToolDef, ToolParam


class SettingsStub:
    openai_api_key = "k"
    openai_base_url = "https://api.openai.com/v1"
    kimi_api_key = "k"
    kimi_base_url = "https://api.moonshot.cn/v1"
    http_timeout = 1.0


class Resp:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else json.dumps(body)

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def install_client(monkeypatch, resp=None, exc=None, captured=None):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None):
            if captured is not None:
                captured["url"] = url
                captured["payload"] = json
                captured["headers"] = headers
            if exc is not None:
                raise exc
            return resp

    monkeypatch.setattr("httpx.Client", Client)


def make_req(**kw):
    return ChatRequest(provider="openai", model="agent-chat", messages=[ChatMessage(role="user", content="hi")], **kw)


def test_parse_basic(monkeypatch):
    body = {
        "choices": [{"message": {"role": "assistant", "content": "ok"}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
    }
    captured = {}
    install_client(monkeypatch, resp=Resp(body=body), captured=captured)
    res = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(make_req())
    assert res.choices[0].message.content == "ok"
    assert res.usage.total_tokens == 2
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured["payload"]["model"] == "gpt-4o-mini"
    assert captured["headers"]["Authorization"] == "Bearer k"
    assert "tools" not in captured["payload"]


def test_tools_payload_and_tool_calls(monkeypatch):
    tool = ToolDef(
        name="add",
        description="Add two integers.",
        params={
            "first_int": ToolParam(name="first_int", description="a", required=True, schema={"type": "integer"}),
            "second_int": ToolParam(name="second_int", description="b", required=True, schema={"type": "integer"}),
        },
    )
    body = {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {"name": "add", "arguments": '{"first_int": 1, "second_int": 2}'},
                        }
                    ],
                },
                "finish_reason": "tool_calls",
            }
        ]
    }
    captured = {}
    install_client(monkeypatch, resp=Resp(body=body), captured=captured)
    res = OpenAICompatibleClient(KIMI_CONFIG, SettingsStub()).chat(make_req(tools=[tool]))
    fn = captured["payload"]["tools"][0]["function"]
    assert fn["name"] == "add"
    assert fn["parameters"]["required"] == ["first_int", "second_int"]
    assert captured["payload"]["tool_choice"] == "auto"
    assert captured["payload"]["model"] == "kimi-k2-turbo-preview"
    msg = res.choices[0].message
    assert msg.content == ""
    assert msg.tool_calls[0].id == "call_1"
    assert msg.tool_calls[0].arguments == {"first_int": 1, "second_int": 2}


def test_bad_arguments_kept_raw(monkeypatch):
    body = {
        "choices": [
            {"message": {"tool_calls": [{"id": "c", "function": {"name": "add", "arguments": "{not json"}}]}}
        ]
    }
    install_client(monkeypatch, resp=Resp(body=body))
    res = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(make_req())
    assert res.choices[0].message.tool_calls[0].arguments == {"_raw": "{not json"}


def test_history_with_tool_messages_serialized(monkeypatch):
    captured = {}
    install_client(monkeypatch, resp=Resp(body={"choices": []}), captured=captured)
    messages = [
        ChatMessage(role="user", content="add"),
        ChatMessage(
            role="assistant",
            content="",
            tool_calls=[ToolCall(id="call_1", name="add", arguments={"first_int": 1, "second_int": 2})],
        ),
        ChatMessage(role="tool", content="3", tool_call_id="call_1"),
    ]
    req = ChatRequest(provider="openai", model="custom-model", messages=messages)
    OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(req)
    sent = captured["payload"]["messages"]
    assert captured["payload"]["model"] == "custom-model"
    assert "content" not in sent[1]
    assert json.loads(sent[1]["tool_calls"][0]["function"]["arguments"]) == {"first_int": 1, "second_int": 2}
    assert sent[2] == {"role": "tool", "content": "3", "tool_call_id": "call_1"}


def test_rate_limit(monkeypatch):
    install_client(monkeypatch, resp=Resp(status_code=429, text="slow down"))
    with pytest.raises(RateLimitError):
        OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(make_req())


def test_api_error(monkeypatch):
    install_client(monkeypatch, resp=Resp(status_code=500, text="boom"))
    with pytest.raises(ApiError) as exc:
        OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(make_req())
    assert exc.value.http_status == 500


def test_timeout(monkeypatch):
    install_client(monkeypatch, exc=httpx.ReadTimeout("timed out"))
    with pytest.raises(AgentTimeoutError) as exc:
        OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(make_req())
    assert exc.value.extra["stage"] == "model"


def test_network_error(monkeypatch):
    install_client(monkeypatch, exc=httpx.ConnectError("refused"))
    with pytest.raises(NetworkError):
        OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(make_req())


def test_malformed_json(monkeypatch):
    install_client(monkeypatch, resp=Resp(body=None, text="<html>"))
    with pytest.raises(MalformedResponseError):
        OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(make_req())


def test_missing_api_key():
    class NoKey(SettingsStub):
        openai_api_key = None

    with pytest.raises(ValidationError) as exc:
        OpenAICompatibleClient(OPENAI_CONFIG, NoKey()).chat(make_req())
    assert exc.value.code == "MISSING_API_KEY"


def test_null_usage_counts_default_to_zero(monkeypatch):
    body = {
        "choices": [{"message": {"role": "assistant", "content": "ok"}}],
        "usage": {"prompt_tokens": None, "completion_tokens": 3, "total_tokens": None},
    }
    install_client(monkeypatch, resp=Resp(body=body))
    res = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(make_req())
    assert res.usage.prompt_tokens == 0
    assert res.usage.completion_tokens == 3
    assert res.usage.total_tokens == 0


def test_non_numeric_usage_is_malformed(monkeypatch):
    body = {
        "choices": [{"message": {"role": "assistant", "content": "ok"}}],
        "usage": {"prompt_tokens": "many", "completion_tokens": 1, "total_tokens": 1},
    }
    install_client(monkeypatch, resp=Resp(body=body))
    with pytest.raises(MalformedResponseError):
        OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub()).chat(make_req())


def test_null_usage_run_completes(monkeypatch):
    from toolagent.agents.executor import AgentConfig, AgentExecutor
    from toolagent.agents.tool_calling_agent import create_tool_calling_agent
    from toolagent.tools.math_tools import default_registry

    body = {
        "choices": [{"message": {"role": "assistant", "content": "hello"}}],
        "usage": {"prompt_tokens": None, "completion_tokens": None, "total_tokens": None},
    }
    install_client(monkeypatch, resp=Resp(body=body))
    client = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub())
    agent = create_tool_calling_agent(client, default_registry(), max_retries=0)
    result = AgentExecutor(agent, AgentConfig()).run("hi")
    assert result.ok
    assert result.usage.total_tokens == 0
