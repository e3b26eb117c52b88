import pytest

from toolagent.api import service


@pytest.fixture(autouse=True)
def _reset():
    service.reset_default_executor()
    yield
    service.reset_default_executor()


def test_run_agent_returns_dict(monkeypatch, scripted):
    provider = scripted([[("add", {"first_int": 12, "second_int": 3})], "15"])
    monkeypatch.setattr(service, "create_provider", lambda name=None: provider)
    data = service.run_agent("what is 12 + 3?")
    assert data["status"] == "done"
    assert data["output"] == "15"
    assert data["steps"][0]["results"][0]["content"] == "15"
    assert data["error"] is None
    assert data["usage"]["total_tokens"] == 30


def test_run_agent_failure_payload(monkeypatch, scripted):
    provider = scripted([[("divide", {"a": 1})]])
    monkeypatch.setattr(service, "create_provider", lambda name=None: provider)
    data = service.run_agent("divide")
    assert data["status"] == "failed"
    assert data["output"] is None
    assert data["error"]["code"] == "TOOL_NOT_FOUND"


def test_executor_cached_per_provider_and_model(monkeypatch, scripted):
    monkeypatch.setattr(service, "create_provider", lambda name=None: scripted([]))
    a = service.get_default_executor("openai", "agent-chat")
    assert service.get_default_executor("OpenAI", "agent-chat") is a
    assert service.get_default_executor("kimi", "agent-chat") is not a
