import pytest
from pydantic import ValidationError as PydanticValidationError

from toolagent.agents.executor import AgentConfig
from toolagent.config.settings import AgentSettings


def test_yaml_config_file(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("default_provider: kimi\nmax_iterations: 7\nparallel_tool_calls: true\n", encoding="utf-8")
    monkeypatch.setenv("AGENT_CONFIG_FILE", str(cfg))
    s = AgentSettings()
    assert s.default_provider == "kimi"
    assert s.max_iterations == 7
    assert s.parallel_tool_calls is True


def test_env_overrides_yaml(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("max_iterations: 7\n", encoding="utf-8")
    monkeypatch.setenv("AGENT_CONFIG_FILE", str(cfg))
    monkeypatch.setenv("MAX_ITERATIONS", "3")
    assert AgentSettings().max_iterations == 3


def test_invalid_values_rejected(monkeypatch):
    monkeypatch.setenv("MAX_ITERATIONS", "0")
    with pytest.raises(PydanticValidationError):
        AgentSettings()
    monkeypatch.setenv("MAX_ITERATIONS", "5")
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    with pytest.raises(PydanticValidationError):
        AgentSettings()


def test_agent_config_from_settings(monkeypatch):
    monkeypatch.setenv("TOOL_TIMEOUT", "2.5")
    monkeypatch.setenv("HANDLE_TOOL_ERRORS", "true")
    cfg = AgentConfig.from_settings(AgentSettings(), max_iterations=4)
    assert cfg.tool_timeout == 2.5
    assert cfg.handle_tool_errors is True
    assert cfg.max_iterations == 4
