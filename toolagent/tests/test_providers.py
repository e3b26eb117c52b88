import pytest

from toolagent.domain.exceptions import ValidationError
from toolagent.providers import create_provider
from toolagent.providers.openai_compatible import OpenAICompatibleClient
from toolagent.providers.registry import get_provider_config


def test_create_provider_known_names():
    for name in ("openai", "kimi", "GLM"):
        p = create_provider(name)
        assert isinstance(p, OpenAICompatibleClient)
        assert p.name == name.lower()


def test_create_provider_default():
    assert create_provider().name == "openai"


def test_unknown_provider():
    with pytest.raises(ValidationError) as exc:
        create_provider("nope")
    assert exc.value.code == "UNKNOWN_PROVIDER"


def test_unregistered_logical_model_passes_through():
    cfg = get_provider_config("glm")
    assert cfg.model("agent-chat").provider_model == "glm-4.6"
    assert cfg.model("glm-4-air").provider_model == "glm-4-air"
