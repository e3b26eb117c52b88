"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "agent-chat"。
- provider_model：厂商实际提供的模型 ID，例如 "gpt-4o-mini"。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置。未登记的逻辑名会被
原样当作厂商模型 ID 使用。"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from toolagent.domain.exceptions import ValidationError


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: Optional[int]
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。

    api_key_setting / base_url_setting 指向 Settings 中对应的字段名。
    """

    name: str
    base_url: str
    models: Dict[str, ModelConfig]
    api_key_setting: str
    base_url_setting: str

    def model(self, logical_name: str) -> ModelConfig:
        cfg = self.models.get(logical_name)
        if cfg is not None:
            return cfg
        return ModelConfig(
            logical_name=logical_name,
            provider_model=logical_name,
            max_tokens=None,
            default_temperature=0.0,
        )


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    models={
        "agent-chat": ModelConfig(
            logical_name="agent-chat",
            provider_model="gpt-4o-mini",
            max_tokens=4096,
            default_temperature=0.0,
        )
    },
    api_key_setting="openai_api_key",
    base_url_setting="openai_base_url",
)

KIMI_CONFIG = ProviderConfig(
    name="kimi",
    base_url="https://api.moonshot.cn/v1",
    models={
        "agent-chat": ModelConfig(
            logical_name="agent-chat",
            provider_model="kimi-k2-turbo-preview",
            max_tokens=8192,
            default_temperature=0.3,
        )
    },
    api_key_setting="kimi_api_key",
    base_url_setting="kimi_base_url",
)

GLM_CONFIG = ProviderConfig(
    name="glm",
    base_url="https://open.bigmodel.cn/api/paas/v4",
    models={
        "agent-chat": ModelConfig(
            logical_name="agent-chat",
            provider_model="glm-4.6",
            max_tokens=8192,
            default_temperature=0.3,
        )
    },
    api_key_setting="glm_api_key",
    base_url_setting="glm_base_url",
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "kimi": KIMI_CONFIG,
    "glm": GLM_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise ValidationError(
        code="UNKNOWN_PROVIDER",
        message=f"Unknown provider: {name!r}",
        available=sorted(PROVIDER_REGISTRY),
    )
