"""提示词模板与内置提示词加载。

内置提示词以 YAML 形式放在本目录下，按名称加载为 PromptTemplate，
用于构造发给模型的 ChatMessage 序列。
"""

from pathlib import Path

from toolagent.prompts.template import MessagesPlaceholder, MessageTemplate, PromptTemplate

PROMPTS_DIR = Path(__file__).resolve().parent
DEFAULT_PROMPT = "tool_calling_agent"


def load_prompt(name: str = DEFAULT_PROMPT) -> PromptTemplate:
    """根据名称加载内置提示词。

    name 对应本目录下的 ``<name>.yaml`` 文件；也可以直接传入 YAML 文件路径，
    用于加载项目外部维护的提示词。
    """

    candidate = Path(name)
    if candidate.suffix in (".yaml", ".yml") and candidate.exists():
        return PromptTemplate.from_yaml(candidate)
    return PromptTemplate.from_yaml(PROMPTS_DIR / f"{name}.yaml")


__all__ = ["MessageTemplate", "MessagesPlaceholder", "PromptTemplate", "load_prompt", "DEFAULT_PROMPT"]
