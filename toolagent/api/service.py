"""对外 API 服务模块。

提供简化的函数接口供上层应用调用。
"""

from typing import Any, Dict, List, Optional

from toolagent.agents.executor import AgentConfig, AgentExecutor
from toolagent.agents.tool_calling_agent import create_tool_calling_agent
from toolagent.config.settings import settings
from toolagent.infrastructure.logging.logger import logger
from toolagent.prompts import load_prompt
from toolagent.providers import create_provider
from toolagent.tools.math_tools import default_registry


_executors: Dict[tuple, AgentExecutor] = {}


def get_default_executor(
    provider_name: Optional[str] = None,
    model_name: Optional[str] = None,
) -> AgentExecutor:
    """获取默认的 AgentExecutor 实例（按 provider/model 缓存）。"""

    provider = (provider_name or settings.default_provider).lower()
    model = model_name or settings.default_model
    key = (provider, model)
    executor = _executors.get(key)
    if executor is None:
        agent = create_tool_calling_agent(
            create_provider(provider),
            default_registry(),
            load_prompt(),
            model=model,
        )
        executor = AgentExecutor(agent, AgentConfig.from_settings(settings))
        _executors[key] = executor
    return executor


def reset_default_executor() -> None:
    """清空缓存的执行器（配置变更或测试时使用）。"""

    _executors.clear()


def run_agent(
    user_input: str,
    chat_history: Optional[List[Any]] = None,
    provider_name: Optional[str] = None,
    model_name: Optional[str] = None,
) -> Dict[str, Any]:
    """运行一次工具调用型 Agent。

    Args:
        user_input: 用户输入内容
        chat_history: 之前的对话消息（ChatMessage 或 (role, content) 元组）
        provider_name: 指定 Provider（可选）
        model_name: 指定逻辑模型名（可选）

    Returns:
        AgentRunResult.to_dict() 的结果，包含 run_id、status、output、steps、usage 与 error

    Raises:
        ValidationError: Provider 名称未知
    """

    executor = get_default_executor(provider_name, model_name)
    result = executor.run(user_input, chat_history)
    if not result.ok:
        logger.error(
            "Agent run failed",
            extra={"extra": {"run_id": result.run_id, "error": result.error.to_dict() if result.error else None}},
        )
    return result.to_dict()
