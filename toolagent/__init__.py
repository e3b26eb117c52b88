"""toolagent 顶层包。

该包提供工具调用型 Agent 的核心实现，包括配置加载、领域模型、
Provider 适配、工具系统、提示词模板、执行循环与 LangGraph 编排。
"""

from toolagent.agents import AgentConfig, AgentExecutor, ToolCallingAgent, create_tool_calling_agent
from toolagent.api.service import run_agent
from toolagent.infrastructure.concurrency import CancellationToken
from toolagent.tools import ToolRegistry, tool

__all__ = [
    "AgentConfig",
    "AgentExecutor",
    "CancellationToken",
    "ToolCallingAgent",
    "ToolRegistry",
    "create_tool_calling_agent",
    "run_agent",
    "tool",
]
