"""Agent 层：模型调用器、工具调用型 Agent 与执行循环。"""

from toolagent.agents.executor import AgentConfig, AgentExecutor, AgentStreamEvent, RunState
from toolagent.agents.invoker import ModelInvoker
from toolagent.agents.tool_calling_agent import ToolCallingAgent, create_tool_calling_agent

__all__ = [
    "AgentConfig",
    "AgentExecutor",
    "AgentStreamEvent",
    "ModelInvoker",
    "RunState",
    "ToolCallingAgent",
    "create_tool_calling_agent",
]
