"""High-level entry point for the LangGraph agent loop."""

from __future__ import annotations

from typing import Any, List, Optional

from toolagent.agents.executor import AgentExecutor
from toolagent.domain.exceptions import BusinessError
from toolagent.domain.models import AgentRunResult, AgentStep
from toolagent.flows.graph import build_agent_graph, recursion_limit
from toolagent.flows.state import AgentGraphState
from toolagent.infrastructure.concurrency import CancellationToken


def run_graph_agent(
    executor: AgentExecutor,
    input: str,
    chat_history: Optional[List[Any]] = None,
    *,
    cancel_token: Optional[CancellationToken] = None,
    **slots: Any,
) -> AgentRunResult:
    """Execute the agent loop as a LangGraph graph and return the run result.

    Args:
        executor: 提供模型、工具与限制配置的执行器
        input: 用户输入
        chat_history: 之前的对话消息（可选）
        cancel_token: 外部取消信号（可选）
    """

    ctx = executor.start_run(cancel_token)
    graph = build_agent_graph(executor, ctx)
    state: AgentGraphState = {
        "inputs": executor.build_inputs(input, chat_history, slots),
        "steps": [],
        "turn": None,
        "output": None,
    }
    last: AgentGraphState = state
    steps: List[AgentStep] = []
    try:
        for values in graph.stream(
            state,
            config={"recursion_limit": recursion_limit(executor)},
            stream_mode="values",
        ):
            last = values
            steps = list(values.get("steps") or [])
    except BusinessError as exc:
        return executor.fail(ctx, steps, exc)
    except Exception as exc:
        return executor.fail(ctx, steps, executor.wrap_unexpected(ctx, exc))
    return executor.finish(ctx, steps, last["turn"])
