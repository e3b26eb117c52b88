"""LangGraph construction for the tool-calling loop.

The graph has two nodes sharing the executor's loop pieces:
``agent`` renders and invokes the model, ``tools`` runs the requested calls
and loops back to ``agent``. A final reply routes to END.
"""

from __future__ import annotations

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from toolagent.agents.executor import AgentExecutor, RunContext
from toolagent.flows.state import AgentGraphState
from toolagent.infrastructure.logging.logger import logger


def agent_node(state: AgentGraphState, executor: AgentExecutor, ctx: RunContext) -> AgentGraphState:
    steps = state.get("steps") or []
    turn = executor.plan_step(state["inputs"], steps, ctx)
    update: AgentGraphState = {"turn": turn}
    if turn.is_final:
        update["output"] = turn.message.content or ""
        logger.info("agent_node.final_decision", extra={"extra": {"run_id": ctx.run_id}})
    else:
        logger.info(
            "agent_node.tool_decision",
            extra={"extra": {"run_id": ctx.run_id, "tools": [c.name for c in turn.tool_calls]}},
        )
    return update


def tool_node(state: AgentGraphState, executor: AgentExecutor, ctx: RunContext) -> AgentGraphState:
    steps = list(state.get("steps") or [])
    step = executor.execute_step(state["turn"], steps, ctx)
    steps.append(step)
    return {"steps": steps, "turn": None}


def agent_router(state: AgentGraphState) -> str:
    turn = state.get("turn")
    if turn is not None and not turn.is_final:
        return "tools"
    return "end"


def build_agent_graph(executor: AgentExecutor, ctx: RunContext) -> CompiledStateGraph:
    graph = StateGraph(AgentGraphState)
    graph.add_node("agent", lambda s: agent_node(s, executor, ctx))
    graph.add_node("tools", lambda s: tool_node(s, executor, ctx))
    graph.set_entry_point("agent")
    graph.add_conditional_edges("agent", agent_router, {"tools": "tools", "end": END})
    graph.add_edge("tools", "agent")
    return graph.compile()


def recursion_limit(executor: AgentExecutor) -> int:
    """Each iteration visits ``agent`` and at most one ``tools`` node."""

    return 2 * executor.config.max_iterations + 2
