"""LangGraph rendition of the agent loop."""

from toolagent.flows.graph import build_agent_graph
from toolagent.flows.runner import run_graph_agent

__all__ = ["build_agent_graph", "run_graph_agent"]
