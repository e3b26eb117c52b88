"""State definition for the LangGraph agent loop."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from toolagent.domain.models import AgentStep, ModelTurn


class AgentGraphState(TypedDict, total=False):
    """State shared across LangGraph nodes."""

    inputs: Dict[str, Any]
    steps: List[AgentStep]
    turn: Optional[ModelTurn]
    output: Optional[str]
