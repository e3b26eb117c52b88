"""Tool-calling agent: the pairing of model invoker, tool registry and prompt."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Union

from toolagent.agents.invoker import ModelInvoker
from toolagent.domain.exceptions import ValidationError
from toolagent.domain.models import AgentStep, ChatMessage, ModelTurn
from toolagent.infrastructure.concurrency import CancellationToken
from toolagent.prompts import load_prompt
from toolagent.prompts.template import PromptTemplate
from toolagent.providers.base import ProviderClient
from toolagent.tools.definitions import Tool
from toolagent.tools.registry import ToolRegistry

SCRATCHPAD_SLOT = "agent_scratchpad"


def format_scratchpad(steps: Sequence[AgentStep]) -> List[ChatMessage]:
    """Replay steps as assistant tool-call messages followed by their tool results."""

    messages: List[ChatMessage] = []
    for step in steps:
        messages.append(step.message)
        for result in step.results:
            messages.append(ChatMessage(role="tool", content=result.content, tool_call_id=result.call_id))
    return messages


@dataclass
class ToolCallingAgent:
    invoker: ModelInvoker
    registry: ToolRegistry
    prompt: PromptTemplate

    def __post_init__(self) -> None:
        if not self.prompt.has_variable(SCRATCHPAD_SLOT):
            raise ValidationError(
                code="PROMPT_MISSING_SCRATCHPAD",
                message=f"prompt must contain a {SCRATCHPAD_SLOT!r} placeholder",
            )

    def render(self, inputs: Mapping[str, Any], steps: Sequence[AgentStep]) -> List[ChatMessage]:
        values = dict(inputs)
        values[SCRATCHPAD_SLOT] = format_scratchpad(steps)
        return self.prompt.format_messages(values)

    def plan(
        self,
        messages: Sequence[ChatMessage],
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ModelTurn:
        return self.invoker.invoke(messages, self.registry.tool_defs(), cancel_token=cancel_token)


def create_tool_calling_agent(
    provider_client: ProviderClient,
    tools: Union[ToolRegistry, Iterable[Union[Tool, Callable[..., Any]]]],
    prompt: Optional[PromptTemplate] = None,
    *,
    model: Optional[str] = None,
    temperature: float = 0.0,
    max_retries: Optional[int] = None,
) -> ToolCallingAgent:
    registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools)
    invoker = ModelInvoker(provider_client, model=model, temperature=temperature, max_retries=max_retries)
    return ToolCallingAgent(invoker=invoker, registry=registry, prompt=prompt or load_prompt())
