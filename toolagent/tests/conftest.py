import pytest

from toolagent.agents.executor import AgentConfig, AgentExecutor
from toolagent.agents.tool_calling_agent import create_tool_calling_agent
from toolagent.domain.models import ChatChoice, ChatMessage, ChatResult, ChatUsage
from toolagent.tools.definitions import ToolCall
from toolagent.tools.math_tools import default_registry


class ScriptedProvider:
    """按脚本依次返回模型输出的假 Provider。

    脚本项：
    - str: 最终回答
    - list[(name, args)]: 一组工具调用
    - Exception: 直接抛出
    - callable(req): 返回上述任意一种
    """

    name = "fake"

    def __init__(self, script):
        self._script = list(script)
        self.requests = []

    @property
    def calls(self):
        return len(self.requests)

    def chat(self, req):
        self.requests.append(req)
        if not self._script:
            raise AssertionError("provider called more times than scripted")
        item = self._script.pop(0)
        if callable(item) and not isinstance(item, type):
            item = item(req)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, ChatResult):
            return item
        if isinstance(item, str):
            msg = ChatMessage(role="assistant", content=item)
        else:
            msg = ChatMessage(
                role="assistant",
                content="",
                tool_calls=[
                    ToolCall(id=f"call_{len(self.requests)}_{i}", name=name, arguments=args)
                    for i, (name, args) in enumerate(item)
                ],
            )
        return ChatResult(
            provider="fake",
            model=req.model,
            choices=[ChatChoice(index=0, message=msg, finish_reason="stop")],
            usage=ChatUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
            raw={},
        )


@pytest.fixture
def scripted():
    return ScriptedProvider


@pytest.fixture
def make_executor():
    def factory(provider, tools=None, **config):
        agent = create_tool_calling_agent(
            provider,
            tools if tools is not None else default_registry(),
            model="agent-chat",
            max_retries=0,
        )
        return AgentExecutor(agent, AgentConfig(**config))

    return factory
