"""Minimal demonstration of the tool-calling agent."""

from toolagent import AgentExecutor, create_tool_calling_agent
from toolagent.prompts import load_prompt
from toolagent.providers import create_provider
from toolagent.tools.math_tools import default_registry

if __name__ == "__main__":
    question = (
        "Take 3 to the fifth power and multiply that by the sum of twelve and three, "
        "then square the whole result"
    )
    agent = create_tool_calling_agent(create_provider(), default_registry(), load_prompt())
    executor = AgentExecutor(agent)
    result = executor.run(question)
    print("User:", question)
    for step in result.steps:
        for call, res in zip(step.tool_calls, step.results):
            print(f"  {call.name}({call.arguments}) -> {res.content}")
    if result.ok:
        print("Agent:", result.output)
    else:
        print("Failed:", result.error.to_dict() if result.error else None)
