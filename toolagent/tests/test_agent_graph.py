from toolagent.domain.exceptions import IterationLimitExceeded
from toolagent.flows import run_graph_agent


def test_graph_math_run(scripted, make_executor):
    provider = scripted(
        [
            [("exponentiate", {"base": 3, "exponent": 5})],
            [("add", {"first_int": 12, "second_int": 3})],
            [("multiply", {"first_int": 243, "second_int": 15})],
            [("exponentiate", {"base": 3645, "exponent": 2})],
            "13,286,025",
        ]
    )
    result = run_graph_agent(make_executor(provider), "compute")
    assert result.ok
    assert result.output == "13,286,025"
    assert [s.observations for s in result.steps] == [["243"], ["15"], ["3645"], ["13286025"]]
    assert result.iterations == 5


def test_graph_iteration_limit(scripted, make_executor):
    provider = scripted([[("add", {"first_int": 1, "second_int": 1})]] * 2)
    result = run_graph_agent(make_executor(provider, max_iterations=2), "loop")
    assert isinstance(result.error, IterationLimitExceeded)
    assert len(result.steps) == 2


def test_graph_failure_keeps_steps(scripted, make_executor):
    provider = scripted([[("add", {"first_int": 1, "second_int": 1})], [("nope", {})]])
    result = run_graph_agent(make_executor(provider), "x")
    assert result.error.code == "TOOL_NOT_FOUND"
    assert len(result.steps) == 1


def test_graph_history(scripted, make_executor):
    provider = scripted(["Bob"])
    result = run_graph_agent(make_executor(provider), "who am I?", chat_history=[("human", "I'm Bob")])
    assert result.output == "Bob"
    assert [m.role for m in provider.requests[0].messages] == ["system", "user", "user"]


def test_graph_unexpected_error_keeps_steps(scripted, make_executor):
    provider = scripted([[("add", {"first_int": 1, "second_int": 2})], "never"])
    executor = make_executor(provider)
    original = executor.agent.render

    def flaky_render(inputs, steps):
        if steps:
            raise RuntimeError("template blew up")
        return original(inputs, steps)

    executor.agent.render = flaky_render
    result = run_graph_agent(executor, "add")
    assert result.error.code == "INTERNAL_ERROR"
    assert len(result.steps) == 1
