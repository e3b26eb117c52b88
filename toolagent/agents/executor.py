"""Agent 执行循环。

状态机：RENDER -> INVOKE -> (DONE | EXECUTE_TOOLS -> RENDER ...) ，任何业务异常进入 FAILED。

- RENDER: 用当前 scratchpad 渲染提示词。
- INVOKE: 调用模型；每次调用计一轮，达到 max_iterations 仍未结束则 IterationLimitExceeded。
- EXECUTE_TOOLS: 执行本轮所有工具调用（默认顺序执行，可选并发），全部完成后才进入下一轮。
- 每个模型/工具调用都受单次超时、整次运行时长上限和外部取消信号约束。

失败的运行不会向 run() 的调用方抛异常，而是返回 status="failed" 的
AgentRunResult，其中包含具体错误和失败前已完成的步骤。
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, TypeVar, Union
from uuid import uuid4

from toolagent.agents.tool_calling_agent import ToolCallingAgent
from toolagent.config.settings import settings
from toolagent.domain.exceptions import (
    AgentInternalError,
    AgentTimeoutError,
    BusinessError,
    InvalidArgumentsError,
    IterationLimitExceeded,
    ModelInvocationError,
    ToolExecutionError,
    ToolNotFoundError,
    ValidationError,
)
from toolagent.domain.models import AgentRunResult, AgentStep, ChatUsage, ModelTurn
from toolagent.infrastructure.concurrency import CancellationToken, call_with_timeout
from toolagent.infrastructure.logging.logger import logger
from toolagent.infrastructure.trace import TraceRecorder, summarize
from toolagent.tools.definitions import ToolCall, ToolResult

T = TypeVar("T")

ToolErrorHandler = Union[bool, str, Callable[[BusinessError], str]]

# 只有这些工具错误可以被回传给模型；超时与取消始终终止运行
HANDLEABLE_TOOL_ERRORS = (ToolNotFoundError, InvalidArgumentsError, ToolExecutionError)


class RunState(str, Enum):
    RENDER = "render"
    INVOKE = "invoke"
    EXECUTE_TOOLS = "execute_tools"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AgentConfig:
    max_iterations: int = 15
    max_execution_time: Optional[float] = None
    model_timeout: Optional[float] = 60.0
    tool_timeout: Optional[float] = 30.0
    handle_tool_errors: ToolErrorHandler = False
    parallel_tool_calls: bool = False
    max_tool_workers: int = 4
    trace_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValidationError(message="max_iterations must be >= 1", max_iterations=self.max_iterations)
        if self.max_tool_workers < 1:
            raise ValidationError(message="max_tool_workers must be >= 1")

    @classmethod
    def from_settings(cls, cfg=settings, **overrides: Any) -> "AgentConfig":
        values: Dict[str, Any] = {
            "max_iterations": cfg.max_iterations,
            "max_execution_time": cfg.max_execution_time,
            "model_timeout": cfg.model_timeout,
            "tool_timeout": cfg.tool_timeout,
            "handle_tool_errors": cfg.handle_tool_errors,
            "parallel_tool_calls": cfg.parallel_tool_calls,
            "max_tool_workers": cfg.max_tool_workers,
            "trace_dir": cfg.trace_dir,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class AgentStreamEvent:
    """AgentExecutor.stream 产生的事件。

    kind:
        - "step": 一轮工具调用完成，step 为对应的 AgentStep。
        - "final": 运行成功结束，result 为最终结果。
        - "failed": 运行失败，result.error 为具体异常。
    """

    kind: Literal["step", "final", "failed"]
    run_id: str
    step: Optional[AgentStep] = None
    result: Optional[AgentRunResult] = None


@dataclass
class RunContext:
    """单次运行的可变状态，只属于这一次运行。"""

    run_id: str
    cancel_token: Optional[CancellationToken]
    started_at: float
    deadline: Optional[float]
    log_ctx: Dict[str, Any]
    trace: Optional[TraceRecorder] = None
    usage: ChatUsage = field(default_factory=ChatUsage)
    iterations: int = 0
    state: RunState = RunState.RENDER

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


class AgentExecutor:
    def __init__(self, agent: ToolCallingAgent, config: Optional[AgentConfig] = None):
        self._agent = agent
        self._config = config or AgentConfig.from_settings()

    @property
    def agent(self) -> ToolCallingAgent:
        return self._agent

    @property
    def config(self) -> AgentConfig:
        return self._config

    # ---- 对外入口 ----

    def run(
        self,
        input: str,
        chat_history: Optional[List[Any]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
        **slots: Any,
    ) -> AgentRunResult:
        """执行一次完整运行，返回 AgentRunResult（失败时 status="failed"）。"""

        result: Optional[AgentRunResult] = None
        for event in self.stream(input, chat_history, cancel_token=cancel_token, **slots):
            if event.result is not None:
                result = event.result
        assert result is not None
        return result

    def invoke(
        self,
        input: str,
        chat_history: Optional[List[Any]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
        **slots: Any,
    ) -> str:
        """执行一次运行并直接返回最终回答；失败时抛出对应的业务异常。"""

        result = self.run(input, chat_history, cancel_token=cancel_token, **slots)
        result.raise_for_error()
        return result.output or ""

    def stream(
        self,
        input: str,
        chat_history: Optional[List[Any]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
        **slots: Any,
    ) -> Iterator[AgentStreamEvent]:
        """逐轮产出事件：每完成一轮工具调用产出 "step"，最后产出 "final" 或 "failed"。"""

        ctx = self.start_run(cancel_token)
        inputs = self.build_inputs(input, chat_history, slots)
        steps: List[AgentStep] = []
        try:
            while True:
                turn = self.plan_step(inputs, steps, ctx)
                if turn.is_final:
                    yield AgentStreamEvent(kind="final", run_id=ctx.run_id, result=self.finish(ctx, steps, turn))
                    return
                step = self.execute_step(turn, steps, ctx)
                steps.append(step)
                yield AgentStreamEvent(kind="step", run_id=ctx.run_id, step=step)
        except BusinessError as exc:
            yield AgentStreamEvent(kind="failed", run_id=ctx.run_id, result=self.fail(ctx, steps, exc))
        except Exception as exc:
            error = self.wrap_unexpected(ctx, exc)
            yield AgentStreamEvent(kind="failed", run_id=ctx.run_id, result=self.fail(ctx, steps, error))

    # ---- 循环的组成部分（也供 flows 中的 LangGraph 节点复用） ----

    def start_run(self, cancel_token: Optional[CancellationToken] = None) -> RunContext:
        run_id = f"run-{uuid4().hex}"
        invoker = self._agent.invoker
        log_ctx: Dict[str, Any] = {
            "run_id": run_id,
            "provider": invoker.provider_name,
            "model": invoker.model,
        }
        trace = None
        if self._config.trace_dir:
            trace = TraceRecorder(
                self._config.trace_dir,
                run_id,
                provider=invoker.provider_name,
                model=invoker.model,
                max_iterations=self._config.max_iterations,
            )
        started = time.monotonic()
        deadline = None
        if self._config.max_execution_time is not None:
            deadline = started + self._config.max_execution_time
        self._log(
            logging.INFO,
            "Starting agent run",
            log_ctx,
            max_iterations=self._config.max_iterations,
            tools=self._agent.registry.names(),
        )
        return RunContext(
            run_id=run_id,
            cancel_token=cancel_token,
            started_at=started,
            deadline=deadline,
            log_ctx=log_ctx,
            trace=trace,
        )

    @staticmethod
    def build_inputs(input: str, chat_history: Optional[List[Any]], slots: Dict[str, Any]) -> Dict[str, Any]:
        inputs = dict(slots)
        inputs["input"] = input
        if chat_history is not None:
            inputs["chat_history"] = chat_history
        return inputs

    def plan_step(self, inputs: Dict[str, Any], steps: List[AgentStep], ctx: RunContext) -> ModelTurn:
        """RENDER + INVOKE：渲染提示词并调用模型，返回本轮模型输出。"""

        self._transition(ctx, RunState.RENDER)
        self._check_cancelled(ctx, "render")
        if ctx.iterations >= self._config.max_iterations:
            raise IterationLimitExceeded(
                message=f"agent stopped after {ctx.iterations} iterations without a final answer",
                max_iterations=self._config.max_iterations,
            )
        messages = self._agent.render(inputs, steps)

        self._transition(ctx, RunState.INVOKE, iteration=ctx.iterations + 1, message_count=len(messages))
        turn = self._bounded(
            lambda: self._agent.plan(messages, cancel_token=ctx.cancel_token),
            self._config.model_timeout,
            "model",
            ctx,
        )
        ctx.iterations += 1
        ctx.usage.add(turn.usage)
        if turn.usage:
            self._log(
                logging.INFO,
                "Token usage",
                ctx.log_ctx,
                prompt_tokens=turn.usage.prompt_tokens,
                completion_tokens=turn.usage.completion_tokens,
                total_tokens=turn.usage.total_tokens,
            )
        if ctx.trace:
            ctx.trace.record_llm_step(
                ctx.iterations,
                has_tool_calls=not turn.is_final,
                summary=summarize(turn.message.content),
            )
        return turn

    def execute_step(self, turn: ModelTurn, steps: List[AgentStep], ctx: RunContext) -> AgentStep:
        """EXECUTE_TOOLS：执行本轮所有工具调用，结果按调用顺序排列。"""

        calls = turn.tool_calls
        self._transition(ctx, RunState.EXECUTE_TOOLS, call_count=len(calls))
        if self._config.parallel_tool_calls and len(calls) > 1:
            workers = min(self._config.max_tool_workers, len(calls))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="toolagent-tools") as pool:
                futures = [pool.submit(self._run_tool_call, call, ctx) for call in calls]
                results = [f.result() for f in futures]
        else:
            results = [self._run_tool_call(call, ctx) for call in calls]
        return AgentStep(
            index=len(steps),
            message=turn.message,
            tool_calls=calls,
            results=results,
            usage=turn.usage,
        )

    def finish(self, ctx: RunContext, steps: List[AgentStep], turn: ModelTurn) -> AgentRunResult:
        self._transition(ctx, RunState.DONE)
        output = turn.message.content or ""
        self._log(
            logging.INFO,
            "Completed agent run",
            ctx.log_ctx,
            elapsed_seconds=round(ctx.elapsed(), 3),
            iterations=ctx.iterations,
            step_count=len(steps),
        )
        if ctx.trace:
            ctx.trace.finalize("done", output)
        return AgentRunResult(
            run_id=ctx.run_id,
            status="done",
            output=output,
            steps=list(steps),
            iterations=ctx.iterations,
            usage=ctx.usage,
        )

    def fail(self, ctx: RunContext, steps: List[AgentStep], exc: BusinessError) -> AgentRunResult:
        self._transition(ctx, RunState.FAILED, error_code=exc.code)
        self._log(
            logging.ERROR,
            "Agent run failed",
            ctx.log_ctx,
            error_code=exc.code,
            error=exc.message,
            iterations=ctx.iterations,
            step_count=len(steps),
            elapsed_seconds=round(ctx.elapsed(), 3),
        )
        if ctx.trace:
            ctx.trace.finalize("failed", None, error=exc.to_dict())
        return AgentRunResult(
            run_id=ctx.run_id,
            status="failed",
            output=None,
            steps=list(steps),
            iterations=ctx.iterations,
            usage=ctx.usage,
            error=exc,
        )

    def wrap_unexpected(self, ctx: RunContext, exc: Exception) -> BusinessError:
        """把非业务异常按所处阶段归类为业务异常，原始异常保留在 __cause__。"""

        self._log(
            logging.ERROR,
            "Unexpected error in agent run",
            ctx.log_ctx,
            state=ctx.state.value,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        message = f"{type(exc).__name__}: {exc}"
        if ctx.state == RunState.INVOKE:
            error: BusinessError = ModelInvocationError(message=message, provider=self._agent.invoker.provider_name)
        elif ctx.state == RunState.EXECUTE_TOOLS:
            error = ToolExecutionError(message=message)
        else:
            error = AgentInternalError(message=message, stage=ctx.state.value)
        error.__cause__ = exc
        return error

    # ---- 内部实现 ----

    def _run_tool_call(self, call: ToolCall, ctx: RunContext) -> ToolResult:
        self._log(
            logging.INFO,
            "Tool call received",
            ctx.log_ctx,
            tool_name=call.name,
            tool_call_id=call.id,
            tool_args=call.arguments,
        )
        try:
            result = self._bounded(
                lambda: self._agent.registry.execute(call),
                self._config.tool_timeout,
                "tool",
                ctx,
            )
        except HANDLEABLE_TOOL_ERRORS as exc:
            if ctx.trace:
                ctx.trace.record_tool_step(
                    ctx.iterations, tool_name=call.name, args=call.arguments, error=exc.to_dict()
                )
            if not self._handles_tool_errors():
                self._log(
                    logging.ERROR,
                    "Tool execution failed",
                    ctx.log_ctx,
                    tool_call_id=call.id,
                    error_code=exc.code,
                    error=exc.message,
                )
                raise
            self._log(
                logging.WARNING,
                "Tool error returned to model",
                ctx.log_ctx,
                tool_call_id=call.id,
                error_code=exc.code,
            )
            return ToolResult(call_id=call.id, name=call.name, content=self._tool_error_text(exc), is_error=True)

        self._log(
            logging.INFO,
            "Tool execution finished",
            ctx.log_ctx,
            tool_call_id=call.id,
            result_preview=result.content[:200],
        )
        if ctx.trace:
            ctx.trace.record_tool_step(
                ctx.iterations,
                tool_name=call.name,
                args=call.arguments,
                result_summary=summarize(result.content),
            )
        return result

    def _handles_tool_errors(self) -> bool:
        handler = self._config.handle_tool_errors
        return handler is True or isinstance(handler, str) or callable(handler)

    def _tool_error_text(self, exc: BusinessError) -> str:
        handler = self._config.handle_tool_errors
        if isinstance(handler, str):
            return handler
        if callable(handler):
            return str(handler(exc))
        return f"Error: {exc.message}"

    def _bounded(self, fn: Callable[[], T], per_call: Optional[float], stage: str, ctx: RunContext) -> T:
        """在单次超时与整次运行剩余时间中取较小者作为本次调用的时限。"""

        remaining = ctx.remaining()
        if remaining is not None and remaining <= 0:
            raise AgentTimeoutError(
                message=f"run exceeded max_execution_time of {self._config.max_execution_time}s",
                stage="run",
                timeout=self._config.max_execution_time,
            )
        timeout = per_call
        if remaining is not None and (timeout is None or remaining < timeout):
            timeout = remaining
        try:
            return call_with_timeout(fn, timeout=timeout, stage=stage, cancel_token=ctx.cancel_token)
        except AgentTimeoutError as exc:
            run_left = ctx.remaining()
            if run_left is not None and run_left <= 0:
                raise AgentTimeoutError(
                    message=f"run exceeded max_execution_time of {self._config.max_execution_time}s",
                    stage="run",
                    timeout=self._config.max_execution_time,
                ) from exc
            raise

    @staticmethod
    def _check_cancelled(ctx: RunContext, stage: str) -> None:
        if ctx.cancel_token is not None:
            ctx.cancel_token.raise_if_cancelled(stage)

    def _transition(self, ctx: RunContext, state: RunState, **fields: Any) -> None:
        ctx.state = state
        self._log(logging.DEBUG, "State transition", ctx.log_ctx, state=state.value, **fields)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
