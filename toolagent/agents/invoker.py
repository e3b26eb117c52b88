"""模型调用器。

把渲染好的消息序列和可用工具交给 ProviderClient，并把返回结果归类为
“最终回答”或“非空的工具调用列表”（ModelTurn）。

- 限流 / 网络错误：有限次数的指数退避重试，用尽后原样抛出。
- 无候选、工具调用缺少名称：MalformedResponseError。
- Provider 抛出的非业务异常：包装为 ModelInvocationError。
"""

import time
from typing import List, Optional, Sequence

from toolagent.config.settings import settings
from toolagent.domain.exceptions import (
    BusinessError,
    MalformedResponseError,
    ModelInvocationError,
    NetworkError,
    RateLimitError,
)
from toolagent.domain.models import ChatMessage, ChatRequest, ChatResult, ModelTurn
from toolagent.infrastructure.concurrency import CancellationToken
from toolagent.infrastructure.logging.logger import logger
from toolagent.providers.base import ProviderClient
from toolagent.tools.definitions import ToolDef

RETRYABLE_ERRORS = (RateLimitError, NetworkError)


class ModelInvoker:
    def __init__(
        self,
        provider_client: ProviderClient,
        *,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ):
        self._provider_client = provider_client
        self.model = model or getattr(settings, "default_model", "agent-chat")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = settings.model_max_retries if max_retries is None else max_retries
        self.retry_backoff = settings.retry_backoff if retry_backoff is None else retry_backoff

    @property
    def provider_name(self) -> str:
        return getattr(self._provider_client, "name", "unknown")

    def invoke(
        self,
        messages: Sequence[ChatMessage],
        tool_defs: Optional[List[ToolDef]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ModelTurn:
        req = ChatRequest(
            provider=self.provider_name,
            model=self.model,
            messages=list(messages),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            tools=list(tool_defs) if tool_defs else None,
            tool_choice="auto",
        )
        result = self._chat_with_retry(req, cancel_token)
        return self._to_turn(result)

    def _chat_with_retry(self, req: ChatRequest, cancel_token: Optional[CancellationToken]) -> ChatResult:
        attempt = 0
        while True:
            try:
                return self._provider_client.chat(req)
            except RETRYABLE_ERRORS as exc:
                if attempt >= self.max_retries:
                    raise
                delay = self.retry_backoff * (2**attempt)
                attempt += 1
                logger.warning(
                    "Retrying model call",
                    extra={
                        "extra": {
                            "provider": self.provider_name,
                            "attempt": attempt,
                            "max_retries": self.max_retries,
                            "delay": delay,
                            "error_code": exc.code,
                        }
                    },
                )
                if cancel_token is not None:
                    cancel_token.wait(delay)
                    cancel_token.raise_if_cancelled("model")
                elif delay:
                    time.sleep(delay)
            except BusinessError:
                raise
            except Exception as exc:
                raise ModelInvocationError(
                    message=f"provider {self.provider_name!r} failed: {exc}",
                    provider=self.provider_name,
                ) from exc

    def _to_turn(self, result: ChatResult) -> ModelTurn:
        if not result.choices:
            raise MalformedResponseError(
                message=f"provider {self.provider_name!r} returned no choices",
                provider=self.provider_name,
            )
        choice = result.choices[0]
        msg = choice.message
        msg.role = "assistant"
        seen = set()
        for idx, call in enumerate(msg.tool_calls or []):
            if not call.name:
                raise MalformedResponseError(
                    message="tool call without a function name",
                    provider=self.provider_name,
                    tool_call_id=call.id,
                )
            # 结果消息按 id 关联调用，缺失或重复的 id 需要补齐
            if not call.id or call.id in seen:
                candidate = f"call_{idx}_{call.name}"
                suffix = 1
                while candidate in seen:
                    candidate = f"call_{idx}_{call.name}_{suffix}"
                    suffix += 1
                call.id = candidate
            seen.add(call.id)
        return ModelTurn(message=msg, usage=result.usage, finish_reason=choice.finish_reason)
