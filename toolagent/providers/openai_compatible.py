"""OpenAI 兼容 Provider 适配器。

OpenAI、Moonshot/Kimi、GLM/BigModel 都提供同构的 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为 chat/completions 的 HTTP 请求格式（含 function tools）。
3. 调用 HTTP 接口并把网络/API 异常映射为统一的业务异常。
4. 将响应 JSON 解析为统一的 ChatResult / ChatMessage 结构（含工具调用）。
"""

import json
from typing import Any, Dict, List

import httpx

from toolagent.domain.exceptions import (
    AgentTimeoutError,
    ApiError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from toolagent.domain.models import ChatChoice, ChatMessage, ChatRequest, ChatResult, ChatUsage
from toolagent.providers.registry import ModelConfig, ProviderConfig
from toolagent.tools.definitions import ToolCall, ToolDef


class OpenAICompatibleClient:
    """OpenAI 兼容接口的客户端实现。

    - name: Provider 名称（取自 ProviderConfig，供日志/调试使用）。
    - chat: 对外统一调用入口，返回 ChatResult。
    """

    def __init__(self, config: ProviderConfig, settings):
        self._config = config
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = settings
        self.name = config.name

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。

        步骤：
        1. 读取模型配置（logical model -> provider model）。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并把超时/网络错误/限流/服务端错误映射为业务异常。
        4. 使用统一的解析函数构造 ChatResult。
        """

        api_key = getattr(self._settings, self._config.api_key_setting, None)
        if not api_key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(
                code="MISSING_API_KEY",
                message=f"{self._config.api_key_setting.upper()} not set",
                provider=self.name,
            )
        model_cfg = self._config.model(req.model)
        payload = self._build_payload(req, model_cfg)
        base = getattr(self._settings, self._config.base_url_setting, None) or self._config.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException as e:
            raise AgentTimeoutError(
                message=str(e) or "model request timed out",
                stage="model",
                provider=self.name,
            ) from e
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接被拒绝等
            raise NetworkError(message=str(e), provider=self.name) from e
        if resp.status_code == 429:
            raise RateLimitError(message=f"{self.name} rate limit", provider=self.name)
        if resp.status_code >= 400:
            raise ApiError(message=resp.text, http_status=resp.status_code, provider=self.name)
        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponseError(message=f"invalid JSON from {self.name}: {e}", provider=self.name) from e
        if not isinstance(data, dict):
            raise MalformedResponseError(message=f"unexpected response body from {self.name}", provider=self.name)
        return self._parse_response(data, req)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        """将 ChatRequest 转成 chat/completions 所需的请求 JSON。"""

        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "messages": [self._message_to_payload(m) for m in req.messages],
            "temperature": req.temperature,
            "top_p": req.top_p,
        }
        max_tokens = req.max_tokens or model_cfg.max_tokens
        if max_tokens:
            payload["max_tokens"] = max_tokens
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools]
            payload["tool_choice"] = req.tool_choice
        return payload

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        """将原始响应 JSON 解析为统一的 ChatResult。"""

        choices: List[ChatChoice] = []
        for i, ch in enumerate(data.get("choices") or []):
            msg = ch.get("message") or {}
            cm = self._build_chat_message(msg)
            choices.append(ChatChoice(index=ch.get("index", i), message=cm, finish_reason=ch.get("finish_reason")))
        usage = self._parse_usage(data.get("usage"))
        return ChatResult(provider=self.name, model=req.model, choices=choices, usage=usage, raw=data)

    def _parse_usage(self, raw: Any) -> ChatUsage:
        """解析 usage 字段；缺失或为 null 的计数按 0 处理。"""

        if not raw:
            return ChatUsage()
        if not isinstance(raw, dict):
            raise MalformedResponseError(message=f"unexpected usage from {self.name}: {raw!r}", provider=self.name)
        counts: Dict[str, int] = {}
        for key in ("prompt_tokens", "completion_tokens", "total_tokens"):
            value = raw.get(key)
            if value is None:
                counts[key] = 0
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float, str)):
                raise MalformedResponseError(message=f"invalid {key} in usage from {self.name}: {value!r}", provider=self.name)
            try:
                counts[key] = int(value)
            except (ValueError, OverflowError) as e:
                raise MalformedResponseError(message=f"invalid {key} in usage from {self.name}: {value!r}", provider=self.name) from e
        return ChatUsage(**counts)

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        """把内部的 ToolDef 转成 function tool 描述。"""

        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema(),
            },
        }

    def _build_chat_message(self, payload: Dict[str, Any]) -> ChatMessage:
        """将单条厂商 message 转换为 ChatMessage。

        同时负责把 tool_calls 字段解析为统一的 ToolCall 列表。
        """

        tool_calls: List[ToolCall] = []
        for idx, call in enumerate(payload.get("tool_calls") or []):
            func = call.get("function") or {}
            tool_calls.append(
                ToolCall(
                    id=call.get("id") or f"tool_call_{idx}",
                    name=func.get("name") or call.get("name") or "",
                    arguments=self._parse_arguments(func.get("arguments")),
                )
            )

        # 部分兼容接口仍会返回旧版 function_call 字段
        function_call = payload.get("function_call")
        if function_call:
            tool_calls.append(
                ToolCall(
                    id=function_call.get("id") or "function_call",
                    name=function_call.get("name") or "",
                    arguments=self._parse_arguments(function_call.get("arguments")),
                )
            )
        return ChatMessage(
            role=payload.get("role") or "assistant",
            content=payload.get("content") or "",
            tool_calls=tool_calls or None,
            tool_call_id=payload.get("tool_call_id"),
        )

    @staticmethod
    def _parse_arguments(raw: Any) -> Any:
        """解析工具调用的 arguments 字段。

        接口会把 arguments 作为 JSON 字符串返回，这里做一层 json.loads，
        失败时保留原始字符串到 `_raw`，由工具注册表的参数校验拒绝。
        """

        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            if not raw.strip():
                return {}
            try:
                return json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
        return {}

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role}
        if message.content or not message.tool_calls:
            payload["content"] = message.content
        if message.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments, ensure_ascii=False),
                    },
                }
                for call in message.tool_calls
            ]
        if message.tool_call_id:
            payload["tool_call_id"] = message.tool_call_id
        return payload
