"""统一的对话与运行结果数据模型。

本模块定义了 Agent 内部在 Provider、工具与执行循环之间共享的数据结构：

- ChatMessage: 一条对话消息（system/user/assistant/tool）。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。
- ModelTurn: 单次模型调用的结论（最终回答或一组工具调用）。
- AgentStep: 执行循环中的一轮“模型请求工具 -> 执行工具”。
- AgentRunResult: 一次运行的最终结果，包含完整的步骤记录。

所有 Provider 适配器都只依赖这些模型，并负责在各自的 API JSON
和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List, TYPE_CHECKING

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from toolagent.domain.exceptions import BusinessError
    from toolagent.tools.definitions import ToolCall, ToolDef, ToolResult


# LLM 消息角色类型（与 OpenAI 兼容接口的 role 字段对应）
Role = Literal["system", "user", "assistant", "tool"]

RunStatus = Literal["done", "failed"]


@dataclass
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。

    - role: 消息角色，如 system/user/assistant/tool。
    - content: 纯文本内容。
    - meta: 附加元数据，不直接发给 Provider，主要用于日志。
    - tool_calls: 当 role 为 "assistant" 且模型触发工具调用时，
      这里保存模型发起的工具调用列表。
    - tool_call_id: 当 role 为 "tool" 时，用于关联某一次工具调用。
    """

    role: Role
    content: str
    meta: Dict[str, Any] = field(default_factory=dict)
    tool_calls: Optional[List["ToolCall"]] = None
    tool_call_id: Optional[str] = None


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "openai"
    model: str  # 逻辑模型名，如 "agent-chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]
    temperature: float = 0.0
    top_p: float = 1.0
    max_tokens: Optional[int] = None
    # 工具定义列表：当模型支持工具调用时，会通过 Provider 转成对应 schema
    tools: Optional[List["ToolDef"]] = None
    # 模型是否必须/禁止使用工具
    tool_choice: Literal["auto", "none", "required"] = "auto"


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: Optional["ChatUsage"]) -> None:
        if other is None:
            return
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens


@dataclass
class ChatChoice:
    """单个候选回答（目前只使用 index=0 的一条）。"""

    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    - provider: 逻辑 Provider 名。
    - model: 逻辑模型名。
    - choices: 一个或多个候选回答。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None


@dataclass
class ModelTurn:
    """ModelInvoker 的输出：要么是最终回答，要么是一组非空的工具调用。"""

    message: ChatMessage
    usage: Optional[ChatUsage] = None
    finish_reason: Optional[str] = None

    @property
    def tool_calls(self) -> List["ToolCall"]:
        return list(self.message.tool_calls or [])

    @property
    def is_final(self) -> bool:
        return not self.message.tool_calls


@dataclass
class AgentStep:
    """执行循环中的一轮：模型发起的工具调用及其执行结果（按调用顺序）。"""

    index: int
    message: ChatMessage
    tool_calls: List["ToolCall"]
    results: List["ToolResult"]
    usage: Optional[ChatUsage] = None

    @property
    def observations(self) -> List[str]:
        return [r.content for r in self.results]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "thought": self.message.content,
            "tool_calls": [
                {"id": c.id, "name": c.name, "arguments": c.arguments} for c in self.tool_calls
            ],
            "results": [
                {
                    "call_id": r.call_id,
                    "name": r.name,
                    "content": r.content,
                    "is_error": r.is_error,
                }
                for r in self.results
            ],
        }


@dataclass
class AgentRunResult:
    """一次 Agent 运行的结果。

    失败的运行同样返回本结构：status 为 "failed"，error 保存具体异常，
    steps 保存失败前已完成的步骤。
    """

    run_id: str
    status: RunStatus
    output: Optional[str]
    steps: List[AgentStep]
    iterations: int
    usage: ChatUsage = field(default_factory=ChatUsage)
    error: Optional["BusinessError"] = None

    @property
    def ok(self) -> bool:
        return self.status == "done"

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "output": self.output,
            "iterations": self.iterations,
            "steps": [s.to_dict() for s in self.steps],
            "usage": {
                "prompt_tokens": self.usage.prompt_tokens,
                "completion_tokens": self.usage.completion_tokens,
                "total_tokens": self.usage.total_tokens,
            },
            "error": self.error.to_dict() if self.error is not None else None,
        }
