"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，便于在 API 层统一捕获。
Agent 运行失败时，AgentRunResult.error 中保存的就是这里定义的某个子类，
其 code 字段即对外可见的错误类别。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "TOOL_NOT_FOUND"），缺省为子类的 default_code。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码。
        extra: 其他补充字段（例如 tool_name、stage、slot 等）。
    """

    default_code = "BUSINESS_ERROR"
    default_status = 400

    def __init__(
        self,
        code: Optional[str] = None,
        message: str = "",
        http_status: Optional[int] = None,
        **extra,
    ):
        self.code = code or self.default_code
        self.message = message
        self.http_status = http_status or self.default_status
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.extra}


class ValidationError(BusinessError):
    """参数、配置或工具注册校验失败。"""

    default_code = "VALIDATION_ERROR"


class DuplicateToolError(ValidationError):
    """同名工具重复注册。"""

    default_code = "DUPLICATE_TOOL"


class MissingSlotError(BusinessError):
    """提示词模板中必填的占位符没有绑定值。"""

    default_code = "MISSING_SLOT"


class ToolNotFoundError(BusinessError):
    """模型请求了未注册的工具。"""

    default_code = "TOOL_NOT_FOUND"
    default_status = 404


class InvalidArgumentsError(BusinessError):
    """工具参数不符合其 input schema。"""

    default_code = "INVALID_ARGUMENTS"
    default_status = 422


class ToolExecutionError(BusinessError):
    """工具函数本身抛出了异常，原始异常通过 __cause__ 保留。"""

    default_code = "TOOL_EXECUTION_ERROR"
    default_status = 500


class ModelInvocationError(BusinessError):
    """模型调用失败（网络、限流、服务端错误、响应格式异常）。"""

    default_code = "MODEL_INVOCATION_ERROR"
    default_status = 502


class NetworkError(ModelInvocationError):
    """网络层错误，例如连接失败、DNS 解析失败等。"""

    default_code = "NETWORK_ERROR"


class ApiError(ModelInvocationError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""

    default_code = "API_ERROR"


class RateLimitError(ModelInvocationError):
    """Provider 限流错误，由 ModelInvoker 做有限次数的重试/退避。"""

    default_code = "RATE_LIMIT"
    default_status = 429


class MalformedResponseError(ModelInvocationError):
    """Provider 返回了无法解析或不完整的响应。"""

    default_code = "MALFORMED_RESPONSE"


class IterationLimitExceeded(BusinessError):
    """模型调用轮数达到 max_iterations 仍未给出最终回答。"""

    default_code = "ITERATION_LIMIT_EXCEEDED"


class AgentTimeoutError(BusinessError):
    """模型调用、工具调用或整次运行超时；extra["stage"] 标明阶段。"""

    default_code = "TIMEOUT"
    default_status = 504


class RunCancelledError(BusinessError):
    """运行被外部取消信号中止。"""

    default_code = "CANCELLED"
    default_status = 499


class AgentInternalError(BusinessError):
    """执行循环内部出现的非业务异常（如提示词渲染、trace 写入失败），原始异常通过 __cause__ 保留。"""

    default_code = "INTERNAL_ERROR"
    default_status = 500
