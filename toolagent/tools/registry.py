"""工具注册表。

按名称维护可供模型调用的工具：
- 注册时用 jsonschema 校验工具的 input schema，并保证名称唯一；
- 执行时先校验参数，再调用工具函数，把返回值统一转成字符串。
"""

import json
import re
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

import jsonschema
from jsonschema.exceptions import SchemaError, best_match

from toolagent.domain.exceptions import (
    BusinessError,
    DuplicateToolError,
    InvalidArgumentsError,
    ToolExecutionError,
    ToolNotFoundError,
    ValidationError,
)
from toolagent.infrastructure.logging.logger import logger
from toolagent.tools.definitions import Tool, ToolCall, ToolDef, ToolResult
from toolagent.tools.schema import as_tool

# OpenAI 兼容接口对 function name 的限制
TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def stringify_result(value: Any) -> str:
    """把工具返回值转换为发给模型的文本。"""

    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


class ToolRegistry:
    """名称 -> Tool 的注册表。"""

    def __init__(self, tools: Optional[Iterable[Union[Tool, Callable[..., Any]]]] = None):
        self._tools: Dict[str, Tool] = {}
        self._validators: Dict[str, jsonschema.Draft7Validator] = {}
        for item in tools or []:
            self.register(item)

    def register(self, item: Union[Tool, Callable[..., Any]]) -> Tool:
        tool = as_tool(item)
        if not TOOL_NAME_PATTERN.match(tool.name or ""):
            raise ValidationError(
                code="INVALID_TOOL_NAME",
                message=f"invalid tool name {tool.name!r}",
                tool_name=tool.name,
            )
        if tool.name in self._tools:
            raise DuplicateToolError(message=f"tool {tool.name!r} already registered", tool_name=tool.name)
        schema = tool.parameters_schema()
        try:
            jsonschema.Draft7Validator.check_schema(schema)
        except SchemaError as exc:
            raise ValidationError(
                code="INVALID_TOOL_SCHEMA",
                message=f"invalid input schema for tool {tool.name!r}: {exc.message}",
                tool_name=tool.name,
            ) from exc
        self._tools[tool.name] = tool
        self._validators[tool.name] = jsonschema.Draft7Validator(schema)
        logger.debug("Tool registered", extra={"extra": {"tool_name": tool.name}})
        return tool

    def get(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(
                message=f"Tool {name!r} not registered",
                tool_name=name,
                available=self.names(),
            )
        return tool

    def names(self) -> List[str]:
        return list(self._tools)

    def tool_defs(self) -> List[ToolDef]:
        return [t.definition for t in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))

    def validate_arguments(self, name: str, arguments: Any) -> Dict[str, Any]:
        """校验参数是否符合工具 schema，返回可直接传给工具函数的 dict。"""

        self.get(name)
        if not isinstance(arguments, Mapping):
            raise InvalidArgumentsError(
                message=f"arguments for tool {name!r} must be an object, got {type(arguments).__name__}",
                tool_name=name,
            )
        args = dict(arguments)
        error = best_match(self._validators[name].iter_errors(args))
        if error is not None:
            location = "/".join(str(p) for p in error.absolute_path)
            detail = f"{location}: {error.message}" if location else error.message
            raise InvalidArgumentsError(
                message=f"invalid arguments for tool {name!r}: {detail}",
                tool_name=name,
            )
        return args

    def execute(self, call: ToolCall) -> ToolResult:
        tool = self.get(call.name)
        args = self.validate_arguments(call.name, call.arguments)
        try:
            content = stringify_result(tool.func(**args))
        except BusinessError:
            raise
        except Exception as exc:
            raise ToolExecutionError(
                message=f"tool {call.name!r} failed: {exc}",
                tool_name=call.name,
                tool_call_id=call.id,
            ) from exc
        return ToolResult(call_id=call.id, name=call.name, content=content)
