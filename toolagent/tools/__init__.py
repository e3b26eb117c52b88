"""工具系统：定义、基于函数签名的 schema 推导、注册表与内置工具。"""

from toolagent.tools.definitions import Tool, ToolCall, ToolDef, ToolParam, ToolResult
from toolagent.tools.registry import ToolRegistry
from toolagent.tools.schema import tool

__all__ = ["Tool", "ToolCall", "ToolDef", "ToolParam", "ToolResult", "ToolRegistry", "tool"]
