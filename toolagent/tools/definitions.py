"""工具数据结构定义。

这些 dataclass 描述了“工具调用”的 schema，既用于：
- 将可用工具列表暴露给 LLM（ToolDef / ToolParam）。
- 在执行循环中保存和执行模型触发的工具调用（ToolCall / ToolResult）。
- 把工具定义与执行函数绑定在一起注册到 ToolRegistry（Tool）。
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from toolagent.domain.exceptions import ValidationError


@dataclass
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]


@dataclass
class ToolDef:
    """一个可供 LLM 调用的工具定义。"""

    name: str
    description: str
    params: Dict[str, ToolParam]

    def parameters_schema(self) -> Dict[str, Any]:
        """生成 JSON Schema 形式的参数描述（object 类型，禁止多余字段）。"""

        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in self.params.items():
            prop = dict(param.schema or {"type": "string"})
            if param.description:
                prop["description"] = param.description
            properties[name] = prop
            if param.required:
                required.append(name)
        return {
            "type": "object",
            "properties": properties,
            "required": required,
            "additionalProperties": False,
        }

    @classmethod
    def from_json_schema(cls, name: str, description: str, schema: Dict[str, Any]) -> "ToolDef":
        """从 object 类型的 JSON Schema 构造 ToolDef。"""

        if schema.get("type", "object") != "object":
            raise ValidationError(
                message=f"tool {name!r} input schema must be an object schema",
                tool_name=name,
            )
        required = set(schema.get("required") or [])
        params: Dict[str, ToolParam] = {}
        for pname, prop in (schema.get("properties") or {}).items():
            prop = dict(prop)
            pdesc = str(prop.pop("description", "") or "")
            params[pname] = ToolParam(name=pname, description=pdesc, required=pname in required, schema=prop)
        unknown = required - set(params)
        if unknown:
            raise ValidationError(
                message=f"tool {name!r} requires undeclared fields: {sorted(unknown)}",
                tool_name=name,
            )
        return cls(name=name, description=description, params=params)


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求。id 用于关联对应的工具结果消息。"""

    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class ToolResult:
    """工具执行结果的封装（文本形式）。"""

    call_id: str
    content: str
    name: str = ""
    is_error: bool = False


@dataclass
class Tool:
    """已绑定执行函数的工具。执行函数以关键字参数接收调用参数。"""

    definition: ToolDef
    func: Callable[..., Any]

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    def parameters_schema(self) -> Dict[str, Any]:
        return self.definition.parameters_schema()

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.func(*args, **kwargs)
