"""Derive tool definitions from plain Python functions."""

from __future__ import annotations

import inspect
import types
import typing
from typing import Any, Callable, Dict, Optional, Union

from toolagent.domain.exceptions import ValidationError
from toolagent.tools.definitions import Tool, ToolDef, ToolParam

_SIMPLE_TYPE_MAP = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
}


def _json_type(annotation: Any) -> Dict[str, Any]:
    """Convert a Python type annotation to a JSON schema fragment."""

    if annotation is inspect.Parameter.empty or annotation is Any:
        return {}
    if annotation is type(None):
        return {"type": "null"}

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    # Optional[T] collapses to T; other unions become anyOf
    if origin is Union or origin is types.UnionType:
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1:
            return _json_type(non_none[0])
        return {"anyOf": [_json_type(a) for a in non_none]}

    if origin in (list, tuple, set) or annotation in (list, tuple, set):
        schema: Dict[str, Any] = {"type": "array"}
        if args and args[0] is not Ellipsis:
            schema["items"] = _json_type(args[0])
        return schema

    if origin is dict or annotation is dict:
        return {"type": "object"}

    return {"type": _SIMPLE_TYPE_MAP.get(annotation, "string")}


def _parse_google_docstring(doc: str) -> Dict[str, str]:
    """Parse a Google-style ``Args:`` section into parameter descriptions."""

    param_descriptions: Dict[str, str] = {}
    in_args_section = False
    current_param = None

    for line in doc.split("\n"):
        stripped = line.strip()
        if stripped in ("Args:", "Arguments:", "Parameters:"):
            in_args_section = True
            continue
        if in_args_section and stripped.endswith(":") and not line.startswith(" "):
            break
        if not in_args_section or not stripped:
            continue
        if ":" in stripped:
            param_part, desc_part = stripped.split(":", 1)
            param_name = param_part.split("(")[0].strip()
            if param_name and " " not in param_name:
                current_param = param_name
                param_descriptions[param_name] = desc_part.strip()
                continue
        if current_param:
            param_descriptions[current_param] += " " + stripped

    return param_descriptions


def _summary(doc: str) -> str:
    first_para = []
    for line in doc.split("\n"):
        stripped = line.strip()
        if not stripped:
            break
        first_para.append(stripped)
    return " ".join(first_para)


def function_to_tool_def(
    fn: Callable[..., Any],
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> ToolDef:
    """Build a ToolDef from a function signature and its docstring."""

    sig = inspect.signature(fn)
    try:
        hints = typing.get_type_hints(fn)
    except (NameError, TypeError):
        hints = {}
    doc = inspect.getdoc(fn) or ""
    param_descriptions = _parse_google_docstring(doc)

    params: Dict[str, ToolParam] = {}
    for pname, param in sig.parameters.items():
        if pname in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise ValidationError(
                message=f"tool function {fn.__name__!r} cannot take *args/**kwargs",
                tool_name=name or fn.__name__,
            )
        params[pname] = ToolParam(
            name=pname,
            description=param_descriptions.get(pname, ""),
            required=param.default is inspect.Parameter.empty,
            schema=_json_type(hints.get(pname, param.annotation)),
        )

    return ToolDef(
        name=name or fn.__name__,
        description=description or _summary(doc) or fn.__name__,
        params=params,
    )


def tool(
    _fn: Optional[Callable[..., Any]] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Any:
    """Decorator turning a function into a Tool; usable with or without arguments."""

    def wrapper(fn: Callable[..., Any]) -> Tool:
        return Tool(definition=function_to_tool_def(fn, name=name, description=description), func=fn)

    if _fn is None:
        return wrapper
    return wrapper(_fn)


def as_tool(obj: Union[Tool, Callable[..., Any]]) -> Tool:
    """Coerce a Tool or plain callable into a Tool."""

    if isinstance(obj, Tool):
        return obj
    if callable(obj):
        return tool(obj)
    raise ValidationError(message=f"cannot register {obj!r} as a tool")
