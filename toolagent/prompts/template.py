"""Role-tagged prompt templates with placeholder slots."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from string import Formatter
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from toolagent.domain.exceptions import MissingSlotError, ValidationError
from toolagent.domain.models import ChatMessage, Role
from toolagent.tools.definitions import ToolCall

ROLE_ALIASES: Dict[str, Role] = {
    "system": "system",
    "human": "user",
    "user": "user",
    "ai": "assistant",
    "assistant": "assistant",
    "tool": "tool",
}

_PLACEHOLDER_RE = re.compile(r"^\{(\w+)\}$")


def normalize_role(role: str) -> Role:
    try:
        return ROLE_ALIASES[str(role).lower()]
    except KeyError:
        raise ValidationError(message=f"unknown message role {role!r}") from None


def template_variables(template: str) -> List[str]:
    """Return the slot names referenced by a ``str.format`` template, in order."""

    names: List[str] = []
    try:
        parsed = list(Formatter().parse(template))
    except ValueError as exc:
        raise ValidationError(message=f"malformed template {template!r}: {exc}") from exc
    for _, field_name, _, _ in parsed:
        if field_name is None:
            continue
        if field_name == "" or field_name.isdigit():
            raise ValidationError(message=f"positional fields are not supported: {template!r}")
        root = re.split(r"[.\[]", field_name, maxsplit=1)[0]
        if root not in names:
            names.append(root)
    return names


def coerce_messages(value: Any) -> List[ChatMessage]:
    """Turn ChatMessages, (role, content) tuples or role/content mappings into ChatMessages."""

    if value is None:
        return []
    if isinstance(value, ChatMessage):
        return [value]
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ValidationError(message=f"expected a list of messages, got {type(value).__name__}")
    messages: List[ChatMessage] = []
    for item in value:
        if isinstance(item, ChatMessage):
            messages.append(item)
        elif isinstance(item, tuple) and len(item) == 2:
            messages.append(ChatMessage(role=normalize_role(item[0]), content=str(item[1])))
        elif isinstance(item, Mapping) and "role" in item:
            messages.append(
                ChatMessage(
                    role=normalize_role(item["role"]),
                    content=str(item.get("content") or ""),
                    tool_calls=_coerce_tool_calls(item.get("tool_calls")),
                    tool_call_id=item.get("tool_call_id"),
                )
            )
        else:
            raise ValidationError(message=f"cannot convert {item!r} to a message")
    return messages


def _coerce_tool_calls(value: Any) -> Optional[List[ToolCall]]:
    """Accept ToolCalls, OpenAI-style {"id", "function": {...}} entries or flat {"id", "name", "arguments"}."""

    if not value:
        return None
    calls: List[ToolCall] = []
    for entry in value:
        if isinstance(entry, ToolCall):
            calls.append(entry)
            continue
        if not isinstance(entry, Mapping):
            raise ValidationError(message=f"cannot convert {entry!r} to a tool call")
        func = entry.get("function") or entry
        name = func.get("name")
        call_id = entry.get("id")
        if not name or not call_id:
            raise ValidationError(message=f"tool call needs an id and a name: {entry!r}")
        arguments = func.get("arguments") or {}
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError as exc:
                raise ValidationError(message=f"tool call {call_id!r} has invalid JSON arguments") from exc
        calls.append(ToolCall(id=str(call_id), name=str(name), arguments=arguments))
    return calls


@dataclass
class MessageTemplate:
    """A single role-tagged message whose content is a ``str.format`` template."""

    role: Role
    template: str
    variables: List[str] = field(init=False)

    def __post_init__(self) -> None:
        self.role = normalize_role(self.role)
        self.variables = template_variables(self.template)

    def format(self, values: Mapping[str, Any]) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.template.format_map(dict(values)))


@dataclass
class MessagesPlaceholder:
    """A slot filled with a list of messages (prior turns, scratchpad)."""

    variable_name: str
    optional: bool = False

    @property
    def variables(self) -> List[str]:
        return [self.variable_name]

    def format(self, values: Mapping[str, Any]) -> List[ChatMessage]:
        return coerce_messages(values.get(self.variable_name))


PromptPart = Union[MessageTemplate, MessagesPlaceholder]
PromptPartLike = Union[PromptPart, ChatMessage, Tuple[str, str]]


def _to_part(item: PromptPartLike) -> PromptPart:
    if isinstance(item, (MessageTemplate, MessagesPlaceholder)):
        return item
    if isinstance(item, ChatMessage):
        escaped = item.content.replace("{", "{{").replace("}", "}}")
        return MessageTemplate(role=item.role, template=escaped)
    if isinstance(item, tuple) and len(item) == 2:
        role, template = item
        if role == "placeholder":
            match = _PLACEHOLDER_RE.match(str(template).strip())
            if not match:
                raise ValidationError(message=f"placeholder must look like '{{name}}', got {template!r}")
            return MessagesPlaceholder(match.group(1), optional=True)
        return MessageTemplate(role=role, template=str(template))
    raise ValidationError(message=f"unsupported prompt part {item!r}")


class PromptTemplate:
    """An ordered list of message templates and placeholders.

    ``render`` binds slot values and produces the message sequence sent to the
    model. Required slots without a value raise MissingSlotError.
    """

    def __init__(
        self,
        messages: Sequence[PromptPartLike],
        partial_variables: Optional[Mapping[str, Any]] = None,
        name: Optional[str] = None,
    ):
        self.messages: List[PromptPart] = [_to_part(m) for m in messages]
        self.partial_variables: Dict[str, Any] = dict(partial_variables or {})
        self.name = name

    @classmethod
    def from_messages(cls, messages: Sequence[PromptPartLike], name: Optional[str] = None) -> "PromptTemplate":
        return cls(messages, name=name)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PromptTemplate":
        parts: List[PromptPart] = []
        for entry in data.get("messages") or []:
            if "placeholder" in entry:
                parts.append(
                    MessagesPlaceholder(str(entry["placeholder"]), optional=bool(entry.get("optional", False)))
                )
            elif "role" in entry:
                parts.append(MessageTemplate(role=entry["role"], template=str(entry.get("template", ""))))
            else:
                raise ValidationError(message=f"prompt entry needs 'role' or 'placeholder': {entry!r}")
        if not parts:
            raise ValidationError(message="prompt has no messages")
        return cls(parts, partial_variables=data.get("partial_variables"), name=data.get("name"))

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PromptTemplate":
        p = Path(path)
        try:
            data = yaml.safe_load(p.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ValidationError(code="PROMPT_LOAD_ERROR", message=f"cannot load prompt {p}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ValidationError(code="PROMPT_LOAD_ERROR", message=f"prompt file {p} is not a mapping")
        return cls.from_dict(data)

    @property
    def all_variables(self) -> List[str]:
        names: List[str] = []
        for part in self.messages:
            for var in part.variables:
                if var not in names:
                    names.append(var)
        return names

    @property
    def input_variables(self) -> List[str]:
        """Slots that must be supplied at render time."""

        optional = {
            p.variable_name for p in self.messages if isinstance(p, MessagesPlaceholder) and p.optional
        }
        return [v for v in self.all_variables if v not in optional and v not in self.partial_variables]

    def has_variable(self, name: str) -> bool:
        return name in self.all_variables

    def partial(self, **values: Any) -> "PromptTemplate":
        merged = {**self.partial_variables, **values}
        return PromptTemplate(self.messages, partial_variables=merged, name=self.name)

    def format_messages(self, values: Mapping[str, Any]) -> List[ChatMessage]:
        bound = {**self.partial_variables, **{k: v for k, v in values.items() if v is not None}}
        missing = [v for v in self.input_variables if v not in bound]
        if missing:
            raise MissingSlotError(
                message=f"missing value for prompt slot {missing[0]!r}",
                slot=missing[0],
                missing=missing,
            )
        rendered: List[ChatMessage] = []
        for part in self.messages:
            if isinstance(part, MessageTemplate):
                rendered.append(part.format(bound))
            else:
                rendered.extend(part.format(bound))
        return rendered

    def render(self, **values: Any) -> List[ChatMessage]:
        return self.format_messages(values)
