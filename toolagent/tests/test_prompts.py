import pytest

from toolagent.domain.exceptions import MissingSlotError, ValidationError
from toolagent.domain.models import ChatMessage
from toolagent.prompts import DEFAULT_PROMPT, load_prompt
from toolagent.prompts.template import MessagesPlaceholder, PromptTemplate, template_variables


def test_default_prompt_shape():
    prompt = load_prompt()
    assert prompt.name == DEFAULT_PROMPT
    assert prompt.all_variables == ["chat_history", "input", "agent_scratchpad"]
    assert prompt.input_variables == ["input", "agent_scratchpad"]


def test_render_default_prompt():
    prompt = load_prompt()
    msgs = prompt.render(input="hi", agent_scratchpad=[])
    assert [m.role for m in msgs] == ["system", "user"]
    assert msgs[1].content == "hi"


def test_render_with_history_tuples_and_dicts():
    prompt = load_prompt()
    msgs = prompt.render(
        input="what's my name?",
        chat_history=[("human", "hi! I'm bob"), {"role": "ai", "content": "Hello Bob!"}],
        agent_scratchpad=[],
    )
    assert [m.role for m in msgs] == ["system", "user", "assistant", "user"]
    assert msgs[2].content == "Hello Bob!"


def test_missing_slot():
    prompt = load_prompt()
    with pytest.raises(MissingSlotError) as exc:
        prompt.render(agent_scratchpad=[])
    assert exc.value.code == "MISSING_SLOT"
    assert exc.value.extra["slot"] == "input"


def test_none_counts_as_missing():
    prompt = PromptTemplate.from_messages([("human", "{input}")])
    with pytest.raises(MissingSlotError):
        prompt.render(input=None)


def test_required_placeholder():
    prompt = PromptTemplate([MessagesPlaceholder("history"), ("human", "{input}")])
    with pytest.raises(MissingSlotError) as exc:
        prompt.render(input="x")
    assert exc.value.extra["missing"] == ["history"]


def test_partial_variables():
    prompt = PromptTemplate.from_messages([("system", "Speak {language}."), ("human", "{input}")])
    fr = prompt.partial(language="French")
    assert fr.input_variables == ["input"]
    assert fr.render(input="hello")[0].content == "Speak French."
    # 原模板不受影响
    assert prompt.input_variables == ["language", "input"]


def test_literal_message_braces_preserved():
    prompt = PromptTemplate.from_messages([ChatMessage(role="system", content="use {json}"), ("human", "{input}")])
    msgs = prompt.render(input="x")
    assert msgs[0].content == "use {json}"
    assert prompt.input_variables == ["input"]


def test_placeholder_shorthand_requires_braces():
    with pytest.raises(ValidationError):
        PromptTemplate.from_messages([("placeholder", "scratch")])


def test_unknown_role():
    with pytest.raises(ValidationError):
        PromptTemplate.from_messages([("robot", "{input}")])


def test_template_variables():
    assert template_variables("{a} and {b.c} and {a}") == ["a", "b"]
    with pytest.raises(ValidationError):
        template_variables("{} positional")


def test_load_prompt_from_path(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text(
        "name: custom\nmessages:\n  - role: human\n    template: 'Q: {input}'\n  - placeholder: agent_scratchpad\n",
        encoding="utf-8",
    )
    prompt = load_prompt(str(path))
    assert prompt.name == "custom"
    assert prompt.render(input="x", agent_scratchpad=[])[0].content == "Q: x"


def test_load_prompt_missing():
    with pytest.raises(ValidationError) as exc:
        load_prompt("does_not_exist")
    assert exc.value.code == "PROMPT_LOAD_ERROR"


def test_history_mappings_keep_tool_calls():
    prompt = load_prompt()
    history = [
        {"role": "user", "content": "add 1 and 2"},
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {"id": "call_1", "type": "function", "function": {"name": "add", "arguments": '{"first_int": 1, "second_int": 2}'}}
            ],
        },
        {"role": "tool", "content": "3", "tool_call_id": "call_1"},
        {"role": "assistant", "content": "3"},
    ]
    msgs = prompt.render(input="and again?", chat_history=history, agent_scratchpad=[])
    assistant = msgs[2]
    assert assistant.tool_calls[0].id == "call_1"
    assert assistant.tool_calls[0].name == "add"
    assert assistant.tool_calls[0].arguments == {"first_int": 1, "second_int": 2}
    assert msgs[3].role == "tool"
    assert msgs[3].tool_call_id == "call_1"


def test_history_tool_call_without_id_rejected():
    prompt = load_prompt()
    history = [{"role": "assistant", "content": "", "tool_calls": [{"function": {"name": "add"}}]}]
    with pytest.raises(ValidationError):
        prompt.render(input="x", chat_history=history, agent_scratchpad=[])
