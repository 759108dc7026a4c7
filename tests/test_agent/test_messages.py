import json

import pytest

from slim_claw.messages import (
    Message,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    block_from_dict,
)


def test_plain_string_message_serializes_as_string():
    message = Message(role="user", content="hello")

    assert message.to_dict() == {"role": "user", "content": "hello"}
    assert message.blocks == []
    assert message.text() == "hello"


def test_block_message_json_round_trip_keeps_order():
    message = Message(role="assistant", content=[
        TextBlock(text="Let me check. "),
        ToolUseBlock(id="t1", name="bash", input={"command": "ls"}),
        ToolUseBlock(id="t2", name="read", input={"path": "a.txt"}),
    ])

    restored = Message.from_dict(json.loads(json.dumps(message.to_dict())))

    assert restored == message
    assert [b.type for b in restored.blocks] == ["text", "tool_use", "tool_use"]
    assert [b.id for b in restored.tool_uses()] == ["t1", "t2"]
    assert restored.text() == "Let me check. "


def test_tool_results_accessor():
    message = Message(role="user", content=[
        ToolResultBlock(tool_use_id="t1", content="one"),
        ToolResultBlock(tool_use_id="t2", content="two"),
    ])

    assert [b.tool_use_id for b in message.tool_results()] == ["t1", "t2"]


def test_tool_use_input_defaults_to_empty_dict():
    assert block_from_dict({"type": "tool_use", "id": "x", "name": "n"}).input == {}


@pytest.mark.parametrize(
    "data",
    [
        {"role": "system", "content": "nope"},
        {"role": "user", "content": 42},
        {"role": "user", "content": [{"type": "image"}]},
        {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "t"}]},
        {"role": "assistant", "content": [{"type": "tool_use", "id": "t", "name": "n", "input": []}]},
        "not a dict",
    ],
)
def test_from_dict_rejects_malformed_input(data):
    with pytest.raises(ValueError):
        Message.from_dict(data)
