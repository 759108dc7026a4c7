import pytest

from slim_claw.context import (
    CHARS_PER_TOKEN,
    HARD_MAX_TOOL_RESULT_CHARS,
    MAX_TOOL_RESULT_SHARE,
    MIN_KEEP_CHARS,
    is_truncated,
    prepare_context,
    tool_result_cap_for_window,
    truncate_text,
)
from slim_claw.messages import Message, TextBlock, ToolResultBlock, ToolUseBlock


def _user(text: str) -> Message:
    return Message(role="user", content=text)


def _assistant(text: str) -> Message:
    return Message(role="assistant", content=text)


def _tool_round(call_id: str, result: str) -> list[Message]:
    return [
        Message(role="assistant", content=[ToolUseBlock(id=call_id, name="echo", input={"x": 1})]),
        Message(role="user", content=[ToolResultBlock(tool_use_id=call_id, content=result)]),
    ]


def test_constants():
    assert CHARS_PER_TOKEN == 4
    assert MAX_TOOL_RESULT_SHARE == 0.3
    assert HARD_MAX_TOOL_RESULT_CHARS == 400_000
    assert MIN_KEEP_CHARS == 2_000


def test_tool_result_cap_for_window_is_clamped():
    assert tool_result_cap_for_window(100_000) == 120_000
    assert tool_result_cap_for_window(10_000_000) == HARD_MAX_TOOL_RESULT_CHARS


def test_truncate_text_returns_short_text_unchanged():
    assert truncate_text("short text", 100) == "short text"


def test_truncate_text_appends_marker():
    result = truncate_text("a" * 5000, 1000)

    assert len(result) < 5000
    assert "[Truncated: showing first" in result
    assert result.endswith("of 5000 characters]")


def test_truncate_text_keeps_minimum_even_for_tiny_caps():
    result = truncate_text("a" * 5000, 50)

    assert "showing first 2000 of 5000" in result
    assert result.startswith("a" * 2000)


def test_truncate_text_leaves_text_under_floor_alone_for_tiny_caps():
    text = "a" * 1_500

    assert truncate_text(text, 50) == text
    assert prepare_context([_user("go"), *_tool_round("t1", text)], 0, 50)[2].content[0].content == text


def test_truncate_text_prefers_newline_near_cutpoint():
    text = ("x" * 99 + "\n") * 40  # 4000 chars, newline every 100
    result = truncate_text(text, 3000)

    # keep = 2900; the last newline at or before 2900 is at index 2899
    assert "showing first 2899 of 4000" in result


def test_truncate_text_ignores_newline_too_far_back():
    text = "\n" + "y" * 4999
    result = truncate_text(text, 3000)

    assert "showing first 2900 of 5000" in result


def test_truncate_text_length_bounds_for_caps_above_floor():
    text = "z" * 50_000
    for cap in (2_000, 2_050, 5_000, 10_000, 49_999):
        result = truncate_text(text, cap)
        assert MIN_KEEP_CHARS <= len(result) <= len(text)


@pytest.mark.parametrize("cap", [MIN_KEEP_CHARS + 100, 5_000, 100_000, HARD_MAX_TOOL_RESULT_CHARS])
@pytest.mark.parametrize("newline_every", [None, 80, 1_000])
def test_truncate_text_shrinks_text_just_over_cap(cap, newline_every):
    if newline_every is None:
        text = "n" * (cap + 1)
    else:
        line = "n" * (newline_every - 1) + "\n"
        text = (line * (cap // newline_every + 2))[: cap + 1]

    result = truncate_text(text, cap)

    assert len(result) < len(text)
    assert len(result) >= MIN_KEEP_CHARS
    assert is_truncated(result, cap)


def test_truncate_text_near_floor_can_grow_by_marker_length():
    text = "f" * (MIN_KEEP_CHARS + 1)

    result = truncate_text(text, MIN_KEEP_CHARS)

    assert result == "f" * MIN_KEEP_CHARS + "\n\n[Truncated: showing first 2000 of 2001 characters]"
    assert len(result) > len(text)


def test_history_window_scenario():
    messages = [
        _user("Turn1"),
        _assistant("Resp1"),
        _user("Turn2"),
        _assistant("Resp2"),
        _user("Turn3"),
    ]

    result = prepare_context(messages, max_history_turns=2, max_tool_result_chars=100_000)

    assert result == [
        _assistant("Resp1"),
        _user("Turn2"),
        _assistant("Resp2"),
        _user("Turn3"),
    ]


def test_history_window_keeps_everything_under_limit():
    messages = [_user("Hello"), _assistant("Hi"), _user("How are you?"), _assistant("Good")]

    assert prepare_context(messages, 10, 100_000) == messages


def test_non_positive_window_disables_limiting():
    messages = [_user(f"u{i}") for i in range(5)]

    assert prepare_context(messages, 0, 100_000) == messages
    assert prepare_context(messages, -3, 100_000) == messages


def test_history_window_law():
    messages: list[Message] = []
    for i in range(8):
        messages.append(_user(f"u{i}"))
        messages.append(_assistant(f"a{i}"))

    result = prepare_context(messages, 3, 100_000)

    user_texts = [m.content for m in result if m.role == "user"]
    assert user_texts == ["u5", "u6", "u7"]


def test_large_tool_result_is_truncated_with_marker():
    messages = [_user("run it"), *_tool_round("t1", "x" * 200_000)]

    result = prepare_context(messages, 50, 10_000)

    content = result[2].content[0].content
    assert len(content) < 200_000
    assert "of 200000 characters]" in content


def test_hard_ceiling_wins_over_configured_cap():
    messages = [_user("run it"), *_tool_round("t1", "x" * 500_000)]

    result = prepare_context(messages, 50, 10_000_000)

    content = result[2].content[0].content
    assert content.startswith("x" * (HARD_MAX_TOOL_RESULT_CHARS - 100))
    assert "showing first 399900 of 500000" in content


def test_prepare_context_does_not_mutate_input():
    original = "x" * 50_000
    messages = [_user("run it"), *_tool_round("t1", original)]

    prepare_context(messages, 50, 5_000)

    assert messages[2].content[0].content == original


def test_orphaned_result_is_removed_with_its_message():
    messages = [
        _user("hi"),
        Message(role="user", content=[ToolResultBlock(tool_use_id="ghost", content="boo")]),
        _assistant("ok"),
    ]

    result = prepare_context(messages, 50, 100_000)

    assert result == [_user("hi"), _assistant("ok")]


def test_orphan_removal_keeps_other_blocks():
    messages = [
        _user("hi"),
        *_tool_round("t1", "kept"),
        Message(
            role="user",
            content=[
                ToolResultBlock(tool_use_id="ghost", content="dropped"),
                TextBlock(text="note"),
            ],
        ),
    ]

    result = prepare_context(messages, 50, 100_000)

    assert result[-1].content == [TextBlock(text="note")]
    assert result[2].content == [ToolResultBlock(tool_use_id="t1", content="kept")]


def test_windowing_orphans_are_cleaned():
    # The window cuts between the tool_use carrier and its result.
    messages = [
        _user("first"),
        Message(role="assistant", content=[ToolUseBlock(id="t1", name="echo")]),
        _user("interjection"),
        Message(role="user", content=[ToolResultBlock(tool_use_id="t1", content="r1")]),
        _assistant("done"),
    ]

    assert prepare_context(messages, 2, 100_000) == messages[1:]
    assert prepare_context(messages, 1, 100_000) == [_assistant("done")]


def test_every_result_references_a_tool_use():
    messages: list[Message] = [_user("start")]
    for i in range(6):
        messages.extend(_tool_round(f"t{i}", "r" * (i * 1000)))
        messages.append(_user(f"next {i}"))

    for limit in range(0, 10):
        result = prepare_context(messages, limit, 2_500)
        ids = {b.id for m in result if m.role == "assistant" for b in m.tool_uses()}
        refs = [b.tool_use_id for m in result for b in m.tool_results()]
        assert all(ref in ids for ref in refs)
        assert all(m.content != [] for m in result)


def test_prepare_context_is_idempotent():
    messages: list[Message] = [_user("start")]
    for i in range(5):
        messages.extend(_tool_round(f"t{i}", ("line\n" * 1000) + "y" * 3000))
        messages.append(_user(f"next {i}"))
        messages.append(_assistant(f"ack {i}"))

    for limit in (0, 1, 2, 4, 20):
        for cap in (50, 2_000, 2_050, 4_000, 100_000):
            once = prepare_context(messages, limit, cap)
            assert prepare_context(once, limit, cap) == once


def test_is_truncated_detects_marker():
    assert is_truncated(truncate_text("q" * 10_000, 3_000))
    assert not is_truncated("q" * 10)


def test_is_truncated_rejects_marker_that_does_not_describe_its_text():
    assert not is_truncated("x" * 500 + "\n\n[Truncated: showing first 1 of 2 characters]")
    assert not is_truncated("x" * 10 + "\n\n[Truncated: showing first 10 of 10 characters]")


def test_is_truncated_respects_smaller_cap():
    earlier = truncate_text("q" * 200_000, 100_000)

    assert is_truncated(earlier, 100_000)
    assert not is_truncated(earlier, 10_000)


def test_marker_shaped_tool_output_is_still_capped_by_hard_ceiling():
    forged = "x" * 500_000 + "\n\n[Truncated: showing first 1 of 2 characters]"
    messages = [_user("cat the log"), *_tool_round("t1", forged)]

    result = prepare_context(messages, 0, 10_000)
    content = result[2].content[0].content
    assert len(content) < 10_000
    assert content.endswith(f"of {len(forged)} characters]")

    uncapped = prepare_context(messages, 0, 10_000_000)
    assert len(uncapped[2].content[0].content) <= HARD_MAX_TOOL_RESULT_CHARS


def test_result_truncated_under_larger_cap_is_cut_again_under_smaller_cap():
    messages = [_user("go"), *_tool_round("t1", "w" * 300_000)]

    wide = prepare_context(messages, 0, 200_000)
    narrow = prepare_context(wide, 0, 5_000)

    assert len(narrow[2].content[0].content) < 5_000


def test_empty_assistant_messages_are_not_replayed():
    messages = [
        _user("hi"),
        _assistant(""),
        _user("still there?"),
        Message(role="assistant", content=[]),
        _user("hello?"),
    ]

    result = prepare_context(messages, 0, 100_000)

    assert result == [_user("hi"), _user("still there?"), _user("hello?")]
    assert len(messages) == 5
