"""Context preparation: history windowing, tool result truncation, cleanup.

``prepare_context`` runs before every upstream call. It is pure: the transcript
passed in is never modified, and messages that need changes are copied.
"""

import re
from dataclasses import replace

from slim_claw.messages import Message, ToolResultBlock, ToolUseBlock

CHARS_PER_TOKEN = 4
MAX_TOOL_RESULT_SHARE = 0.3
HARD_MAX_TOOL_RESULT_CHARS = 400_000
MIN_KEEP_CHARS = 2_000

_TRUNCATION_MARKER_RE = re.compile(r"\n\n\[Truncated: showing first (\d+) of (\d+) characters\]\Z")


def tool_result_cap_for_window(context_window_tokens: int) -> int:
    """Character cap for a single tool result given a model context window."""
    cap = int(context_window_tokens * MAX_TOOL_RESULT_SHARE * CHARS_PER_TOKEN)
    return min(cap, HARD_MAX_TOOL_RESULT_CHARS)


def _keep_chars(max_chars: int) -> int:
    return max(MIN_KEEP_CHARS, max_chars - 100)


def truncate_text(text: str, max_chars: int) -> str:
    """Truncate text to roughly ``max_chars``, preferring a newline boundary.

    At least ``MIN_KEEP_CHARS`` characters are always kept, even when
    ``max_chars`` is smaller. The result is shorter than the input whenever
    ``max_chars >= MIN_KEEP_CHARS + 100``; below that, a text only slightly
    longer than the floor comes back longer because of the marker.
    """
    keep_chars = _keep_chars(max_chars)
    if len(text) <= max(max_chars, keep_chars):
        return text

    search_floor = int(keep_chars * 0.8)
    last_newline = text.rfind("\n", 0, keep_chars + 1)
    cut_at = last_newline if last_newline > search_floor else keep_chars

    return (
        text[:cut_at]
        + f"\n\n[Truncated: showing first {cut_at} of {len(text)} characters]"
    )


def is_truncated(text: str, max_chars: int | None = None) -> bool:
    """Whether text is the output of an earlier ``truncate_text`` call.

    The marker must describe the text it ends: the prefix length equals the
    count it states, and that count is below the stated total. When
    ``max_chars`` is given, the prefix must also fit what truncating to
    ``max_chars`` would keep, so marker-shaped tool output cannot dodge a cap.
    """
    match = _TRUNCATION_MARKER_RE.search(text)
    if not match:
        return False
    shown, total = int(match.group(1)), int(match.group(2))
    if match.start() != shown or shown >= total:
        return False
    return max_chars is None or shown <= _keep_chars(max_chars)


def limit_history_turns(messages: list[Message], max_turns: int) -> list[Message]:
    """Keep only the ``max_turns`` most recent user turns.

    Scans backward counting user messages; the first user message past the
    limit and everything before it are dropped.
    """
    if max_turns <= 0:
        return list(messages)

    user_count = 0
    cut_index = 0
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].role == "user":
            user_count += 1
            if user_count > max_turns:
                cut_index = i + 1
                break

    return list(messages[cut_index:])


def truncate_tool_results(messages: list[Message], max_chars: int) -> list[Message]:
    """Shorten oversized tool_result content in user messages."""
    result: list[Message] = []
    for msg in messages:
        if msg.role != "user" or isinstance(msg.content, str):
            result.append(msg)
            continue

        changed = False
        blocks = []
        for block in msg.content:
            if (
                isinstance(block, ToolResultBlock)
                and len(block.content) > max_chars
                and not is_truncated(block.content, max_chars)
            ):
                block = replace(block, content=truncate_text(block.content, max_chars))
                changed = True
            blocks.append(block)

        result.append(replace(msg, content=blocks) if changed else msg)
    return result


def remove_orphaned_tool_results(messages: list[Message]) -> list[Message]:
    """Drop tool_result blocks whose tool_use is no longer in the context.

    A message left with no blocks is removed entirely.
    """
    tool_use_ids = {
        block.id
        for msg in messages
        if msg.role == "assistant"
        for block in msg.blocks
        if isinstance(block, ToolUseBlock)
    }

    result: list[Message] = []
    for msg in messages:
        if msg.role != "user" or isinstance(msg.content, str):
            result.append(msg)
            continue

        kept = [
            block
            for block in msg.content
            if not isinstance(block, ToolResultBlock) or block.tool_use_id in tool_use_ids
        ]
        if not kept:
            continue
        result.append(msg if len(kept) == len(msg.content) else replace(msg, content=kept))
    return result


def drop_empty_assistant_messages(messages: list[Message]) -> list[Message]:
    """Drop assistant messages with no content.

    Empty model responses stay in the transcript but are not sent upstream.
    """
    return [
        msg
        for msg in messages
        if msg.role != "assistant" or (msg.content != "" and msg.content != [])
    ]


def prepare_context(
    messages: list[Message],
    max_history_turns: int,
    max_tool_result_chars: int,
) -> list[Message]:
    """Build the bounded context sent upstream for one round.

    Args:
        messages: Full transcript (not modified)
        max_history_turns: Number of recent user turns to keep; <= 0 keeps all
        max_tool_result_chars: Per tool_result cap, clamped to the hard ceiling

    Returns:
        New list of messages safe to hand to a provider adapter
    """
    result = limit_history_turns(messages, max_history_turns)

    max_result_chars = min(max_tool_result_chars, HARD_MAX_TOOL_RESULT_CHARS)
    result = truncate_tool_results(result, max_result_chars)
    result = drop_empty_assistant_messages(result)

    # Windowing can strand tool results whose tool_use was cut away.
    return remove_orphaned_tool_results(result)
