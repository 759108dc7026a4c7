"""Canonical stream events and the provider adapter interface."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Literal, Union

from slim_claw.logging import get_logger
from slim_claw.messages import Message

log = get_logger(__name__)

StopReason = Literal["end_turn", "tool_use"]

_TOOL_USE_STOP_REASONS = {"tool_use", "tool_calls", "function_call"}


@dataclass
class TextDelta:
    """A fragment of streamed assistant text."""

    text: str
    type: Literal["text"] = field(default="text", init=False)


@dataclass
class ToolUse:
    """A fully reassembled tool call (adapter to loop only)."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = field(default="tool_use", init=False)


@dataclass
class ToolStart:
    """Emitted by the loop before a tool runs."""

    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_start"] = field(default="tool_start", init=False)


@dataclass
class ToolEnd:
    """Emitted by the loop after a tool finished (or failed)."""

    name: str
    result: str
    type: Literal["tool_end"] = field(default="tool_end", init=False)


@dataclass
class MessageStop:
    """Terminal event carrying the normalized stop reason."""

    stop_reason: StopReason
    type: Literal["message_stop"] = field(default="message_stop", init=False)


StreamEvent = Union[TextDelta, ToolUse, ToolStart, ToolEnd, MessageStop]


@dataclass
class ToolDefinition:
    """Definition of a tool for the LLM."""

    name: str
    description: str
    input_schema: dict[str, Any]  # JSON Schema


@dataclass
class StreamRequest:
    """Everything an adapter needs for one upstream call."""

    model: str
    system: str
    messages: list[Message]
    tools: list[ToolDefinition] = field(default_factory=list)
    max_tokens: int = 4096


def normalize_stop_reason(reason: str | None) -> StopReason:
    """Map any upstream stop/finish reason onto end_turn or tool_use."""
    if reason in _TOOL_USE_STOP_REASONS:
        return "tool_use"
    return "end_turn"


def parse_tool_arguments(raw: str) -> dict[str, Any]:
    """Best-effort parse of concatenated argument fragments.

    Malformed or non-object JSON resolves to an empty input.
    """
    if not raw or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        log.debug("Malformed tool arguments", error=str(e), length=len(raw))
        return {}
    if not isinstance(parsed, dict):
        return {}
    return parsed


class LLMClient(ABC):
    """Abstract base class for streaming provider adapters."""

    @abstractmethod
    def stream(self, request: StreamRequest) -> AsyncIterator[StreamEvent]:
        """Stream one model response.

        Yields TextDelta events as text arrives, then one ToolUse per tool call
        (after the upstream stream closes), then exactly one MessageStop.

        Raises:
            LLMAPIError: on network, HTTP or in-stream upstream errors
        """

    async def close(self) -> None:
        """Release transport resources."""
        return None
