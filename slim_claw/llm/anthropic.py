"""Anthropic Messages API adapter - streaming over direct HTTP."""

import json
from typing import Any, AsyncIterator

import httpx

from slim_claw.exceptions import LLMAPIError
from slim_claw.llm.base import (
    LLMClient,
    MessageStop,
    StreamEvent,
    StreamRequest,
    TextDelta,
    ToolDefinition,
    ToolUse,
    normalize_stop_reason,
    parse_tool_arguments,
)
from slim_claw.llm.sse import iter_sse_data
from slim_claw.logging import get_logger
from slim_claw.messages import Message

log = get_logger(__name__)


ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicClient(LLMClient):
    """Block-native adapter: messages pass through almost verbatim."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = ANTHROPIC_BASE_URL,
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
            base_url: API base URL (without /v1)
            timeout: HTTP timeout in seconds
            http_client: Optional preconfigured httpx client (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        return [msg.to_dict() for msg in messages]

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description or "",
                "input_schema": tool.input_schema or {"type": "object"},
            }
            for tool in tools
        ]

    def _build_payload(self, request: StreamRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": request.model,
            "system": request.system,
            "messages": self._convert_messages(request.messages),
            "max_tokens": request.max_tokens,
            "stream": True,
        }
        if request.tools:
            body["tools"] = self._convert_tools(request.tools)
        return body

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def stream(self, request: StreamRequest) -> AsyncIterator[StreamEvent]:
        """Stream a completion as canonical events."""
        url = f"{self.base_url}/v1/messages"
        body = self._build_payload(request)

        # content block index -> {"id", "name", "input", "parts"}
        tool_blocks: dict[int, dict[str, Any]] = {}
        raw_stop_reason: str | None = None

        log.debug("Calling Anthropic", model=request.model, msg_count=len(body["messages"]))
        try:
            async with self.client.stream("POST", url, json=body, headers=self._headers()) as response:
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    log.warning("Anthropic API error", status=response.status_code)
                    raise LLMAPIError(
                        f"Anthropic API error {response.status_code}: {error_text[:500]}",
                        status_code=response.status_code,
                    )

                async for data in iter_sse_data(response):
                    try:
                        event = json.loads(data)
                    except json.JSONDecodeError:
                        continue
                    if not isinstance(event, dict):
                        continue
                    event_type = event.get("type")

                    if event_type == "error":
                        error = event.get("error") or {}
                        raise LLMAPIError(
                            f"Anthropic stream error {error.get('type', 'unknown')}: "
                            f"{error.get('message', '')}"
                        )

                    if event_type == "content_block_start":
                        block = event.get("content_block") or {}
                        if block.get("type") == "tool_use":
                            tool_blocks[event.get("index", 0)] = {
                                "id": block.get("id", ""),
                                "name": block.get("name", ""),
                                "input": block.get("input") or {},
                                "parts": [],
                            }
                    elif event_type == "content_block_delta":
                        delta = event.get("delta") or {}
                        if delta.get("type") == "text_delta":
                            text = delta.get("text", "")
                            if text:
                                yield TextDelta(text=text)
                        elif delta.get("type") == "input_json_delta":
                            entry = tool_blocks.get(event.get("index", 0))
                            if entry is not None:
                                entry["parts"].append(delta.get("partial_json", ""))
                    elif event_type == "message_delta":
                        reason = (event.get("delta") or {}).get("stop_reason")
                        if reason:
                            raw_stop_reason = reason
                    elif event_type == "message_stop":
                        break
        except httpx.HTTPError as e:
            log.warning("Anthropic HTTP error", error=str(e))
            raise LLMAPIError(f"Anthropic HTTP error: {e}") from e

        for index in sorted(tool_blocks):
            entry = tool_blocks[index]
            if entry["parts"]:
                tool_input = parse_tool_arguments("".join(entry["parts"]))
            else:
                tool_input = entry["input"] if isinstance(entry["input"], dict) else {}
            yield ToolUse(id=entry["id"], name=entry["name"], input=tool_input)

        yield MessageStop(stop_reason=normalize_stop_reason(raw_stop_reason))

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
