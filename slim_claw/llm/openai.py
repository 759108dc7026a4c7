"""OpenAI Chat Completions adapter - streaming over direct HTTP."""

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
from slim_claw.messages import Message, TextBlock, ToolResultBlock, ToolUseBlock

log = get_logger(__name__)


OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient(LLMClient):
    """Delta-accumulate adapter: flattens blocks into role-tagged turns."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = OPENAI_BASE_URL,
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            base_url: API base URL (including /v1)
            timeout: HTTP timeout in seconds
            http_client: Optional preconfigured httpx client (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )

    def _convert_messages(self, system: str, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert canonical messages to chat-completions turns."""
        result: list[dict[str, Any]] = [{"role": "system", "content": system}]

        for msg in messages:
            if isinstance(msg.content, str):
                result.append({"role": msg.role, "content": msg.content})
                continue

            if msg.role == "assistant":
                text = "".join(b.text for b in msg.content if isinstance(b, TextBlock))
                tool_calls = [
                    {
                        "id": b.id,
                        "type": "function",
                        "function": {"name": b.name, "arguments": json.dumps(b.input)},
                    }
                    for b in msg.content
                    if isinstance(b, ToolUseBlock)
                ]
                entry: dict[str, Any] = {"role": "assistant", "content": text or None}
                if tool_calls:
                    entry["tool_calls"] = tool_calls
                result.append(entry)
                continue

            # Tool results must directly follow the assistant tool_calls turn.
            for block in msg.content:
                if isinstance(block, ToolResultBlock):
                    result.append({
                        "role": "tool",
                        "tool_call_id": block.tool_use_id,
                        "content": block.content,
                    })
            text = "".join(b.text for b in msg.content if isinstance(b, TextBlock))
            if text:
                result.append({"role": "user", "content": text})

        return result

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description or "",
                    "parameters": tool.input_schema or {"type": "object"},
                },
            }
            for tool in tools
        ]

    def _build_payload(self, request: StreamRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": request.model,
            "messages": self._convert_messages(request.system, request.messages),
            "max_tokens": request.max_tokens,
            "stream": True,
        }
        if request.tools:
            body["tools"] = self._convert_tools(request.tools)
        return body

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def stream(self, request: StreamRequest) -> AsyncIterator[StreamEvent]:
        """Stream a completion as canonical events."""
        url = f"{self.base_url}/chat/completions"
        body = self._build_payload(request)

        # call index -> {"id", "name", "args"}
        tool_calls: dict[int, dict[str, str]] = {}
        raw_stop_reason: str | None = None

        log.debug("Calling OpenAI", model=request.model, msg_count=len(body["messages"]))
        try:
            async with self.client.stream("POST", url, json=body, headers=self._headers()) as response:
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    log.warning("OpenAI API error", status=response.status_code)
                    raise LLMAPIError(
                        f"OpenAI API error {response.status_code}: {error_text[:500]}",
                        status_code=response.status_code,
                    )

                async for data in iter_sse_data(response):
                    if data == "[DONE]":
                        break
                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        continue
                    if not isinstance(chunk, dict):
                        continue

                    if chunk.get("error"):
                        error = chunk["error"]
                        message = error.get("message", "") if isinstance(error, dict) else str(error)
                        raise LLMAPIError(f"OpenAI stream error: {message}")

                    choices = chunk.get("choices") or []
                    if not choices:
                        continue
                    choice = choices[0]
                    delta = choice.get("delta") or {}

                    if delta.get("content"):
                        yield TextDelta(text=delta["content"])

                    for tc in delta.get("tool_calls") or []:
                        index = tc.get("index", 0)
                        entry = tool_calls.setdefault(index, {"id": "", "name": "", "args": ""})
                        function = tc.get("function") or {}
                        if tc.get("id"):
                            entry["id"] = tc["id"]
                        if function.get("name"):
                            entry["name"] = function["name"]
                        if function.get("arguments"):
                            entry["args"] += function["arguments"]

                    if choice.get("finish_reason"):
                        raw_stop_reason = choice["finish_reason"]
        except httpx.HTTPError as e:
            log.warning("OpenAI HTTP error", error=str(e))
            raise LLMAPIError(f"OpenAI HTTP error: {e}") from e

        for index in sorted(tool_calls):
            entry = tool_calls[index]
            yield ToolUse(
                id=entry["id"],
                name=entry["name"],
                input=parse_tool_arguments(entry["args"]),
            )

        yield MessageStop(stop_reason=normalize_stop_reason(raw_stop_reason))

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
