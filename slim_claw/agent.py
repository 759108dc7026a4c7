"""Agent turn loop for SlimClaw."""

import inspect
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

from slim_claw.config import get_config
from slim_claw.context import prepare_context
from slim_claw.exceptions import ToolNotFoundError
from slim_claw.llm import (
    LLMClient,
    MessageStop,
    StreamEvent,
    StreamRequest,
    TextDelta,
    ToolEnd,
    ToolStart,
    ToolUse,
    get_client,
)
from slim_claw.logging import get_logger
from slim_claw.messages import ContentBlock, Message, TextBlock, ToolResultBlock, ToolUseBlock
from slim_claw.session import Session, SessionManager, get_session_manager
from slim_claw.tools import Tool, ToolRegistry

log = get_logger(__name__)

BASE_IDENTITY = "You are SlimClaw, a personal AI assistant."

EventCallback = Callable[[StreamEvent], Awaitable[None] | None]


class MessageStore(Protocol):
    """Anything that can persist transcript appends."""

    async def append_message(self, session_id: str, message: Message) -> None: ...


@dataclass
class Skill:
    """A skill as seen by prompt assembly."""

    name: str
    description: str
    content: str
    always: bool = False


def build_system_prompt(
    skills: list[Skill] | None = None,
    memory_context: str = "",
    custom_prompt: str = "",
) -> str:
    """Assemble the system prompt.

    Always-on skills are inlined; the rest are only listed by name and
    description so the model can ask for them.
    """
    skills = skills or []
    parts = [BASE_IDENTITY]

    if custom_prompt:
        parts.append(custom_prompt)

    for skill in skills:
        if skill.always:
            parts.append(f"## Skill: {skill.name}\n{skill.content}")

    available = [skill for skill in skills if not skill.always]
    if available:
        parts.append(
            "## Available Skills\n"
            + "\n".join(f"- {skill.name}: {skill.description}" for skill in available)
        )

    if memory_context:
        parts.append(f"## Relevant Memories\n{memory_context}")

    return "\n\n".join(parts)


def _coerce_registry(tools: ToolRegistry | list[Tool] | None) -> ToolRegistry:
    if isinstance(tools, ToolRegistry):
        return tools
    return ToolRegistry(list(tools or []))


async def execute_tool(tools: ToolRegistry, name: str, tool_input: dict[str, Any]) -> str:
    """Run one tool call, turning every failure into result text."""
    log.info("Executing tool", tool=name)
    try:
        result = await tools.execute(name, tool_input)
    except ToolNotFoundError:
        log.warning("Unknown tool requested", tool=name)
        return f'Error: Unknown tool "{name}"'
    except Exception as e:
        log.error("Tool execution failed", tool=name, error=str(e))
        return f'Error executing tool "{name}": {e}'
    return result if isinstance(result, str) else str(result)


def _assistant_message(text: str, tool_uses: list[ToolUse]) -> Message:
    blocks: list[ContentBlock] = []
    if text:
        blocks.append(TextBlock(text=text))
    for tu in tool_uses:
        blocks.append(ToolUseBlock(id=tu.id, name=tu.name, input=tu.input))

    if not blocks:
        return Message(role="assistant", content="")
    if len(blocks) == 1 and isinstance(blocks[0], TextBlock):
        return Message(role="assistant", content=blocks[0].text)
    return Message(role="assistant", content=blocks)


async def agent_turn(
    session: Session,
    user_message: str,
    system_prompt: str,
    client: LLMClient,
    tools: ToolRegistry | list[Tool] | None = None,
    *,
    model: str,
    max_tokens: int = 4096,
    max_history_turns: int = 50,
    max_tool_result_chars: int = 100_000,
    store: MessageStore | None = None,
) -> AsyncIterator[StreamEvent]:
    """Run one user turn to completion, yielding outward events.

    Rounds repeat until the model answers without requesting tools. Text
    deltas are re-emitted as they arrive; each tool call produces a
    ToolStart/ToolEnd pair; a single MessageStop closes the turn.

    Raises:
        LLMAPIError: when an upstream call fails; the failed round appends
            nothing
    """
    registry = _coerce_registry(tools)
    tool_defs = registry.get_definitions()

    async def append(message: Message) -> None:
        session.add_message(message)
        if store is not None:
            await store.append_message(session.id, message)

    await append(Message(role="user", content=user_message))

    round_index = 0
    while True:
        round_index += 1
        context = prepare_context(session.messages, max_history_turns, max_tool_result_chars)
        log.debug(
            "Starting round",
            session_id=session.id,
            round=round_index,
            context_messages=len(context),
            transcript_messages=len(session.messages),
        )

        text_parts: list[str] = []
        tool_uses: list[ToolUse] = []
        stop_reason = "end_turn"

        async for event in client.stream(StreamRequest(
            model=model,
            system=system_prompt,
            messages=context,
            tools=tool_defs,
            max_tokens=max_tokens,
        )):
            if isinstance(event, TextDelta):
                text_parts.append(event.text)
                yield event
            elif isinstance(event, ToolUse):
                tool_uses.append(event)
            elif isinstance(event, MessageStop):
                stop_reason = event.stop_reason

        await append(_assistant_message("".join(text_parts), tool_uses))
        log.debug("Round finished", round=round_index, stop_reason=stop_reason, tool_calls=len(tool_uses))

        if not tool_uses:
            yield MessageStop(stop_reason=stop_reason)
            return

        results: list[ContentBlock] = []
        for tu in tool_uses:
            yield ToolStart(name=tu.name, input=tu.input)
            result = await execute_tool(registry, tu.name, tu.input)
            yield ToolEnd(name=tu.name, result=result)
            results.append(ToolResultBlock(tool_use_id=tu.id, content=result))

        await append(Message(role="user", content=results))


class Agent:
    """Binds a client, tool catalog and session store to configured limits."""

    def __init__(
        self,
        client: LLMClient | None = None,
        tools: ToolRegistry | list[Tool] | None = None,
        session_manager: SessionManager | None = None,
        system_prompt: str | None = None,
    ):
        """Initialize the agent.

        Args:
            client: Optional LLM client override (defaults to the global client)
            tools: Tool catalog offered to the model
            session_manager: Optional store override (defaults to the global manager)
            system_prompt: Prebuilt system prompt; built from config when omitted
        """
        cfg = get_config()
        self.client = client or get_client()
        self.tools = _coerce_registry(tools)
        self.session_manager = session_manager or get_session_manager()
        self.model = cfg.model.model
        self.max_tokens = cfg.model.max_tokens
        self.max_history_turns = cfg.agent.max_history_turns
        self.max_tool_result_chars = cfg.agent.max_tool_result_chars
        self.system_prompt = (
            system_prompt
            if system_prompt is not None
            else build_system_prompt(custom_prompt=cfg.agent.system_prompt)
        )

    def stream(self, session: Session, user_input: str) -> AsyncIterator[StreamEvent]:
        """Stream events for one user turn, persisting every append."""
        return agent_turn(
            session,
            user_input,
            self.system_prompt,
            self.client,
            self.tools,
            model=self.model,
            max_tokens=self.max_tokens,
            max_history_turns=self.max_history_turns,
            max_tool_result_chars=self.max_tool_result_chars,
            store=self.session_manager,
        )

    async def run(
        self,
        session: Session,
        user_input: str,
        on_event: EventCallback | None = None,
    ) -> str:
        """Run one turn, forwarding events to ``on_event``.

        Returns:
            Text produced across all rounds of the turn
        """
        text_parts: list[str] = []
        async for event in self.stream(session, user_input):
            if isinstance(event, TextDelta):
                text_parts.append(event.text)
            if on_event is not None:
                outcome = on_event(event)
                if inspect.isawaitable(outcome):
                    await outcome
        return "".join(text_parts)
