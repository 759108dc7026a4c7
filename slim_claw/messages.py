"""Provider-agnostic conversation model.

Messages use the Anthropic-native shape: a role plus either a plain string or
an ordered list of content blocks. Every adapter translates from this form.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Union

Role = Literal["user", "assistant"]


@dataclass
class TextBlock:
    """Plain text content."""

    text: str
    type: Literal["text"] = field(default="text", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass
class ToolUseBlock:
    """A tool invocation requested by the assistant."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = field(default="tool_use", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


@dataclass
class ToolResultBlock:
    """The string result of a tool invocation, referencing its tool_use id."""

    tool_use_id: str
    content: str
    type: Literal["tool_result"] = field(default="tool_result", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tool_result", "tool_use_id": self.tool_use_id, "content": self.content}


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


def block_from_dict(data: dict[str, Any]) -> ContentBlock:
    """Build a content block from its JSON form.

    Raises:
        ValueError: if the block type is unknown or required fields are missing
    """
    if not isinstance(data, dict):
        raise ValueError(f"Content block must be an object, got {type(data).__name__}")
    block_type = data.get("type")
    if block_type == "text":
        text = data.get("text")
        if not isinstance(text, str):
            raise ValueError("text block requires a string 'text'")
        return TextBlock(text=text)
    if block_type == "tool_use":
        block_id, name = data.get("id"), data.get("name")
        tool_input = data.get("input")
        if tool_input is None:
            tool_input = {}
        if not isinstance(block_id, str) or not isinstance(name, str):
            raise ValueError("tool_use block requires string 'id' and 'name'")
        if not isinstance(tool_input, dict):
            raise ValueError("tool_use block 'input' must be an object")
        return ToolUseBlock(id=block_id, name=name, input=tool_input)
    if block_type == "tool_result":
        ref, content = data.get("tool_use_id"), data.get("content")
        if not isinstance(ref, str) or not isinstance(content, str):
            raise ValueError("tool_result block requires string 'tool_use_id' and 'content'")
        return ToolResultBlock(tool_use_id=ref, content=content)
    raise ValueError(f"Unknown content block type: {block_type!r}")


@dataclass
class Message:
    """A message in the conversation transcript."""

    role: Role
    content: str | list[ContentBlock]

    @property
    def blocks(self) -> list[ContentBlock]:
        """Content as blocks; plain string content yields no blocks."""
        if isinstance(self.content, str):
            return []
        return self.content

    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.blocks if isinstance(b, ToolUseBlock)]

    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.blocks if isinstance(b, ToolResultBlock)]

    def text(self) -> str:
        """Concatenated text content."""
        if isinstance(self.content, str):
            return self.content
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON-serializable wire/storage shape."""
        if isinstance(self.content, str):
            content: Any = self.content
        else:
            content = [block.to_dict() for block in self.content]
        return {"role": self.role, "content": content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create from dictionary.

        Raises:
            ValueError: if the role or content is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Message must be an object, got {type(data).__name__}")
        role = data.get("role")
        if role not in ("user", "assistant"):
            raise ValueError(f"Invalid message role: {role!r}")
        content = data.get("content")
        if isinstance(content, str):
            return cls(role=role, content=content)
        if isinstance(content, list):
            return cls(role=role, content=[block_from_dict(item) for item in content])
        raise ValueError("Message content must be a string or a list of blocks")
