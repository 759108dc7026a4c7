"""Tool registry and base tool class."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from slim_claw.exceptions import ToolNotFoundError
from slim_claw.llm.base import ToolDefinition
from slim_claw.logging import get_logger

log = get_logger(__name__)

ToolExecutor = Callable[[dict[str, Any]], Awaitable[str]]


class Tool(ABC):
    """Base class for all tools."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {}

    @abstractmethod
    async def execute(self, /, **kwargs: Any) -> str:
        """Execute the tool.

        Args:
            **kwargs: Tool-specific arguments

        Returns:
            Result text handed back to the model
        """
        pass

    def get_definition(self) -> ToolDefinition:
        """Get the tool definition for the LLM."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.parameters or {"type": "object", "properties": {}},
        )


class FunctionTool(Tool):
    """Adapt a plain async callable taking the input dict into a Tool."""

    def __init__(
        self,
        name: str,
        description: str,
        executor: ToolExecutor,
        parameters: dict[str, Any] | None = None,
    ):
        self.name = name
        self.description = description
        self.parameters = parameters or {"type": "object", "properties": {}}
        self._executor = executor

    async def execute(self, /, **kwargs: Any) -> str:
        return await self._executor(kwargs)


class ToolRegistry:
    """Ordered catalog of tools available to one loop invocation."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool.

        A tool with an existing name replaces the earlier one in place.

        Args:
            tool: Tool instance to register
        """
        if not tool.name:
            raise ValueError("Tool must have a name")

        log.debug("Registering tool", tool=tool.name)
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        """Unregister a tool.

        Args:
            name: Tool name to unregister
        """
        self._tools.pop(name, None)

    def has_tool(self, name: str) -> bool:
        """Return whether a tool name is currently registered."""
        return name in self._tools

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            ToolNotFoundError if not found
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def list_tools(self) -> list[str]:
        """List registered tool names in registration order."""
        return list(self._tools)

    def get_definitions(self) -> list[ToolDefinition]:
        """Get all tool definitions for the LLM, in registration order."""
        return [tool.get_definition() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool by name.

        Raises:
            ToolNotFoundError if tool not found
            Exception raised by the tool itself, unchanged
        """
        tool = self.get(name)
        return await tool.execute(**arguments)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
