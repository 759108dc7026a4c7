"""Tool catalog for SlimClaw."""

from slim_claw.tools.registry import FunctionTool, Tool, ToolExecutor, ToolRegistry

__all__ = [
    "FunctionTool",
    "Tool",
    "ToolExecutor",
    "ToolRegistry",
]
