"""SlimClaw - a streaming, tool-using agent turn engine."""

__version__ = "0.1.0"
