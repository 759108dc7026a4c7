"""Custom exceptions for SlimClaw."""


class SlimClawError(Exception):
    """Base exception for SlimClaw."""

    pass


class ConfigurationError(SlimClawError):
    """Configuration-related errors."""

    pass


class LLMError(SlimClawError):
    """LLM-related errors."""

    pass


class LLMAPIError(LLMError):
    """Upstream API errors (network, auth, rate limit, in-stream error)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolError(SlimClawError):
    """Tool execution errors."""

    pass


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class SessionError(SlimClawError):
    """Session-related errors."""

    pass


class SessionNotFoundError(SessionError):
    """Session not found."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id
