"""LLM provider adapters and the canonical stream event model."""

from slim_claw.exceptions import ConfigurationError
from slim_claw.llm.anthropic import ANTHROPIC_BASE_URL, AnthropicClient
from slim_claw.llm.base import (
    LLMClient,
    MessageStop,
    StopReason,
    StreamEvent,
    StreamRequest,
    TextDelta,
    ToolDefinition,
    ToolEnd,
    ToolStart,
    ToolUse,
    normalize_stop_reason,
    parse_tool_arguments,
)
from slim_claw.llm.openai import OPENAI_BASE_URL, OpenAIClient

__all__ = [
    "AnthropicClient",
    "LLMClient",
    "MessageStop",
    "OpenAIClient",
    "StopReason",
    "StreamEvent",
    "StreamRequest",
    "TextDelta",
    "ToolDefinition",
    "ToolEnd",
    "ToolStart",
    "ToolUse",
    "create_client",
    "get_client",
    "normalize_stop_reason",
    "parse_tool_arguments",
    "set_client",
]


def create_client(
    provider: str = "anthropic",
    api_key: str | None = None,
    base_url: str | None = None,
    timeout: float = 120.0,
) -> LLMClient:
    """Create a streaming LLM client.

    Args:
        provider: Provider name (anthropic, openai)
        api_key: Optional API key
        base_url: Optional base URL override
        timeout: HTTP timeout in seconds

    Returns:
        Configured LLMClient instance

    Raises:
        ConfigurationError: if the provider is not supported
    """
    name = (provider or "").strip().lower()
    if name == "anthropic":
        return AnthropicClient(
            api_key=api_key,
            base_url=base_url or ANTHROPIC_BASE_URL,
            timeout=timeout,
        )
    if name == "openai":
        return OpenAIClient(
            api_key=api_key,
            base_url=base_url or OPENAI_BASE_URL,
            timeout=timeout,
        )
    raise ConfigurationError(f"Provider '{provider}' not supported. Use 'anthropic' or 'openai'.")


# Global client instance
_client: LLMClient | None = None


def get_client() -> LLMClient:
    """Get the global LLM client instance."""
    global _client
    if _client is None:
        from slim_claw.config import get_config
        cfg = get_config()
        _client = create_client(
            provider=cfg.resolved_provider(),
            api_key=cfg.resolved_api_key(),
            base_url=cfg.model.base_url or None,
        )
    return _client


def set_client(client: LLMClient | None) -> None:
    """Set the global LLM client instance."""
    global _client
    _client = client
