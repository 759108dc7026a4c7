"""Configuration management for SlimClaw."""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Paths
DEFAULT_CONFIG_PATH = Path("~/.slimclaw/config.yaml").expanduser()
DEFAULT_DB_PATH = Path("~/.slimclaw/sessions.db").expanduser()
LOCAL_CONFIG_FILENAME = "config.yaml"

ProviderName = Literal["anthropic", "openai"]

_API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}
_OPENAI_MODEL_PREFIXES = ("gpt", "o1", "o3", "o4")


def detect_provider(model: str) -> ProviderName:
    """Infer the upstream provider from a model name."""
    name = (model or "").strip().lower()
    if name.startswith("claude"):
        return "anthropic"
    if name.startswith(_OPENAI_MODEL_PREFIXES):
        return "openai"
    return "anthropic"


class ModelConfig(BaseModel):
    """Model configuration."""

    provider: str = ""
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    base_url: str = ""
    max_tokens: int = 4096


class AgentConfig(BaseModel):
    """Agent loop and context limits."""

    system_prompt: str = ""
    max_history_turns: int = 50
    max_tool_result_chars: int = 100_000


class SessionConfig(BaseModel):
    """Session storage configuration."""

    path: str = str(DEFAULT_DB_PATH)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for SlimClaw."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="SLIMCLAW_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        """Load configuration; env vars are applied by pydantic-settings."""
        return cls.from_yaml(path)

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file."""
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def resolved_provider(self) -> str:
        """Explicit provider if set, otherwise inferred from the model name."""
        explicit = self.model.provider.strip().lower()
        if explicit:
            return explicit
        return detect_provider(self.model.model)

    def resolved_api_key(self) -> str | None:
        """Configured API key, falling back to the provider's env var."""
        if self.model.api_key:
            return self.model.api_key
        env_name = _API_KEY_ENV.get(self.resolved_provider())
        if not env_name:
            return None
        return os.environ.get(env_name) or None


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
