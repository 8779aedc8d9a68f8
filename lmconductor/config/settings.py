"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Completion backend configuration."""

    model: str = Field(
        default="openai/gpt-4o-mini",
        description="LiteLLM model string, e.g. 'openai/gpt-4o-mini', "
                    "'anthropic/claude-3-5-sonnet-20241022', 'ollama/llama3'. The provider "
                    "prefix tells LiteLLM which API to route the request to.",
    )
    api_key: str = Field(default="", description="API key for the model's provider")
    api_base: str | None = Field(
        default=None,
        description="Override the provider endpoint, e.g. 'http://localhost:1234/v1' "
                    "for a local OpenAI-compatible server.",
    )
    max_tokens: int | None = Field(default=None, description="Maximum tokens in response")
    temperature: float | None = Field(default=None, description="Sampling temperature")
    request_timeout: float | None = Field(
        default=None,
        description="Transport timeout in seconds for a single non-streaming request",
    )

    model_config = SettingsConfigDict(env_prefix="LLM_")


class TurnSettings(BaseSettings):
    """Turn handler configuration."""

    streaming: bool = Field(
        default=False, description="Deliver the first leg of each turn incrementally"
    )
    stream_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Wall-clock budget in seconds for a streaming turn",
    )

    model_config = SettingsConfigDict(env_prefix="TURN_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    # Sub-configurations
    llm: LLMSettings = Field(default_factory=LLMSettings)
    turn: TurnSettings = Field(default_factory=TurnSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
