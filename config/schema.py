"""Core configuration schema for buildloop using Pydantic.

This module defines the complete configuration structure with:
- Nested config groups (API, Loop, Stream, History)
- Virtual model mapping (builder:fast / builder:smart)
- Field validators for base URLs, strategies and snapshot sinks
"""

from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# Default model used across the codebase
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

VIRTUAL_MODEL_PREFIX = "builder:"

# Env vars checked (in order) when no api_key is configured
API_KEY_ENV_VARS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "OPENROUTER_API_KEY")

# ============================================================================
# API Configuration
# ============================================================================


class ModelSpec(BaseModel):
    """Virtual model specification for builder:* model names."""

    model: str = Field(..., description="Actual model name to use")
    provider: str | None = Field(None, description="Model provider (openai/anthropic/etc)")
    temperature: float | None = Field(None, ge=0.0, le=2.0, description="Temperature override")
    max_tokens: int | None = Field(None, gt=0, description="Max tokens override")


class APIConfig(BaseModel):
    """API configuration for the model collaborator."""

    model: str = Field(DEFAULT_MODEL, description="Default model name")
    model_provider: str | None = Field(None, description="Explicit provider (openai/anthropic/etc)")
    api_key: str | None = Field(None, description="API key (falls back to env vars)")
    base_url: str | None = Field(None, description="Base URL for API (falls back to env vars)")
    temperature: float | None = Field(None, ge=0.0, le=2.0, description="Temperature for multi-turn runs")
    max_tokens: int | None = Field(None, gt=0, description="Max tokens")
    model_kwargs: dict[str, Any] = Field(default_factory=dict, description="Extra kwargs for init_chat_model")

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str | None) -> str | None:
        """Ensure base_url ends with /v1 for OpenAI-compatible APIs."""
        if not v:
            return v
        v = v.rstrip("/")
        if v.endswith("/v1") or "/v1/" in v:
            return v
        return f"{v}/v1"


# ============================================================================
# Loop Configuration
# ============================================================================


class LoopConfig(BaseModel):
    """Turn loop configuration (strategy caps and sampling)."""

    default_strategy: Literal["single_shot", "multi_turn"] = Field(
        "single_shot", description="Strategy used when a run does not name one"
    )
    single_shot_max_turns: int = Field(15, gt=0, description="Turn cap for the forced-tool strategy")
    multi_turn_max_turns: int = Field(10, gt=0, description="Turn cap for the free-form strategy")
    single_shot_temperature: float = Field(0.7, ge=0.0, le=2.0, description="Sampling temperature for single-shot")
    fallback_enabled: bool = Field(True, description="Fall back to multi-turn when single-shot writes nothing")


# ============================================================================
# Stream Configuration
# ============================================================================


class StreamConfig(BaseModel):
    """Event stream configuration."""

    queue_size: int = Field(256, gt=0, description="Max undelivered events before the producer waits")
    heartbeat_seconds: float = Field(30.0, gt=0, description="Keepalive interval for idle SSE streams")
    retry_ms: int = Field(5000, gt=0, description="SSE reconnect hint sent to clients")


# ============================================================================
# History Configuration
# ============================================================================


class HistoryConfig(BaseModel):
    """Version history configuration."""

    max_snapshots: int = Field(50, gt=0, description="Snapshots kept per project before the oldest is evicted")
    sink: Literal["memory", "sqlite"] = Field("memory", description="Where snapshots are persisted")
    db_path: str | None = Field(None, description="SQLite path when sink=sqlite")

    @model_validator(mode="after")
    def validate_sink(self) -> HistoryConfig:
        if self.sink == "sqlite" and not self.db_path:
            raise ValueError("history.db_path is required when history.sink is 'sqlite'")
        return self


# ============================================================================
# Main Settings
# ============================================================================


class BuilderSettings(BaseModel):
    """Main buildloop configuration.

    Configuration priority (highest to lowest):
    1. CLI overrides
    2. Project config (.buildloop/config.json)
    3. User config (~/.buildloop/config.json)
    4. System defaults (config/defaults/builder.json)
    5. Environment variables (for API keys)

    The API key is not required at load time; it is only needed once a
    LangChain collaborator is built (see require_api_key).
    """

    api: APIConfig = Field(default_factory=APIConfig, description="API configuration")
    loop: LoopConfig = Field(default_factory=LoopConfig, description="Turn loop configuration")
    stream: StreamConfig = Field(default_factory=StreamConfig, description="Event stream configuration")
    history: HistoryConfig = Field(default_factory=HistoryConfig, description="Version history configuration")

    # Virtual model mapping
    model_mapping: dict[str, ModelSpec] = Field(
        default_factory=lambda: {
            "builder:fast": ModelSpec(model="claude-haiku-4-5-20251001", provider="anthropic"),
            "builder:smart": ModelSpec(model=DEFAULT_MODEL, provider="anthropic"),
        },
        description="Virtual model name mapping",
    )

    system_prompt: str | None = Field(None, description="Extra instructions appended to the built-in prompt")

    @model_validator(mode="after")
    def fill_from_env(self) -> BuilderSettings:
        """Fill api_key / base_url from environment variables when unset."""
        if self.api.api_key is None:
            for name in API_KEY_ENV_VARS:
                if os.getenv(name):
                    self.api.api_key = os.getenv(name)
                    break

        if self.api.base_url is None:
            base_url = os.getenv("OPENAI_BASE_URL") or os.getenv("ANTHROPIC_BASE_URL")
            if base_url:
                self.api.base_url = base_url

        return self

    def require_api_key(self) -> str:
        if not self.api.api_key:
            raise ValueError(
                "No API key found. Set api.api_key in config, or one of: " + ", ".join(API_KEY_ENV_VARS)
            )
        return self.api.api_key

    def max_turns_for(self, strategy: str) -> int:
        if strategy == "single_shot":
            return self.loop.single_shot_max_turns
        return self.loop.multi_turn_max_turns

    def resolve_model(self, model_name: str) -> tuple[str, dict[str, Any]]:
        """Resolve virtual model name to actual model and config.

        Args:
            model_name: Model name (can be builder:* virtual name)

        Returns:
            Tuple of (actual_model_name, model_kwargs)

        Raises:
            ValueError: If virtual model name not found in mapping
        """
        if not model_name.startswith(VIRTUAL_MODEL_PREFIX):
            return model_name, {}

        if model_name not in self.model_mapping:
            raise ValueError(f"Unknown virtual model: {model_name}. Available: {', '.join(self.model_mapping.keys())}")

        spec = self.model_mapping[model_name]
        kwargs = {}
        if spec.provider:
            kwargs["model_provider"] = spec.provider
        if spec.temperature is not None:
            kwargs["temperature"] = spec.temperature
        if spec.max_tokens is not None:
            kwargs["max_tokens"] = spec.max_tokens

        return spec.model, kwargs
