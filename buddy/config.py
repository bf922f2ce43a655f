"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from buddy.utils.platform import get_config_dir, get_data_dir


class LLMConfig(BaseModel):
    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    max_tokens: int = 1024
    tool_max_tokens: int = 2048
    temperature: float = 0.7
    max_context_tokens: int = 8_000


class EvolutionConfig(BaseModel):
    """Evolution API (WhatsApp HTTP gateway) connection."""
    base_url: str = "http://localhost:8080"
    instance: str = ""
    api_key: str = ""
    bot_jid: str = ""
    timeout: float = 30.0


class WebhookConfig(BaseModel):
    enabled: bool = True
    bind: str = "127.0.0.1"
    port: int = 8088
    path: str = "/webhook/evolution"
    secret: str = ""


class WhitelistConfig(BaseModel):
    # "all" (or empty) disables the whitelist; otherwise numbers and group ids.
    # Env values arrive as comma-separated text, not JSON.
    allowed: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["all"])

    @field_validator("allowed", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class RateLimitConfig(BaseModel):
    window_seconds: float = 60.0
    max_messages: int = 20


class GroupConfig(BaseModel):
    min_message_length: int = 5
    default_response_rate: int = Field(default=30, ge=0, le=100)


class ModerationConfig(BaseModel):
    spam_window_seconds: float = 60.0
    spam_threshold: int = 10
    max_warnings: int = 3


class ChunkerConfig(BaseModel):
    limit: int = 1500
    min_chunk_size: int = 200
    delay: float = 0.4


class ToolLoopConfig(BaseModel):
    max_iterations: int = 5
    history_limit: int = 20


class FeatureFlags(BaseModel):
    """Feature switches. Everything optional starts disabled."""
    tool_use: bool = False
    message_chunking: bool = True
    url_summarization: bool = False
    web_search: bool = False
    reminder_system: bool = False
    sticker_creation: bool = False
    poll_creator: bool = False
    semantic_memory: bool = False
    conversation_summaries: bool = False
    video_analysis: bool = False
    code_execution: bool = False
    calendar_integration: bool = False
    group_admin_controls: bool = False
    group_knowledge_base: bool = False

    def is_enabled(self, flag: str) -> bool:
        if flag not in type(self).model_fields:
            raise KeyError(f"Unknown feature flag: {flag}")
        return bool(getattr(self, flag))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BUDDY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    bot_name: str = "Buddy"
    llm: LLMConfig = Field(default_factory=LLMConfig)
    evolution: EvolutionConfig = Field(default_factory=EvolutionConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    whitelist: WhitelistConfig = Field(default_factory=WhitelistConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    group: GroupConfig = Field(default_factory=GroupConfig)
    moderation: ModerationConfig = Field(default_factory=ModerationConfig)
    chunker: ChunkerConfig = Field(default_factory=ChunkerConfig)
    tool_loop: ToolLoopConfig = Field(default_factory=ToolLoopConfig)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    data_dir: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    def get_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir)
        return get_data_dir()


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config."""
    yaml_data: dict[str, Any] = {}

    if config_path is None:
        config_path = os.environ.get("BUDDY_CONFIG")
    if config_path is None:
        default = get_config_dir() / "config.yaml"
        if default.exists():
            config_path = default

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

    # YAML values are passed as init kwargs, env vars fill the rest
    return Settings(**yaml_data)
