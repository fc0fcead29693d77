"""voidex configuration schema — YAML + Pydantic + env override."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

OPENROUTER_API_BASE = "https://openrouter.ai/api/v1"


# ════════════════════════════════════════════════════════════
# SUB-CONFIGS (nested BaseModel)
# ════════════════════════════════════════════════════════════


class ProviderConfig(BaseModel):
    """Single LLM provider."""

    api_key: str = ""
    api_base: str | None = None


class ProvidersConfig(BaseModel):
    """LLM providers (LiteLLM multi-provider, OpenRouter first)."""

    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)


class AssistantConfig(BaseModel):
    """Agent loop settings (assistant.*)."""

    name: str = "VoidEx"
    model: str = "openrouter/google/gemini-2.0-flash-exp:free"
    max_steps: int = 50
    recursion_limit: int = 10_000
    system_prompt: str | None = None
    memory_path: str = "~/.voidex/memory.md"
    stream_flush_interval: float = 0.15


class RetryConfig(BaseModel):
    """Backoff for transient model-transport failures."""

    retries: int = 3
    initial_delay: float = 2.0


# Tools
class ShellToolConfig(BaseModel):
    timeout: int = 300


class WebToolConfig(BaseModel):
    fetch_timeout: int = 15


class ToolsConfig(BaseModel):
    shell: ShellToolConfig = Field(default_factory=ShellToolConfig)
    web: WebToolConfig = Field(default_factory=WebToolConfig)


# ════════════════════════════════════════════════════════════
# ROOT CONFIG (BaseSettings — env + .env support)
# ════════════════════════════════════════════════════════════


class Config(BaseSettings):
    """
    Root configuration.

    Priority: env vars > .env > YAML (init kwargs) > defaults

    Env override examples:
        VOIDEX_ASSISTANT__MODEL=openrouter/anthropic/claude-3.5-sonnet
        VOIDEX_ASSISTANT__MAX_STEPS=100
        VOIDEX_PROVIDERS__OPENROUTER__API_KEY=sk-or-...
    """

    model_config = SettingsConfigDict(
        env_prefix="VOIDEX_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)

    # ── Computed properties ─────────────────────────────────

    @property
    def memory_path(self) -> Path:
        return Path(self.assistant.memory_path).expanduser()

    # ── Provider helpers ────────────────────────────────────

    def get_api_key(self, model: str | None = None) -> str | None:
        """Get API key for model name. Falls back to OPENROUTER_API_KEY."""
        model_name = (model or self.assistant.model).lower()

        keyword_map: dict[str, ProviderConfig] = {
            "openrouter": self.providers.openrouter,
            "anthropic": self.providers.anthropic,
            "claude": self.providers.anthropic,
            "openai": self.providers.openai,
            "gpt": self.providers.openai,
        }
        for keyword, provider in keyword_map.items():
            if keyword in model_name and provider.api_key:
                return provider.api_key

        if "openrouter" in model_name:
            return os.environ.get("OPENROUTER_API_KEY") or None
        return None

    def get_api_base(self, model: str | None = None) -> str | None:
        """Get API base URL for model name."""
        model_name = (model or self.assistant.model).lower()
        if "openrouter" in model_name:
            return self.providers.openrouter.api_base or OPENROUTER_API_BASE
        for name in ProvidersConfig.model_fields:
            p = getattr(self.providers, name)
            if isinstance(p, ProviderConfig) and name in model_name and p.api_base:
                return p.api_base
        return None
