"""Field-Sales AI Orchestrator — Application Configuration."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fieldsales_ai.domain.enums import Provider


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class StorageBackend(str, enum.Enum):
    MEMORY = "memory"
    REDIS = "redis"


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "fieldsales-ai"
    app_env: Environment = Environment.DEVELOPMENT
    app_debug: bool = False
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    log_json: bool | None = None  # None: JSON in production, console otherwise
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Storage ──────────────────────────────────────────────
    storage_backend: StorageBackend = StorageBackend.MEMORY
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 20

    # ── Vendors ──────────────────────────────────────────────
    gemini_api_key: str = ""
    groq_api_key: str = ""
    together_api_key: str = ""
    huggingface_api_key: str = ""

    gemini_model: str = "gemini-2.0-flash-exp"
    groq_model: str = "llama-3.3-70b-versatile"
    together_model: str = "meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo"
    huggingface_model: str = "meta-llama/Llama-3.2-3B-Instruct"

    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    groq_base_url: str = "https://api.groq.com/openai/v1"
    together_base_url: str = "https://api.together.xyz/v1"
    huggingface_base_url: str = "https://api-inference.huggingface.co"

    # ── Orchestration ────────────────────────────────────────
    provider_timeout_seconds: float = 60.0
    probe_timeout_seconds: float = 10.0
    health_check_interval_minutes: float = 5.0
    enable_background_tasks: bool = True

    # ── Budget (USD / percent of limit) ──────────────────────
    budget_daily_limit: float = 1.0
    budget_monthly_limit: float = 25.0
    budget_warning_threshold: float = 80.0
    budget_critical_threshold: float = 95.0

    # ── Observability ────────────────────────────────────────
    prometheus_enabled: bool = True

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @property
    def json_logs(self) -> bool:
        return self.is_production if self.log_json is None else self.log_json

    def api_key_for(self, provider: Provider) -> str:
        return getattr(self, f"{provider.value}_api_key").strip()

    def model_for(self, provider: Provider) -> str:
        return getattr(self, f"{provider.value}_model")

    def base_url_for(self, provider: Provider) -> str:
        return getattr(self, f"{provider.value}_base_url").rstrip("/")

    @property
    def configured_providers(self) -> tuple[Provider, ...]:
        return tuple(p for p in Provider if self.api_key_for(p))

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator(
        "provider_timeout_seconds",
        "probe_timeout_seconds",
        "health_check_interval_minutes",
    )
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @model_validator(mode="after")
    def _validate_budget(self) -> Settings:
        if self.budget_daily_limit <= 0 or self.budget_monthly_limit <= 0:
            raise ValueError("budget limits must be > 0")
        if not 0 < self.budget_warning_threshold <= self.budget_critical_threshold:
            raise ValueError(
                "budget thresholds must satisfy 0 < warning <= critical"
            )
        if self.is_production and not self.configured_providers:
            import warnings
            warnings.warn(
                "no vendor API key configured; every request will fail with CREDENTIAL_MISSING",
                UserWarning,
                stacklevel=2,
            )
        return self


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
