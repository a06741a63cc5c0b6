from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the palette engine."""

    model_config = SettingsConfigDict(
        env_prefix="PALETTE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    offline: bool = Field(
        default=False,
        description="Skip the language model entirely and use keyword detection only.",
    )
    ollama_endpoint: str = Field(
        default="http://127.0.0.1:11434",
        max_length=256,
        description="Base URL of the local Ollama server.",
    )
    ollama_model: str = Field(default="gemma3:4b", max_length=128)
    classify_timeout_seconds: float = Field(default=30.0, gt=0.0, le=300.0)
    spelling_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Timeout for the genre spelling correction call.",
    )
    classify_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    spelling_temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int | None = Field(
        default=512,
        ge=1,
        le=8192,
        description="Maximum tokens the model may generate per call (num_predict).",
    )
    context_length: int | None = Field(
        default=4096,
        ge=256,
        le=131_072,
        description="Context window passed to Ollama (num_ctx).",
    )
    availability_ttl_seconds: float = Field(default=30.0, ge=0.0, le=3600.0)
    availability_timeout_seconds: float = Field(default=2.0, gt=0.0, le=60.0)
    classification_cache_size: int = Field(default=100, ge=1, le=10_000)
    log_level: str = Field(default="INFO", max_length=16)

    @model_validator(mode="after")
    def _align_timeouts(self) -> "Settings":
        if self.spelling_timeout_seconds > self.classify_timeout_seconds:
            self.spelling_timeout_seconds = self.classify_timeout_seconds
        self.log_level = self.log_level.upper()
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
