"""Configuration settings for the Kira advisor."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM API Keys
    google_api_key: SecretStr = Field(..., validation_alias="GOOGLE_API_KEY")
    anthropic_api_key: SecretStr = Field(
        default=SecretStr(""), validation_alias="ANTHROPIC_API_KEY"
    )
    openai_api_key: SecretStr = Field(
        default=SecretStr(""), validation_alias="OPENAI_API_KEY"
    )

    # Provider and model selections
    llm_provider: Literal["gemini", "claude", "openai"] = Field(
        default="gemini", validation_alias="LLM_PROVIDER"
    )
    gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
    claude_model: str = Field(default="claude-haiku-4-5", validation_alias="CLAUDE_MODEL")
    gpt_model: str = Field(default="gpt-4.1-mini", validation_alias="GPT_MODEL")

    # LLM parameters (low temperature for precise tool use)
    llm_max_tokens: int = Field(default=4096, validation_alias="LLM_MAX_TOKENS")
    llm_temperature: float = Field(default=0.2, validation_alias="LLM_TEMPERATURE")

    # Ledger store
    store_backend: Literal["memory", "firestore"] = Field(
        default="memory", validation_alias="STORE_BACKEND"
    )
    store_seed_path: str | None = Field(default=None, validation_alias="STORE_SEED_PATH")
    firestore_project_id: str = Field(default="", validation_alias="FIRESTORE_PROJECT_ID")
    firestore_database: str = Field(default="(default)", validation_alias="FIRESTORE_DATABASE")
    firestore_access_token: SecretStr = Field(
        default=SecretStr(""), validation_alias="FIRESTORE_ACCESS_TOKEN"
    )
    store_timeout: float = Field(default=30.0, validation_alias="STORE_TIMEOUT")
    store_max_retries: int = Field(default=3, validation_alias="STORE_MAX_RETRIES")

    # Chat context
    attachment_summary_max_chars: int = Field(
        default=4000, validation_alias="ATTACHMENT_SUMMARY_MAX_CHARS"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
