"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "TaskBreaker Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "sqlite:///./taskbreaker.db"
    api_base_url: str = "http://localhost:8000"
    http_timeout_seconds: float = 15.0
    llm_provider: str = "openai"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    openai_coach_model: str = "gpt-4o-mini"
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-7-sonnet-20250219"
    llm_max_tokens: int = 4000
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "taskbreaker"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
