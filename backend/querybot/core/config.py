from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    APP_NAME: str = "QueryBot – Natural Language Data Assistant"
    DATABASE_URL: str = "sqlite:///./querybot.db"
    LOG_LEVEL: str = "INFO"

    # -------- LLM settings --------
    # LLM_PROVIDER: "none" or "openrouter" (any OpenAI-compatible chat completions API)
    LLM_PROVIDER: str = "none"
    LLM_MODEL: str = "openai/gpt-4o-mini"
    LLM_API_URL: str = "https://openrouter.ai/api/v1/chat/completions"

    # API key (read from .env)
    LLM_API_KEY: Optional[str] = None

    # HTTP timeout for a single LLM call
    LLM_TIMEOUT_SECONDS: float = 60.0

    # -------- Query pipeline --------
    # Budget for one request, shared by its generation, execution and summary calls
    QUERY_TIMEOUT_SECONDS: float = 90.0
    MEMORY_MAX_MESSAGES: int = 10
    HISTORY_PREVIEW_ROWS: int = 50
    DEFAULT_QUERY_LIMIT: int = 50

    # Replace SELECT * unless the user asked for the full table
    BLOCK_SELECT_STAR: bool = True

    class Config:
        # Environment file for secrets
        env_file = ".env"
        # Ignore extra env vars instead of crashing
        extra = "ignore"


settings = Settings()
