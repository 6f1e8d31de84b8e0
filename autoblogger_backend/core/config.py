"""
Application configuration settings.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Database - SQLite for development, PostgreSQL in production
    DATABASE_URL: str = "sqlite:///./autoblogger.db"

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_TEXT_MODEL: str = "gpt-4o"

    # Anthropic
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_TEXT_MODEL: str = "claude-3-5-sonnet-latest"

    # Generation defaults shared by all providers
    AI_TEMPERATURE: float = 0.7
    AI_MAX_OUTPUT_TOKENS: int = 4000
    AI_TIMEOUT_S: int = 60

    # WordPress
    WP_VALIDATE_TIMEOUT_S: int = 10
    WP_PUBLISH_TIMEOUT_S: int = 30

    # Scheduler sweep
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_INTERVAL_MINUTES: int = 15
    DISPATCH_DRAIN_TIMEOUT_S: int = 30

    # App settings
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"


settings = Settings()
