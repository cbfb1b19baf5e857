"""
Configuration management for Clariti sync backend
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Clariti Sync"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./clariti.db"

    # Classifier (Claude API)
    ANTHROPIC_API_KEY: str = ""
    CLASSIFIER_MODEL: str = "claude-sonnet-4-20250514"
    CLASSIFIER_MAX_TOKENS: int = 512
    CLASSIFIER_TEMPERATURE: float = 0.3
    CLASSIFIER_TIMEOUT_S: float = 30.0
    CLASSIFIER_EXCERPT_CHARS: int = 500

    # Canvas LMS
    CANVAS_API_URL: str = "https://canvas.instructure.com"

    # Google (Gmail + Calendar)
    GMAIL_API_URL: str = "https://gmail.googleapis.com/gmail/v1"
    GOOGLE_CALENDAR_API_URL: str = "https://www.googleapis.com/calendar/v3"
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    # Slack
    SLACK_API_URL: str = "https://slack.com/api"

    # Outbound HTTP
    PROVIDER_TIMEOUT_S: float = 20.0

    # Sync windows
    CALENDAR_LOOKAHEAD_DAYS: int = 30
    GMAIL_LOOKBACK_DAYS: int = 2
    GMAIL_MAX_RESULTS: int = 30
    SLACK_LOOKBACK_DAYS: int = 7
    SLACK_MAX_CHANNELS: int = 5  # stay under Slack tier-3 rate limits
    SLACK_HISTORY_LIMIT: int = 50
    ANNOUNCEMENT_MAX_AGE_DAYS: int = 30

    # Sources purged and re-populated on every sync
    REBUILD_SOURCES: list[str] = ["canvas"]

    # Prioritization pass
    PRIORITIZE_WINDOW_DAYS: int = 14

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
