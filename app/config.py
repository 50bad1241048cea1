"""Application configuration"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    database_url: str = "sqlite:///./data/jira-mirror.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Sync
    # Used until an interval is saved through /api/config/sync-interval.
    default_sync_interval_minutes: int = 30
    scheduler_enabled: bool = True

    # Jira
    # Applied to every request, so a hung batch fails the pass instead of blocking it.
    jira_request_timeout_seconds: float = 30.0
    jira_page_size: int = 100

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
