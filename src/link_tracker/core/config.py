from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

BASE_DIR = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Dashboard client settings"""

    # Transport
    API_URL: str = "http://localhost:8080/api"
    REQUEST_TIMEOUT: float = 10.0

    # Query cache
    STALE_TIME: float = 30.0

    # Tables
    DEFAULT_PAGE_SIZE: int = 10
    RESET_PAGE_ON_PAGE_SIZE_CHANGE: bool = False

    # Application
    APP_NAME: str = "Link Tracker"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LINK_TRACKER_",
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = Settings()
