from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server-side configuration, read from the environment and ``.env``."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Application
    project_name: str = "Voice Contact Capture"
    version: str = "1.0.0"
    environment: str = "development"

    # Speech-to-text
    openai_api_key: Optional[str] = None
    transcription_model: str = "whisper-1"
    transcription_language: str = "en"
    transcription_timeout_seconds: float = 60.0

    # CRM webhook
    crm_webhook_url: Optional[str] = None
    crm_timeout_seconds: float = 15.0

    # Uploads
    max_audio_bytes: int = 10 * 1024 * 1024  # 10MB

    # Database and sessions
    database_url: str = "sqlite:///./voice_contacts.db"
    session_secret: str = "change-me"
    session_ttl_days: int = 30

    # Logging
    log_level: str = "INFO"
    log_file: str = "logs/app.log"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
