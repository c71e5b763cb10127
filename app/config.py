from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
from typing import Optional

load_dotenv()

DEFAULT_SECRET_KEY = "change-me-in-production"


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Grid Manager API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./gridmanager.db"

    # Security settings
    secret_key: str = DEFAULT_SECRET_KEY
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    pending_registration_expire_minutes: int = 15
    bcrypt_rounds: int = 12

    # Provisioning
    trial_days: int = 14

    # External identity provider (Google OAuth 2.0)
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_callback_url: str = "http://localhost:8000/api/v1/auth/external-identity/callback"
    external_http_timeout_seconds: float = 10.0

    # Client application that receives OAuth redirects
    client_base_url: str = "http://localhost:3000"

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
