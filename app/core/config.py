"""
Application Configuration for Chat Core Backend
"""
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

# Get the project root directory (where .env file is located)
PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database Configuration
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "chat_core"
    DATABASE_USERNAME: str = "postgres"
    DATABASE_PASSWORD: str = "postgres"  # Default for development
    # Full SQLAlchemy URL, e.g. "sqlite://" for tests
    DATABASE_URL_OVERRIDE: Optional[str] = None
    DATABASE_ECHO: bool = False

    @property
    def DATABASE_URL(self) -> str:
        """Construct database URL from components"""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql://{self.DATABASE_USERNAME}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    # JWT Configuration (tokens are issued by the identity provider)
    JWT_SECRET_KEY: str = "dev-secret-key-change-in-production"  # Default for development
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8393
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Chat Core API"
    DEBUG: bool = True

    # CORS Configuration
    ALLOWED_ORIGINS: str = "*"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from string"""
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Messaging
    MESSAGE_MAX_LENGTH: int = 2000
    MESSAGE_PREVIEW_LENGTH: int = 100
    MESSAGES_PAGE_DEFAULT: int = 20
    MESSAGES_PAGE_MAX: int = 100
    SEARCH_RESULTS_DEFAULT: int = 20
    CONVERSATIONS_PAGE_DEFAULT: int = 20

    # Change feed: watermarks trail the newest returned row by this much so
    # rows stamped before a poll but committed after it are still delivered
    FEED_WATERMARK_OVERLAP_SECONDS: float = 2.0

    # Presence
    PRESENCE_TIMEOUT_SECONDS: int = 300  # 5 minutes
    PRESENCE_SWEEP_INTERVAL_SECONDS: int = 60
    PRESENCE_SWEEP_ENABLED: bool = True

    # Object storage (uploads happen outside this service)
    MEDIA_BASE_URL: str = "http://localhost:9000/chat-media"

    # Rate limiting (reserved, off by default)
    RATE_LIMIT_ENABLED: bool = False
    MESSAGE_RATE_LIMIT: str = "60/minute"

    # Environment
    ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


# Global settings instance
settings = Settings()
