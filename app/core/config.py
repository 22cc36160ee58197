from pydantic_settings import BaseSettings
from typing import List, Optional, Union
from pydantic import field_validator
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Chat Screening Engine"

    # Database Settings
    POSTGRES_USER: str = "user"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "screening_db"
    DATABASE_URL_OVERRIDE: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Redis Settings (Celery broker, short codes, locks, de-duplication)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 5.0

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # OpenAI Settings
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TIMEOUT_SECONDS: float = 30.0
    DIALOGUE_TEMPERATURE: float = 0.7
    EXTRACTION_TEMPERATURE: float = 0.3
    SUMMARY_TEMPERATURE: float = 0.5
    DIALOGUE_MAX_TOKENS: int = 300
    SUMMARY_MAX_TOKENS: int = 800
    RESUME_TEXT_LIMIT: int = 4000

    # Messaging provider defaults (used when an organization has no own keys)
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_WHATSAPP_NUMBER: str = ""
    MEDIA_DOWNLOAD_TIMEOUT_SECONDS: float = 20.0
    MEDIA_MAX_BYTES: int = 10 * 1024 * 1024

    # Blob storage defaults
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_S3_BUCKET: Optional[str] = None
    AWS_REGION: str = "eu-west-1"
    LOCAL_ARCHIVE_DIR: Optional[str] = None

    # Identity vault
    ENCRYPTION_KEY: str = ""

    # Job routing
    SHORT_CODE_PREFIX: str = "CODE"
    SHORT_CODE_TTL_SECONDS: int = 90 * 24 * 60 * 60

    # Background processing
    WORKER_CONCURRENCY: int = 4
    TASK_TIME_LIMIT: int = 300
    TASK_SOFT_TIME_LIMIT: int = 240
    ENQUEUE_TIMEOUT_SECONDS: float = 5.0
    LOCK_BACKEND: str = "redis"
    CANDIDATE_LOCK_TIMEOUT_SECONDS: int = 270
    CANDIDATE_LOCK_WAIT_SECONDS: int = 60
    WEBHOOK_DEDUP_TTL_SECONDS: int = 24 * 60 * 60
    SCORING_MAX_CONCURRENCY: int = 4

    # Logging
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # CORS Settings - can be set as JSON string in .env
    BACKEND_CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000", "http://localhost:8000"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[List[str], str]) -> List[str]:
        """Parse CORS origins from JSON string or list"""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If not valid JSON, split by comma
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("LOCK_BACKEND")
    @classmethod
    def validate_lock_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("redis", "local"):
            raise ValueError("LOCK_BACKEND must be 'redis' or 'local'")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


class ConfigurationError(Exception):
    """Raised when a mandatory setting is missing or invalid."""
    pass


settings = Settings()
