"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Self


_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "ExamHub API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Security
    # IMPORTANT: These MUST be set in .env file - no defaults for security
    SECRET_KEY: str = Field(..., description="Application secret key (required)")
    JWT_SECRET_KEY: str = Field(..., description="JWT signing secret key (required)")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Request size limit for JSON bodies (1MB)
    MAX_REQUEST_BODY_BYTES: int = 1024 * 1024

    # Test plans
    MAX_PLAN_QUESTIONS: int = Field(
        default=100,
        description="Upper bound on the number of questions a plan may select",
    )

    # Test executions
    # When enabled, recording the last missing answer (single or bulk submission)
    # finalizes the execution and computes its score. When disabled, completion
    # is always an explicit call to the complete endpoint.
    EXECUTION_AUTO_COMPLETE: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_plan_limits(self) -> Self:
        """MAX_PLAN_QUESTIONS must allow at least one question."""
        if self.MAX_PLAN_QUESTIONS < 1:
            raise ValueError(
                f"MAX_PLAN_QUESTIONS must be positive, got {self.MAX_PLAN_QUESTIONS}"
            )
        return self

    @model_validator(mode="after")
    def validate_log_level(self) -> Self:
        """Reject log levels the logging module does not know."""
        if self.LOG_LEVEL.upper() not in _LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {self.LOG_LEVEL}"
            )
        return self


# mypy doesn't understand that pydantic_settings loads required fields from env vars
settings = Settings()  # type: ignore[call-arg]
