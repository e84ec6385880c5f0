import tempfile
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Configuration settings for the Deploy Service.

    Loads from a .env file and environment variables.

    All environment variables are prefixed with DEPLOY_SERVICE_
    to avoid conflicts with other services.
    """

    model_config = SettingsConfigDict(
        env_file=".env.dev",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- GENERAL APP SETTINGS ---
    PROJECT_NAME: str = "Deploy Service"
    DEBUG: bool = Field(False, alias="DEPLOY_SERVICE_DEBUG")
    ENVIRONMENT: Environment = Field(
        Environment.DEVELOPMENT, alias="DEPLOY_SERVICE_ENVIRONMENT"
    )
    LOGGING_LEVEL: str = Field("INFO", alias="DEPLOY_SERVICE_LOGGING_LEVEL")
    LOG_FORMAT: str = Field("text", alias="DEPLOY_SERVICE_LOG_FORMAT")
    ROOT_PATH: str = Field("", alias="DEPLOY_SERVICE_ROOT_PATH")

    # --- DATABASE SETTINGS ---
    DATABASE_URL: str = Field(
        "sqlite+aiosqlite:///./deploy_service.db", alias="DEPLOY_SERVICE_DATABASE_URL"
    )

    # --- CORS SETTINGS ---
    CORS_ALLOW_ORIGINS: List[str] = Field(
        ["*"], alias="DEPLOY_SERVICE_CORS_ALLOW_ORIGINS"
    )

    # --- SECURITY SETTINGS ---
    # These MUST match the values used by the auth service to sign the tokens.
    USER_JWT_SECRET_KEY: str = Field(..., alias="DEPLOY_SERVICE_USER_JWT_SECRET_KEY")
    USER_JWT_ALGORITHM: str = Field("HS256", alias="DEPLOY_SERVICE_USER_JWT_ALGORITHM")
    USER_JWT_ISSUER: Optional[str] = Field(None, alias="DEPLOY_SERVICE_USER_JWT_ISSUER")
    USER_JWT_AUDIENCE: Optional[str] = Field(
        None, alias="DEPLOY_SERVICE_USER_JWT_AUDIENCE"
    )

    M2M_JWT_SECRET_KEY: Optional[str] = Field(
        None, alias="DEPLOY_SERVICE_M2M_JWT_SECRET_KEY"
    )
    M2M_JWT_ALGORITHM: str = Field("HS256", alias="DEPLOY_SERVICE_M2M_JWT_ALGORITHM")
    M2M_JWT_ISSUER: Optional[str] = Field(None, alias="DEPLOY_SERVICE_M2M_JWT_ISSUER")
    M2M_JWT_AUDIENCE: Optional[str] = Field(
        None, alias="DEPLOY_SERVICE_M2M_JWT_AUDIENCE"
    )

    # --- PIPELINE SETTINGS ---
    WORKING_DIRECTORY: Path = Field(
        Path(tempfile.gettempdir()) / "deploy_service",
        alias="DEPLOY_SERVICE_WORKING_DIRECTORY",
    )
    PUBLICATIONS_PATH: Path = Field(
        Path("./publications"), alias="DEPLOY_SERVICE_PUBLICATIONS_PATH"
    )
    STEP_EXECUTOR: str = Field("local", alias="DEPLOY_SERVICE_STEP_EXECUTOR")
    GIT_EXECUTABLE: str = Field("git", alias="DEPLOY_SERVICE_GIT_EXECUTABLE")
    GIT_CLONE_DEPTH: int = Field(1, ge=0, alias="DEPLOY_SERVICE_GIT_CLONE_DEPTH")
    FETCH_TIMEOUT_SECONDS: float = Field(
        300.0, gt=0, alias="DEPLOY_SERVICE_FETCH_TIMEOUT_SECONDS"
    )
    COMMAND_TIMEOUT_SECONDS: float = Field(
        600.0, gt=0, alias="DEPLOY_SERVICE_COMMAND_TIMEOUT_SECONDS"
    )
    MESSAGE_TAIL_LENGTH: int = Field(
        2000, ge=100, alias="DEPLOY_SERVICE_MESSAGE_TAIL_LENGTH"
    )
    MAX_CONCURRENT_DEPLOYS: int = Field(
        4, ge=1, alias="DEPLOY_SERVICE_MAX_CONCURRENT_DEPLOYS"
    )

    # --- RATE LIMITING ---
    GENERAL_RATE_LIMIT: str = Field(
        "100/minute", alias="DEPLOY_SERVICE_GENERAL_RATE_LIMIT"
    )
    DEPLOY_SUBMIT_RATE_LIMIT: str = Field(
        "10/minute", alias="DEPLOY_SERVICE_DEPLOY_SUBMIT_RATE_LIMIT"
    )

    def is_production(self) -> bool:
        return self.ENVIRONMENT == Environment.PRODUCTION

    def is_development(self) -> bool:
        return self.ENVIRONMENT == Environment.DEVELOPMENT

    def is_testing(self) -> bool:
        return self.ENVIRONMENT == Environment.TESTING

    @field_validator("DATABASE_URL", mode="after")
    def validate_db_url(cls, v: str) -> str:
        """Ensures PostgreSQL URLs use the psycopg driver."""
        return str(v).replace("postgresql://", "postgresql+psycopg://", 1)

    @field_validator("LOG_FORMAT", mode="after")
    def validate_log_format(cls, v: str) -> str:
        value = v.lower()
        if value not in ("text", "json"):
            raise ValueError("LOG_FORMAT must be 'text' or 'json'")
        return value


# Global instance of the settings
settings = Settings()
