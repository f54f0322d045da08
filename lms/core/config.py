"""Application settings and configuration."""

from typing import Literal

from pydantic import Field, model_validator  # type: ignore
from pydantic_settings import BaseSettings, SettingsConfigDict  # type: ignore


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ENV: Literal["dev", "staging", "prod", "test"] = Field(default="dev")
    PROJECT_NAME: str = Field(default="LMS Attempt API")

    # API
    API_PREFIX: str = Field(default="/v1")

    # Database
    DATABASE_URL: str = Field(default="sqlite:///./lms.db")

    # CORS - Accept string or list, will be normalized to list
    CORS_ORIGINS: str | list[str] = Field(default="http://localhost:4200")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")

    # Security - JWT
    JWT_SECRET: str | None = Field(default=None)
    JWT_ALG: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)

    # Attempts
    ATTEMPT_GRACE_SECONDS: int = Field(default=5, ge=0, le=60)  # late in-flight submits

    @model_validator(mode="before")
    @classmethod
    def parse_cors_origins(cls, data):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(data, dict) and "CORS_ORIGINS" in data:
            cors_origins = data["CORS_ORIGINS"]
            if isinstance(cors_origins, str):
                data["CORS_ORIGINS"] = [
                    origin.strip() for origin in cors_origins.split(",") if origin.strip()
                ]
        return data

    @model_validator(mode="after")
    def check_production(self):
        """Fail fast in production if critical vars are missing."""
        if isinstance(self.CORS_ORIGINS, str):
            object.__setattr__(
                self,
                "CORS_ORIGINS",
                [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()],
            )
        if self.ENV == "prod":
            if self.DATABASE_URL.startswith("sqlite"):
                raise ValueError("DATABASE_URL must point to a server database in production")
            if not self.JWT_SECRET or self.JWT_SECRET == "change_me_super_secret":
                raise ValueError("JWT_SECRET must be set in production")
        return self


# Global settings instance
settings = Settings()
