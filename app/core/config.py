"""
config.py — Application settings

Single source of truth for runtime configuration. Values come from the OS
environment or a `.env` file at the project root.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: <project>/app/core/config.py
BASE_DIR = Path(__file__).resolve().parents[2]
_ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = Field(
        f"sqlite:///{(BASE_DIR / 'timebank.db').as_posix()}",
        description="SQLAlchemy database URL",
    )
    DB_TIMEOUT_SECONDS: int = Field(
        30,
        description="SQLite busy timeout (seconds)",
    )

    # Auth
    JWT_SECRET_KEY: str = Field(
        "change-me",
        description="Secret used to sign access tokens and storage URLs",
    )
    JWT_ALGORITHM: str = Field("HS256")
    JWT_EXPIRE_MINUTES: int = Field(
        60 * 24,
        description="Access token lifetime (minutes)",
    )

    # Storage
    UPLOAD_DIR: str = Field(
        str(BASE_DIR / "static" / "uploads"),
        description="Directory where uploaded files are stored",
    )
    SIGNED_URL_EXPIRE_MINUTES: int = Field(
        15,
        description="Lifetime of signed upload/download URLs (minutes)",
    )

    LOG_LEVEL: str = Field("INFO")
    SEED_DEFAULT_PACKAGES: bool = Field(
        True,
        description="Insert the default point packages on startup when none exist",
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_level(cls, v):
        return (v or "INFO").strip().upper()

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
