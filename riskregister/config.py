"""
Risk Register Configuration — pydantic-settings based.

All settings are read from environment variables or .env file.
Every value has a default so the register starts with no configuration.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings sourced from environment variables."""

    # ── Storage ──
    storage_backend: Literal["memory", "file", "encrypted"] = Field(
        default="file",
        description="Persistence backend for the register state",
    )
    storage_path: str = Field(
        default="risk_register_state.json",
        description="JSON file used by the file and encrypted backends",
    )
    storage_key: str = Field(
        default="easy-risk-register",
        description="Namespaced key the register document is stored under",
    )
    encryption_key: str | None = Field(
        default=None,
        description="urlsafe-base64 AES-256 key for the encrypted backend",
    )
    encryption_key_path: str = Field(
        default=".risk_register_key",
        description="Where a generated encryption key is kept when none is configured",
    )

    # ── Register ──
    default_categories: list[str] = Field(
        default=["Operational", "Security", "Compliance", "Financial", "Strategic"],
        description="Initial category list; the first entry is the fallback category",
    )

    # ── Logging ──
    log_level: str = Field(default="INFO", description="Root log level")

    # ── Server ──
    port: int = Field(default=5001, description="Server port")
    host: str = Field(default="127.0.0.1", description="Server bind host")
    cors_origins: list[str] = Field(
        default=["http://localhost:5173"], description="Allowed CORS origins"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "RISK_REGISTER_",
        "case_sensitive": False,
    }


# Singleton instance — imported by other modules
settings = Settings()
