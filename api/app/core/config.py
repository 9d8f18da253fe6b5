import logging
import os
import string
from functools import lru_cache

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Environment settings (must precede CORS_ORIGINS for its validator)
    ENVIRONMENT: str = "development"

    # API settings
    DEBUG: bool = False
    PROJECT_NAME: str = "Code Reveal"

    # CORS settings - accepts string or list, normalized to list[str] by validator
    CORS_ORIGINS: str | list[str] = "*"

    # Directory settings
    DATA_DIR: str = "api/data"

    # Code issuance settings
    TRIGGER_COMMAND: str = "!medic"  # Matched case-insensitively anywhere in a comment
    CODE_LENGTH: int = 8
    CODE_ALPHABET: str = string.ascii_uppercase
    CODE_STORE_BACKEND: str = "sqlite"  # "sqlite" or "memory"

    # Notification settings
    MESSAGE_SUBJECT: str = "Your code is ready!"
    MESSAGE_TEMPLATE: str = "Your medic code is {code}"
    REALTIME_QUEUE_SIZE: int = 16  # Per-subscriber buffered push events

    # Host platform integration (username lookup, private messages, posts)
    HOST_API_URL: str = ""  # Empty disables the platform client
    HOST_API_TOKEN: str = ""
    HOST_API_TIMEOUT_SECONDS: float = 10.0
    POST_TITLE: str = "Code Reveal"

    # Client reveal controller defaults
    CLIENT_POLL_INTERVAL_SECONDS: float = 30.0
    CLIENT_REVEAL_DELAY_SECONDS: float = 0.1
    CLIENT_RECONNECT_DELAY_SECONDS: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",
    )

    @property
    def CODE_STORE_PATH(self) -> str:
        """Complete path to the SQLite key-value database"""
        return self.get_data_path("codes.db")

    def get_data_path(self, *path_parts) -> str:
        """Utility method to construct paths within DATA_DIR

        Args:
            *path_parts: Path components to join with DATA_DIR

        Returns:
            Complete path within DATA_DIR
        """
        return os.path.join(self.DATA_DIR, *path_parts)

    def ensure_data_dirs(self) -> None:
        """Create DATA_DIR if it does not exist yet."""
        os.makedirs(self.DATA_DIR, exist_ok=True)

    @field_validator("TRIGGER_COMMAND")
    @classmethod
    def validate_trigger_command(cls, v: str) -> str:
        """Reject an empty trigger command.

        Raises:
            ValueError: If the command is blank
        """
        v = v.strip()
        if not v:
            raise ValueError("TRIGGER_COMMAND must be non-empty")
        return v

    @field_validator("CODE_LENGTH")
    @classmethod
    def validate_code_length(cls, v: int) -> int:
        if not 1 <= v <= 64:
            raise ValueError(f"CODE_LENGTH must be between 1 and 64, got {v}")
        return v

    @field_validator("CODE_ALPHABET")
    @classmethod
    def validate_code_alphabet(cls, v: str) -> str:
        if len(set(v)) != len(v) or len(v) < 2:
            raise ValueError(
                "CODE_ALPHABET must contain at least two distinct characters "
                "and no duplicates"
            )
        return v

    @field_validator("CODE_STORE_BACKEND")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in {"sqlite", "memory"}:
            raise ValueError(
                f"CODE_STORE_BACKEND must be 'sqlite' or 'memory', got {v!r}"
            )
        return normalized

    @field_validator("HOST_API_URL")
    @classmethod
    def validate_host_api_url(cls, v: str) -> str:
        """Normalize the host platform URL.

        Ensures URL has a scheme and removes trailing slashes. An empty
        value is kept as-is and disables the integration.
        """
        v = v.strip()
        if not v:
            return v
        if "://" not in v:
            v = "http://" + v
        return v.rstrip("/")

    @field_validator("CLIENT_POLL_INTERVAL_SECONDS", "CLIENT_REVEAL_DELAY_SECONDS")
    @classmethod
    def validate_client_timings(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Client timings must be non-negative, got {v}")
        return v

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Normalize CORS_ORIGINS to list of hosts.

        Args:
            v: CORS origins as string (comma-separated), list of strings, or "*" for all

        Returns:
            List of CORS origin hosts with whitespace trimmed and empty entries removed
        """
        if isinstance(v, str):
            if v.strip() == "*":
                return ["*"]
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return [str(origin).strip() for origin in v if str(origin).strip()]

    @classmethod
    def _is_production(cls, info: ValidationInfo) -> bool:
        environment = str((info.data or {}).get("ENVIRONMENT", "")).strip().lower()
        return environment in {"production", "prod"}

    @field_validator("CORS_ORIGINS")
    @classmethod
    def validate_cors_in_production(cls, v: list[str], info) -> list[str]:
        """Reject wildcard CORS in production environments.

        Raises:
            ValueError: If wildcard CORS is used in production
        """
        if cls._is_production(info) and "*" in v:
            raise ValueError("CORS wildcard '*' not allowed in production")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings instance with lazy initialization.

    Settings are only created once on first access, then cached for subsequent calls.
    This prevents module-level side effects and allows testing without environment variables.

    Returns:
        Settings: Application settings object
    """
    return Settings()
