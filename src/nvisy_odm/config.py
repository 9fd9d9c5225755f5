"""Configuration management using Pydantic Settings."""

from typing import Literal
from urllib.parse import quote_plus

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nvisy_odm.providers.mongodb import MongoCredentials, MongoParams


class OdmSettings(BaseSettings):
    """Connection and logging settings loaded from `MONGODB_*` variables."""

    model_config = SettingsConfigDict(
        env_prefix="MONGODB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection
    host: str = "localhost:27017"
    name: str = Field(default="nvisy", min_length=1)
    username: str | None = None
    password: str | None = None
    app_name: str | None = None
    server_selection_timeout_ms: int = 30_000

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"

    @property
    def dsn(self) -> str:
        """Connection string, with credentials quoted when both are set."""
        auth = ""
        if self.username and self.password:
            auth = f"{quote_plus(self.username)}:{quote_plus(self.password)}@"
        return f"mongodb://{auth}{self.host}/{self.name}"

    def credentials(self) -> MongoCredentials:
        return MongoCredentials(dsn=self.dsn)

    def params(self) -> MongoParams:
        return MongoParams(
            database=self.name,
            app_name=self.app_name,
            server_selection_timeout_ms=self.server_selection_timeout_ms,
        )


_settings: OdmSettings | None = None


def get_settings() -> OdmSettings:
    """Get or create the settings instance."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = OdmSettings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
