from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path.home() / ".trainstate"


def get_database_url() -> str:
    """Default to a SQLite file in the user's data directory.

    The absolute path avoids resolution issues when the CLI is run from a
    different working directory.
    """
    db_path = (DATA_DIR / "trainstate.db").resolve()
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    database_url: str = Field(default_factory=get_database_url)
    backup_dir: Path = Field(default=DATA_DIR / "backups")
    health_export_path: Path | None = Field(
        default=None,
        description="Apple Health export.zip used when no path is given on the command line",
    )
    health_read_consent: bool = Field(
        default=False,
        description="Treat read access to the health export as already granted",
    )
    log_level: str = Field(default="INFO")
    log_file: str | None = Field(default=None)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("health_export_path")
    @classmethod
    def validate_health_export_path(cls, value: Path | None) -> Path | None:
        if value is not None and not value.expanduser().exists():
            logger.warning(f"TRAINSTATE_HEALTH_EXPORT_PATH points to a missing file: {value}. Health import will fail until it exists.")
        return value.expanduser() if value is not None else None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TRAINSTATE_",
        extra="ignore",
    )


settings = Settings()
