"""Configuration for the maturityindex client.

Settings come from ``MATURITYINDEX_*`` environment variables, optionally
seeded from a ``.env`` file, with typed access via Pydantic BaseSettings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import APP_NAME


class Settings(BaseSettings):
    """Client configuration.

    Attributes:
        data_dir: Directory holding the local snapshot database.
        model_path: Questionnaire model loaded at startup. ``None`` uses
            the model bundled with the package.
        app_name: Name written into answer exports.
        model_version_fallback: Version written into exports when the
            model does not declare one.
        log_level: Log level name (e.g. "INFO", "DEBUG").
        log_file: Optional log file; console-only logging when unset.
    """

    model_config = SettingsConfigDict(env_prefix="MATURITYINDEX_", case_sensitive=False, protected_namespaces=())

    data_dir: Path = Field(default=Path(".maturityindex"))
    model_path: Path | None = None
    app_name: str = APP_NAME
    model_version_fallback: str = "1.3"
    log_level: str = "WARNING"
    log_file: Path | None = None

    @property
    def snapshot_db(self) -> Path:
        """Path of the snapshot history database."""
        return self.data_dir / "snapshots.db"


def load_settings(env_file: Path | None = None) -> Settings:
    """Load settings, reading ``env_file`` (or ``./.env``) first if present.

    Raises:
        FileNotFoundError: If an explicit ``env_file`` does not exist.
    """
    if env_file is not None:
        if not env_file.exists():
            raise FileNotFoundError(f"Environment file not found: {env_file}")
        load_dotenv(env_file, override=True)
    else:
        default_env = Path(".env")
        if default_env.exists():
            load_dotenv(default_env, override=False)
    return Settings()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached process-wide settings."""
    return load_settings()
