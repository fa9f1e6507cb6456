"""Settings for the package level experiments registry."""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class ExperimentsSettings(BaseSettings):
    """Settings loaded from FLIT_EXPERIMENTS_* environment variables."""
    model_config = SettingsConfigDict(
        env_prefix="FLIT_EXPERIMENTS_",
        env_file=".env",
        extra="ignore",
    )

    # Manifest written by the experiment config fetcher
    manifest_path: str = "experiments.json"
    poll_interval: float = 1.0  # seconds
    # Max wait for the manifest on startup, None waits forever
    load_timeout: Optional[float] = 30.0


@lru_cache()
def get_settings() -> ExperimentsSettings:
    """Get cached settings instance."""
    return ExperimentsSettings()
