from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

DEFAULT_DATA_DIR = Path(__file__).parent / "data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TTKLAB_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Application
    app_name: str = "TTK Lab"
    debug: bool = False
    api_version: str = "v1"
    log_level: str = "INFO"

    # Catalog (weapons.json, attachments.json, shields.json, patch.json)
    data_dir: Path = DEFAULT_DATA_DIR

    # Simulation defaults
    default_trials: int = 10000
    default_seed: int = 1337
    default_confidence: float = 0.95
    max_trials: int = 200000  # per configuration, guards the HTTP surface
    max_shots_per_target: int = 200000
    progress_every: int = 10  # configurations between progress events


@lru_cache()
def get_settings() -> Settings:
    return Settings()
