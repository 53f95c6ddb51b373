from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from habit_engine.adapters.catalog_yaml import SUBSETS_FILENAME


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HABIT_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Path.home() / ".habit_engine"
    catalog_dir: Optional[Path] = None
    logs_dir: Optional[Path] = None
    current_path: Optional[Path] = None
    max_daily_intensity: int = 30
    active_subset: str = ""
    log_level: str = "WARNING"
    log_path: Optional[Path] = None
    seed: Optional[int] = None

    @property
    def resolved_catalog_dir(self) -> Path:
        return self.catalog_dir or self.data_dir / "catalog"

    @property
    def resolved_logs_dir(self) -> Path:
        return self.logs_dir or self.data_dir / "logs"

    @property
    def resolved_current_path(self) -> Path:
        return self.current_path or self.data_dir / "current"

    @property
    def subsets_path(self) -> Path:
        return self.resolved_catalog_dir / SUBSETS_FILENAME


def load_settings(**overrides) -> Settings:
    return Settings(**overrides)
