from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LOOKAHEAD_YEARS = 100


class RecurrenceConfig(BaseModel):
    # Searches give up this many calendar years past their starting point
    lookahead_years: int = Field(default=DEFAULT_LOOKAHEAD_YEARS, ge=1)


class PreviewConfig(BaseModel):
    default_count: int = Field(default=10, ge=1)
    max_count: int = Field(default=366, ge=1)

    def clamp(self, requested: int | None) -> int:
        """Resolve a requested preview size against the configured bounds."""
        if requested is None:
            return min(self.default_count, self.max_count)
        return max(0, min(requested, self.max_count))


class AppConfig(BaseModel):
    recurrence: RecurrenceConfig = Field(default_factory=RecurrenceConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    timezone: str = Field(default="UTC", alias="RRULE_TIMEZONE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    config_path: str = Field(default="config.yaml", alias="APP_CONFIG_PATH")

    _app_config: AppConfig | None = None
    _app_config_mtime: float | None = None

    def load_app_config(self, *, force_reload: bool = False) -> AppConfig:
        config_file = Path(self.config_path)
        if not config_file.exists():
            self._app_config = AppConfig()
            self._app_config_mtime = None
            return self._app_config

        current_mtime = config_file.stat().st_mtime
        if not force_reload and self._app_config and self._app_config_mtime == current_mtime:
            return self._app_config

        with config_file.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}

        self._app_config = AppConfig.model_validate(data)
        self._app_config_mtime = current_mtime
        return self._app_config

    def reload_app_config(self) -> AppConfig:
        """Force a reload of the application config from disk."""
        return self.load_app_config(force_reload=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
