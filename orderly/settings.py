from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = Field("Orderly Order Editing", alias="APP_NAME")
    api_base_url: str = Field("https://orderly-be.test/api", alias="API_BASE_URL")
    backend_timeout_seconds: float = Field(15.0, alias="BACKEND_TIMEOUT_SECONDS")
    default_currency: str = Field("BDT", alias="DEFAULT_CURRENCY")
    edit_window_warning_seconds: int = Field(1800, alias="EDIT_WINDOW_WARNING_SECONDS")
    edit_window_tick_seconds: float = Field(1.0, alias="EDIT_WINDOW_TICK_SECONDS")
    cors_allow_origins: str = Field("*", alias="CORS_ALLOW_ORIGINS")
    request_id_header: str = Field("X-Request-Id", alias="REQUEST_ID_HEADER")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


def resolve_env_file() -> Optional[Path]:
    explicit = os.getenv("ORDERLY_ENV_FILE")
    if explicit:
        return Path(explicit)
    default = Path.cwd() / "config" / "api.env"
    if default.exists():
        return default
    return None


def load_settings() -> Settings:
    env_file = resolve_env_file()
    if env_file:
        return Settings(_env_file=str(env_file))
    return Settings()
