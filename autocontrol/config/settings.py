# autocontrol/config/settings.py

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_name: str = "autocontrol-pro"
    environment: Literal["dev", "test", "prod"] = "dev"
    debug: bool = False
    version: str = "0.1.0"

    # --- Backend API ---
    api_url: str = "http://localhost:5000"
    auth_header_name: str = "x-auth-token"
    request_timeout_seconds: float = Field(10.0, gt=0)

    # --- Circuit breaker around the gateway ---
    circuit_failure_threshold: int = Field(3, ge=1)
    circuit_recovery_seconds: float = Field(30.0, ge=0)

    # --- Local fallback store ---
    storage_backend: Literal["memory", "file", "redis"] = "file"
    storage_path: str = ".autocontrol/store.json"
    redis_url: Optional[str] = None
    redis_key_prefix: str = "autocontrol"

    # --- Incidents ---
    search_debounce_seconds: float = Field(0.3, ge=0)
    overdue_incident_days: int = Field(7, ge=1)

    # --- Observability ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()


# Singleton for direct import (e.g. in infrastructure clients)
settings = get_settings()
