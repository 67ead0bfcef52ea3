from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://preview.reve.art"
DEFAULT_MODEL = "text2image_v1/prod/20250325-2246"
DEFAULT_ENHANCER_MODEL = "promptenhancer_v1/prod/20250224-0952"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    # --- Credentials ---
    authorization: Optional[str] = Field(default=None, validation_alias="REVE_AUTHORIZATION")
    cookie: Optional[str] = Field(default=None, validation_alias="REVE_COOKIE")
    project_id: Optional[str] = Field(default=None, validation_alias="REVE_PROJECT_ID")

    # --- Upstream ---
    base_url: str = Field(default=DEFAULT_BASE_URL, validation_alias="REVE_BASE_URL")
    timeout_ms: int = Field(default=30000, gt=0, validation_alias="REVE_TIMEOUT_MS")
    custom_headers: Dict[str, str] = Field(default_factory=dict, validation_alias="REVE_CUSTOM_HEADERS")

    # --- Polling ---
    max_polling_attempts: int = Field(default=60, ge=1, validation_alias="REVE_MAX_POLLING_ATTEMPTS")
    polling_interval_ms: int = Field(default=2000, ge=0, validation_alias="REVE_POLLING_INTERVAL_MS")

    # --- Models ---
    default_model: str = Field(default=DEFAULT_MODEL, validation_alias="REVE_DEFAULT_MODEL")
    enhancer_model: str = Field(default=DEFAULT_ENHANCER_MODEL, validation_alias="REVE_ENHANCER_MODEL")

    # --- Diagnostics ---
    verbose: bool = Field(default=False, validation_alias="REVE_VERBOSE")


@lru_cache
def get_settings() -> Settings:
    return Settings()
