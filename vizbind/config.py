"""Settings read from VIZBIND_* environment variables (or a .env file)."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VIZBIND_", env_file=".env", case_sensitive=False)

    # Observability
    log_level: str = "INFO"
    log_format: str = "text"

    # Rows embedded into the Vega-Lite spec before compiling; altair refuses
    # inline data above its own row limit.
    max_embedded_rows: int = 5000
    sample_seed: int = 42

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_format(cls, v: str) -> str:
        return str(v).strip().lower()

    @field_validator("max_embedded_rows")
    @classmethod
    def positive_rows(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_embedded_rows must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
