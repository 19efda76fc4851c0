"""Process configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    log_level: str = "info"

    # Processing resolution
    max_dimension: int = 2000
    marker_budget: int = 5000

    # Defaults for the segment command
    default_detail: int = 10
    default_merge_strength: float = 0.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "SURFACEMASK_"}


settings = Settings()
