#deploy_engine\config.py

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Deploy engine configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DEPLOY_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Conflict retry (same shape as the cluster client's default backoff)
    retry_max_attempts: int = Field(default=5, ge=1)
    retry_backoff_seconds: float = Field(default=0.01, ge=0)
    retry_backoff_factor: float = Field(default=1.0, ge=1.0)
    retry_jitter: float = Field(default=0.1, ge=0)

    # Source builds
    default_builder: str = "heroku/buildpacks:20"
    default_procfile: str = "Procfile"
    # Source paths of HTTP deploys resolve under this directory; unset disables them
    source_root: Optional[str] = None

    # Ingress
    default_cname_suffix: str = "shipa.cloud"

    # Canary
    min_canary_steps: int = 2
    max_canary_steps: int = 100


settings = EngineSettings()
