"""Application settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from DEVUP_* environment variables.

    The project's own .env is an output of devup, so it is never read here.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEVUP_",
        env_file=None,
        extra="ignore",
    )

    # Generated artifact locations (relative to the project root)
    output_dir: str = ".devup"
    config_file: str = "devup.config.json"
    env_file_name: str = ".env"
    compose_file: str = "docker-compose.yml"

    # Runtime defaults
    default_node_version: str = "20"
    python_version: str = "3.11"

    # Readiness probing
    probe_host: str = "127.0.0.1"
    probe_timeout: float = 1.0
    poll_interval: float = 10.0
    health_timeout: float = 120.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
