"""Configuration management for the webmention relay."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to read the mention endpoints",
    )


class DatabaseConfig(BaseModel):
    """Persistence settings."""

    path: str = Field(
        default="~/.webmention-relay/mentions.db", description="Path to SQLite database file"
    )
    echo: bool = Field(default=False, description="Log every SQL statement")
    busy_timeout: float = Field(default=30.0, gt=0, description="Seconds a writer waits for a locked database")


class FetcherConfig(BaseModel):
    """Remote document fetching settings."""

    timeout: float = Field(default=10.0, gt=0, description="Seconds before a fetch times out")
    max_redirects: int = Field(default=5, ge=0, le=20)
    user_agent: str = "webmention-relay/0.1 (+https://indieweb.org/Webmention)"
    max_body_bytes: int = Field(default=2_000_000, ge=1024)


class LiveConfig(BaseModel):
    """Live stream settings."""

    queue_size: int = Field(default=100, ge=1, description="Pending events per subscriber")
    keepalive_seconds: float = Field(default=15.0, gt=0)


class Config(BaseModel):
    """Root configuration model."""

    server: ServerConfig = ServerConfig()
    database: DatabaseConfig = DatabaseConfig()
    fetcher: FetcherConfig = FetcherConfig()
    live: LiveConfig = LiveConfig()


def load_config(config_path: Optional[str | Path] = None) -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file. When omitted,
            ``config.yaml`` is used if present, otherwise defaults apply.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist.
        ValidationError: If config is invalid.
        ValueError: If referenced environment variable is not set.
    """
    if config_path is None:
        path = Path("config.yaml")
        if not path.exists():
            return Config()
    else:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(
                f"Config file not found: {path}\n"
                "Copy config.example.yaml to config.yaml and fill in your values."
            )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    # Expand environment variables in the format ${VAR_NAME}
    def expand_env_vars(obj):
        if isinstance(obj, dict):
            return {k: expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [expand_env_vars(item) for item in obj]
        elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            value = os.getenv(env_var)
            if value is None:
                raise ValueError(f"Environment variable '{env_var}' is not set")
            return value
        return obj

    raw_config = expand_env_vars(raw_config)

    return Config(**raw_config)
