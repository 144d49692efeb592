"""Configuration models using Pydantic for validation."""
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
import os
import socket

from bwmon.errors import ConfigError

APP_NAME = "bwmon"
VERSION = "0.0.1"

DEFAULT_DB_URL = "http://127.0.0.1:8086/write?db=bwmon"


class SourceConfig(BaseModel):
    """Tuning for the fast.com sample source."""
    url_count: int = Field(default=3, gt=0)
    max_duration_s: float = Field(default=30.0, gt=0)
    sample_interval_s: float = Field(default=0.2, gt=0)
    timeout_s: float = Field(default=10.0, gt=0)
    chunk_size: int = Field(default=64 * 1024, gt=0)

    class Config:
        frozen = True


class Config(BaseModel):
    """Root configuration model.

    Read-only after startup. Tags hold the fixed identity of this process;
    fields start empty and are filled per cycle on a Point, never here.
    """
    debug: bool = False
    interval_s: int = Field(default=300, gt=0)
    measurement: str = "bandwidth"
    tags: Dict[str, str] = Field(default_factory=dict)
    fields: Dict[str, str] = Field(default_factory=dict)
    db_url: str = DEFAULT_DB_URL

    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"
    http_timeout_s: float = Field(default=30.0, gt=0)
    metrics_port: int = Field(default=0, ge=0, le=65535)
    source: SourceConfig = Field(default_factory=SourceConfig)

    class Config:
        frozen = True

    @field_validator("measurement")
    @classmethod
    def validate_measurement(cls, v):
        """Measurement names must be non-empty."""
        if not v or not v.strip():
            raise ValueError("Measurement name must not be empty")
        return v

    @field_validator("db_url")
    @classmethod
    def validate_db_url(cls, v):
        """Only plain HTTP(S) endpoints are supported."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Database URL must be http(s): {v}")
        return v


def new_config() -> Config:
    """Return a Config with all defaults."""
    return Config()


def load_config(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Config:
    """Load and validate configuration.

    Precedence, lowest first: defaults, the YAML file, environment
    variables, explicit overrides (command-line flags). Overrides whose
    value is None are ignored.
    """
    raw_config: Dict[str, Any] = {}

    if config_path:
        import yaml

        if not os.path.exists(config_path):
            raise ConfigError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        if not isinstance(raw_config, dict):
            raise ConfigError(f"Configuration file must contain a mapping: {config_path}")

    # Apply environment variable overrides
    if env_url := os.getenv('BWMON_DB_URL'):
        raw_config['db_url'] = env_url

    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config['log_level'] = env_log_level

    for key, value in (overrides or {}).items():
        if value is not None:
            raw_config[key] = value

    try:
        return Config(**raw_config)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def resolve_hostname() -> str:
    """Return the local hostname, or raise ConfigError."""
    try:
        hostname = socket.gethostname()
    except OSError as e:
        raise ConfigError(f"Unable to determine hostname: {e}") from e

    if not hostname:
        raise ConfigError("Unable to determine hostname: empty result")
    return hostname


def with_identity_tags(config: Config, hostname: str) -> Config:
    """Return a copy of config carrying the Hostname, AppName and Version tags."""
    tags = dict(config.tags)
    tags["Hostname"] = hostname
    tags["AppName"] = APP_NAME
    tags["Version"] = VERSION
    return config.model_copy(update={"tags": tags})
