"""Configuration loader - reads config/autopilot.yaml, then APP_* environment overrides."""
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

DEFAULT_CONFIG_PATH = Path("config") / "autopilot.yaml"
DEFAULT_COMPOSE_FILE = "docker-compose.yaml"

# Top-level scalar settings that can be overridden as APP_<NAME>
ENV_PREFIX = "APP_"
_ENV_KEYS = ("host", "port", "package_filter_mode")


class ConfigError(ValueError):
    """Config could not be loaded. Fatal at startup."""


class ProjectConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")
    token: str
    location: str
    compose_file: str = DEFAULT_COMPOSE_FILE
    package_names: frozenset[str] | None = None

    @property
    def compose_path(self) -> Path:
        """Target reference handed to the actuator."""
        return Path(self.location) / self.compose_file


class ActuatorConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")
    settle_delay: float = 5.0
    compose_command: list[str] = ["docker", "compose"]
    command_timeout: float | None = None
    stop_on_refresh_failure: bool = False


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")
    host: str = "localhost"
    port: int = 5000
    package_filter_mode: Literal["allow", "deny"] = "allow"
    actuator: ActuatorConfig = ActuatorConfig()
    projects: list[ProjectConfig] = []


def _env_overrides(environ) -> dict:
    overrides = {}
    for key in _ENV_KEYS:
        value = environ.get(ENV_PREFIX + key.upper())
        if value:
            overrides[key] = value
    return overrides


def default_config_path() -> Path:
    return Path(os.getenv("APP_CONFIG") or DEFAULT_CONFIG_PATH)


def load_config(path: Path | None = None, environ=None) -> AppConfig:
    """Load config: defaults, then the YAML file if present, then APP_* env vars."""
    config_path = Path(path) if path else default_config_path()
    environ = os.environ if environ is None else environ

    data: dict = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path}: top level must be a mapping")

    try:
        return AppConfig(**{**data, **_env_overrides(environ)})
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {config_path}: {e}") from e
