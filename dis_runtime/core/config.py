"""
Runtime configuration.

Defaults come from a YAML file (config/dis_runtime.yaml unless another
path is given); environment variables override individual keys so the
same image can join different exercises without editing files.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "dis_runtime.yaml"

# Environment variable -> config key
ENV_OVERRIDES: dict[str, str] = {
    "DIS_BIND_ADDRESS": "bind_address",
    "DIS_PORT": "port",
    "DIS_BROADCAST_ADDRESS": "broadcast_address",
    "DIS_EXERCISE_ID": "exercise_id",
    "DIS_HEARTBEAT_S": "heartbeat_timeout_s",
    "DIS_TICK_HZ": "tick_rate_hz",
    "DIS_DEAD_RECKONING": "dead_reckoning_enabled",
    "DIS_FILTER_EXERCISE": "filter_exercise",
    "DIS_SPEED": "speed",
}


class ConfigError(ValueError):
    """Configuration file or override could not be used."""


@dataclass
class RuntimeConfig:
    """Settings for one DIS receiver instance."""
    bind_address: str = "0.0.0.0"
    port: int = 3000
    broadcast_address: str = "255.255.255.255"
    exercise_id: int = 1
    filter_exercise: bool = False
    heartbeat_timeout_s: float = 12.0
    tick_rate_hz: float = 30.0
    dead_reckoning_enabled: bool = True
    speed: float = 1.0
    console_interval_s: float = 5.0

    def __post_init__(self) -> None:
        if not 0 <= self.exercise_id <= 255:
            raise ConfigError(f"exercise_id must fit in a byte, got {self.exercise_id}")
        if not 0 < self.port <= 65535:
            raise ConfigError(f"port out of range: {self.port}")
        if self.heartbeat_timeout_s <= 0:
            raise ConfigError(f"heartbeat_timeout_s must be positive, got {self.heartbeat_timeout_s}")
        if self.tick_rate_hz <= 0:
            raise ConfigError(f"tick_rate_hz must be positive, got {self.tick_rate_hz}")

    @property
    def tick_interval_s(self) -> float:
        return 1.0 / self.tick_rate_hz

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "RuntimeConfig":
        known = {f.name: f for f in fields(cls)}
        unknown = set(d) - set(known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**{k: _coerce(v, known[k].type) for k, v in d.items() if k in known})


def _coerce(value: Any, type_name: Any) -> Any:
    """Convert YAML or environment values to the field's declared type."""
    type_name = getattr(type_name, "__name__", type_name)
    try:
        if type_name == "bool":
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if type_name == "int":
            return int(value)
        if type_name == "float":
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Cannot convert {value!r} to {type_name}") from e
    return str(value)


def load_config(path: str | Path | None = None, environ: dict[str, str] | None = None) -> RuntimeConfig:
    """Load YAML defaults then apply environment overrides."""
    path = Path(path) if path else DEFAULT_CONFIG_PATH
    environ = os.environ if environ is None else environ

    data: dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{path}: expected a mapping at top level")
        section = (loaded.get("dis") or {}) if "dis" in loaded else loaded
        if not isinstance(section, dict):
            raise ConfigError(f"{path}: expected a mapping under 'dis'")
        data.update(section)
        logger.info(f"Loaded config from {path}")
    else:
        logger.info(f"No config file at {path}, using defaults")

    for env_key, key in ENV_OVERRIDES.items():
        if env_key in environ:
            data[key] = environ[env_key]
            logger.debug(f"Config override {key} from {env_key}")

    return RuntimeConfig.from_dict(data)
