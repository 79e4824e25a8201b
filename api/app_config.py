"""
Application configuration for the ChainSensor backend.

Settings are resolved in this order (later wins):
1. Built-in defaults
2. app_settings.json in the config folder
3. Environment variables (CHAINSENSOR_*; SUPABASE_URL / SUPABASE_ANON_KEY
   are accepted for the two Supabase settings)

The config folder location is determined by (in order of priority):
1. CHAINSENSOR_CONFIG environment variable
2. Default platform-specific location:
   - Linux/macOS: ~/.chainsensor/
   - Windows: %APPDATA%/chainsensor/
"""

import json
import os
import sys
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigError
from .shared.logger import get_logger

logger = get_logger(__name__)

_CONFIG_DIR_NAME = "chainsensor"
_SETTINGS_FILE_NAME = "app_settings.json"
_ENV_PREFIX = "CHAINSENSOR_"

# Un-prefixed names used by the hosted project templates
_ENV_ALIASES = {
    "supabase_url": "SUPABASE_URL",
    "supabase_anon_key": "SUPABASE_ANON_KEY",
}


@dataclass
class AppSettings:
    """Resolved backend settings."""
    supabase_url: str = ""
    supabase_anon_key: str = ""
    api_base_url: str = "https://api.chainsensor.com/v1"
    storage_limit_gb: float = 10.0
    processing_delay: float = 2.0
    deployment_delay: float = 3.0
    activity_limit: int = 10
    request_timeout: float = 10.0
    log_level: str = "INFO"

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if redact and data["supabase_anon_key"]:
            data["supabase_anon_key"] = "***"
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        settings = cls()
        for f in fields(cls):
            if f.name in data and data[f.name] is not None:
                setattr(settings, f.name, _coerce(f.name, data[f.name], type(getattr(settings, f.name))))
        return settings

    def validate(self) -> None:
        """Raise ConfigError when the hosted store cannot be reached."""
        missing = [name for name in ("supabase_url", "supabase_anon_key") if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Missing Supabase settings: {', '.join(missing)}")
        if self.activity_limit < 1:
            raise ConfigError("activity_limit must be at least 1")


def _coerce(name: str, value: Any, target: type) -> Any:
    try:
        if target is str:
            return str(value)
        return target(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from e


class AppConfigManager:
    """Loads settings from the config folder and the environment."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self._environ = os.environ if environ is None else environ
        self._config_dir = self._get_config_dir()
        self._app_settings_path = self._config_dir / _SETTINGS_FILE_NAME

    def _get_config_dir(self) -> Path:
        env_config = self._environ.get("CHAINSENSOR_CONFIG")
        if env_config:
            return Path(env_config)
        return self._get_default_config_dir()

    def _get_default_config_dir(self) -> Path:
        """Get the default platform-specific config directory."""
        if sys.platform == "win32":
            appdata = self._environ.get("APPDATA")
            if appdata:
                return Path(appdata) / _CONFIG_DIR_NAME
            return Path.home() / "AppData" / "Roaming" / _CONFIG_DIR_NAME
        else:
            return Path.home() / f".{_CONFIG_DIR_NAME}"

    def _load_file_settings(self) -> Dict[str, Any]:
        if not self._app_settings_path.exists():
            return {}
        try:
            data = json.loads(self._app_settings_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read {self._app_settings_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{self._app_settings_path} must contain a JSON object")
        return data

    def _load_env_settings(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(AppSettings):
            value = self._environ.get(f"{_ENV_PREFIX}{f.name.upper()}")
            if value is None and f.name in _ENV_ALIASES:
                value = self._environ.get(_ENV_ALIASES[f.name])
            if value is not None and value != "":
                data[f.name] = value
        return data

    def load_settings(self) -> AppSettings:
        """Resolve settings from defaults, the settings file and the environment."""
        data = self._load_file_settings()
        data.update(self._load_env_settings())
        settings = AppSettings.from_dict(data)
        logger.debug("Loaded settings from %s", self._app_settings_path)
        return settings


def load_settings() -> AppSettings:
    """Settings for the current process environment."""
    return AppConfigManager().load_settings()
