"""Configuration manager: YAML file merged over defaults, then env overrides."""

import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def _merge_into(target, override, prefix=""):
    """Merge a parsed YAML mapping into ``target`` in place.

    A section that the file replaces with a non-mapping value keeps its
    defaults, so every section stays a dict.
    """
    for key, value in override.items():
        current = target.get(key)
        if isinstance(current, dict):
            if isinstance(value, dict):
                _merge_into(current, value, f"{prefix}{key}.")
            else:
                logger.warning("Ignoring config %s%s: expected a section, got %r", prefix, key, value)
        else:
            target[key] = copy.deepcopy(value)


class Config:
    """Loads settings from YAML and merges them with defaults."""

    DEFAULTS = {
        "server": {
            "host": "0.0.0.0",
            "port": 5000,
            "debug": False,
        },
        "storage": {
            "max_records": 0,  # 0 = unbounded
        },
        "parser": {
            "type": "plain",
            "pattern": "",
            "fields": {},
            "timeFormat": "",
            "fieldTypes": {},
            "storeUnparsed": False,
        },
        "timeline": {
            "default_bucket_ms": 60000,
        },
        "logging": {
            "level": "INFO",
        },
    }

    # env var -> (section, key, converter)
    ENV_OVERRIDES = {
        "SERVER_HOST": ("server", "host", str),
        "SERVER_PORT": ("server", "port", int),
        "SERVER_DEBUG": ("server", "debug", _parse_bool),
        "MAX_RECORDS": ("storage", "max_records", int),
        "LOGLENS_LOG_LEVEL": ("logging", "level", str.upper),
    }

    def __init__(self, config_path=None, environ=None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_path is not None:
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    _merge_into(self._config, user_config)
                logger.info("Loaded config from %s", config_path)
            except FileNotFoundError:
                logger.info("Config file %s not found, using defaults", config_path)
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", config_path)

        self._apply_env(os.environ if environ is None else environ)

    @classmethod
    def load(cls, config_path=None):
        """Build a Config from ``config_path`` or the ``CONFIG_PATH`` env var."""
        return cls(config_path or os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH))

    def _apply_env(self, environ):
        for var, (section, key, convert) in self.ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None:
                continue
            try:
                self._config[section][key] = convert(raw)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", var, raw)

    def get(self, path, default=None):
        """Look up a setting; dots descend into sections (``server.port``)."""
        current = self._config
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
