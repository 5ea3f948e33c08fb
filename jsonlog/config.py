"""Configuration manager: YAML file merged over defaults, plus env overrides."""

import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)

SECTION = "jsonlog"

ENV_PREFIX = "JSONLOG_"


def parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def split_list(value) -> list[str]:
    """Normalize a YAML list or a comma-separated string to a list of strings."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    return [str(item).strip() for item in items if str(item).strip()]


class Config:
    """Section/key configuration provider.

    Values live in named sections; the logger reads the ``jsonlog`` section.
    ``set()`` only changes the in-memory copy, it never rewrites the YAML file.
    """

    DEFAULTS = {
        SECTION: {
            "threshold": 4,
            "truncate": 32,
            "siteid": "",
            "type": "webapp",
            "subtype": "component",
            "path": "",
            "file_time": "Ymd",
            "canonical": "",
            "tags": "",
            "reverse_proxy_addresses": "",
            "reverse_proxy_header": "X-Forwarded-For",
            "format": "compact",
            "timestamp_utc": False,
            "column_sequence": "event,request,site",
            "skip_empty_columns": [
                "canonical",
                "tags",
                "referer",
                "clientIp",
                "userAgent",
                "correlationId",
                "exception",
                "truncation",
                "user",
                "session",
            ],
        },
    }

    def __init__(self, config_path=None, environ=None):
        self._config = copy.deepcopy(self.DEFAULTS)
        env = os.environ if environ is None else environ

        if config_path is None:
            config_path = env.get(ENV_PREFIX + "CONFIG")
        self.path = config_path

        if config_path is not None:
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
            except FileNotFoundError:
                logger.warning("Config file %s not found, using defaults", config_path)
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", config_path)

        self._apply_env(env)

    @staticmethod
    def _deep_merge(base, override):
        """Recursively merge override dict into base dict."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    def _apply_env(self, env) -> None:
        """JSONLOG_<KEY> overrides a key of the default section."""
        section = self._config.setdefault(SECTION, {})
        for name, value in env.items():
            if not name.startswith(ENV_PREFIX) or name == ENV_PREFIX + "CONFIG":
                continue
            key = name[len(ENV_PREFIX):].lower()
            if key:
                section[key] = value

    def get(self, section, key, default=None):
        """Get a key of a section; default when either is missing."""
        values = self._config.get(section or SECTION)
        if not isinstance(values, dict):
            return default
        return values.get(key, default)

    def set(self, section, key, value) -> bool:
        self._config.setdefault(section or SECTION, {})[key] = value
        return True

    def section(self, name=SECTION) -> dict:
        """Return a copy of a whole section."""
        return copy.deepcopy(self._config.get(name, {}))

    def __contains__(self, section):
        return section in self._config
