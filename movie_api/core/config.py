"""
Configuration for the movie API.

Values come from three layers, later ones winning:

1. ``config.yaml`` (or the file named by ``MOVIE_API_CONFIG``)
2. ``config.{env}.yaml`` beside it, deep-merged
3. deployment environment variables listed in ENV_OVERRIDES

Runtime overrides set with ``Config.set`` shadow all three until removed.
Keys are addressed with dots, e.g. ``rate_limit.auth.max``.
"""

import copy
import os
import yaml
from threading import RLock
from typing import Any, Dict, Optional
from pathlib import Path
from loguru import logger

from .exceptions import ConfigurationError


_MISSING = object()

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / 'config.yaml'

# Environment variable -> dotted key
ENV_OVERRIDES: Dict[str, str] = {
    'REDIS_HOST': 'redis.host',
    'REDIS_PORT': 'redis.port',
    'REDIS_PASSWORD': 'redis.password',
    'REDIS_DB': 'redis.db',
    'REDIS_URL': 'redis.url',
    'MEILISEARCH_HOST': 'search.host',
    'MEILISEARCH_API_KEY': 'search.api_key',
    'LOG_LEVEL': 'logging.level',
    'ADMIN_API_TOKEN': 'admin.api_token',
}

TRUTHY = ('true', '1', 'yes', 'on')


def _lookup(tree: Dict, dotted: str) -> Any:
    node = tree
    for part in dotted.split('.'):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(dotted)
        node = node[part]
    return node


def _assign(tree: Dict, dotted: str, value: Any) -> None:
    *parents, leaf = dotted.split('.')
    node = tree
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = value


def _deep_merge(target: Dict, incoming: Dict) -> None:
    """Merge incoming into target in place; nested dicts merge, anything else replaces."""
    for key, value in incoming.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
        else:
            target[key] = value


def _coerce(dotted: str, value: Any, expected_type: type) -> Any:
    if value is None:
        return None
    if expected_type is bool and isinstance(value, str):
        return value.strip().lower() in TRUTHY
    if expected_type in (int, float):
        try:
            return expected_type(value)
        except (ValueError, TypeError):
            raise TypeError(
                f"Cannot convert '{dotted}' value to {expected_type.__name__}: {value!r}"
            )
    if not isinstance(value, expected_type):
        raise TypeError(
            f"Configuration key '{dotted}' is {type(value).__name__}, "
            f"expected {expected_type.__name__}"
        )
    return value


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in {path}: {e}",
            details={'path': str(path)}
        )
    return loaded or {}


class Config:
    """
    Layered, thread-safe configuration.

    Example:
        >>> cfg = Config(env="production")
        >>> cfg.get('redis.port', default=6379, expected_type=int)
        >>> cfg.set('rate_limit.api.max', 200)
    """

    def __init__(self, config_path: Optional[str] = None, env: Optional[str] = None):
        """
        Args:
            config_path: Base YAML file. Falls back to ``MOVIE_API_CONFIG``,
                then to config.yaml at the project root. Only an explicitly
                named file is required to exist.
            env: Overlay name; defaults to the ``ENV`` variable, then "development"
        """
        self._lock = RLock()
        self._base_config: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = {}
        self.env = env or os.getenv('ENV', 'development')

        named = config_path or os.getenv('MOVIE_API_CONFIG')
        self._config_path = Path(named) if named else DEFAULT_CONFIG_PATH
        self._required = named is not None

        self._load_config()

    @property
    def path(self) -> Path:
        return self._config_path

    def _load_config(self) -> None:
        if self._config_path.exists():
            merged = _read_yaml(self._config_path)
            logger.info(f"Configuration loaded from {self._config_path}")
        elif self._required:
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}",
                details={'path': str(self._config_path)}
            )
        else:
            logger.warning(f"No configuration file at {self._config_path}; using defaults")
            merged = {}

        overlay = self._config_path.with_name(f'config.{self.env}.yaml')
        if overlay.exists():
            _deep_merge(merged, _read_yaml(overlay))
            logger.info(f"Applied {self.env} overlay from {overlay}")

        for env_name, dotted in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if raw:
                _assign(merged, dotted, raw)
                logger.debug(f"'{dotted}' set from ${env_name}")

        self._base_config = merged

    def get(
        self,
        key_path: str,
        default: Any = _MISSING,
        expected_type: Optional[type] = None
    ) -> Any:
        """
        Read a dotted key, checking runtime overrides before the loaded layers.

        Args:
            key_path: Dotted key, e.g. 'cache.ttl.short'
            default: Returned when the key is absent; None counts as a default
            expected_type: Convert or check the value (bool accepts
                "true"/"1"/"yes"/"on", int and float are cast)

        Raises:
            ConfigurationError: Key absent and no default given
            TypeError: Value cannot be made into expected_type
        """
        with self._lock:
            for layer in (self._overrides, self._base_config):
                try:
                    value = _lookup(layer, key_path)
                    break
                except KeyError:
                    continue
            else:
                if default is _MISSING:
                    raise ConfigurationError(
                        f"Configuration key '{key_path}' not found and no default provided",
                        config_key=key_path
                    )
                value = default

        if expected_type is None:
            return value
        return _coerce(key_path, value, expected_type)

    def set(self, key_path: str, value: Any) -> None:
        """Install a runtime override."""
        with self._lock:
            _assign(self._overrides, key_path, value)
        logger.info(f"Configuration override set: {key_path} = {value}")

    def remove_override(self, key_path: str) -> bool:
        """Drop one runtime override; False if it was not set."""
        *parents, leaf = key_path.split('.')
        with self._lock:
            try:
                node = _lookup(self._overrides, '.'.join(parents)) if parents else self._overrides
            except KeyError:
                return False
            if not isinstance(node, dict) or leaf not in node:
                return False
            del node[leaf]
        logger.info(f"Configuration override removed: {key_path}")
        return True

    def clear_overrides(self) -> None:
        with self._lock:
            self._overrides.clear()
        logger.info("All configuration overrides cleared")

    def reload(self) -> None:
        """Re-read files and environment; runtime overrides survive."""
        with self._lock:
            self._load_config()

    def to_dict(self) -> Dict[str, Any]:
        """Effective configuration as a detached dict."""
        with self._lock:
            result = copy.deepcopy(self._base_config)
            _deep_merge(result, copy.deepcopy(self._overrides))
        return result


config = Config()
