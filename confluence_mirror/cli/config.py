"""YAML configuration loading and validation.

Configuration lives in `.confluence-mirror/config.yaml` by default. Every
key is optional in the file except `space_key`, which may instead come from
the command line; command-line values always override file values.

Configuration file structure:
    space_key: "TEAM"
    root_page_id: "123456"
    output_dir: "./confluence-export"
    concurrency: 4
    limit: null
    checkpoint_interval: 25
    request_timeout: 30
    retry:
      max_attempts: 5
      base_delay_ms: 500
      max_delay_ms: 30000
      jitter_ratio: 0.2
    failure_threshold:
      max_failures: null
      max_failure_ratio: null
    discovery:
      follow_links: true
      include_attachments: true
      include_users: true
"""

import logging
import os
from typing import Any, Dict, Optional

import yaml

from confluence_mirror.confluence_client import RetryPolicy
from confluence_mirror.pipeline import FailureThreshold

from .errors import ConfigError, ConfigNotFoundError
from .models import ExportConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".confluence-mirror/config.yaml"

MAX_CONCURRENCY = 32


class ConfigLoader:
    """Loads the config file and merges command-line overrides into it."""

    # Default values for optional top-level fields
    DEFAULTS = {
        'root_page_id': None,
        'output_dir': './confluence-export',
        'concurrency': 4,
        'limit': None,
        'checkpoint_interval': 25,
        'request_timeout': 30,
    }

    RETRY_DEFAULTS = {
        'max_attempts': 5,
        'base_delay_ms': 500,
        'max_delay_ms': 30000,
        'jitter_ratio': 0.2,
    }

    THRESHOLD_DEFAULTS = {
        'max_failures': None,
        'max_failure_ratio': None,
    }

    DISCOVERY_DEFAULTS = {
        'follow_links': True,
        'include_attachments': True,
        'include_users': True,
    }

    KNOWN_FIELDS = {'space_key', 'retry', 'failure_threshold', 'discovery'} | set(DEFAULTS)

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> ExportConfig:
        """Load configuration and apply overrides.

        Args:
            config_path: Explicit config file; when None the default path is
                used if it exists
            overrides: Command-line values; None values are ignored. Keys of
                the nested sections are accepted flat (e.g. `max_failures`)

        Returns:
            Validated ExportConfig

        Raises:
            ConfigNotFoundError: If an explicit config file does not exist
            ConfigError: If the file or a value is invalid
        """
        raw: Dict[str, Any] = {}
        if config_path is not None:
            if not os.path.exists(config_path):
                raise ConfigNotFoundError(config_path)
            raw = cls._read(config_path)
        elif os.path.exists(DEFAULT_CONFIG_PATH):
            raw = cls._read(DEFAULT_CONFIG_PATH)
        else:
            logger.debug(f"No config file at {DEFAULT_CONFIG_PATH}, using defaults")

        return cls._parse_config(raw, overrides or {})

    @staticmethod
    def _read(config_path: str) -> Dict[str, Any]:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot read {config_path}: {e}")

        try:
            config_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {str(e)}")

        if config_dict is None:
            return {}
        if not isinstance(config_dict, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(config_dict).__name__}"
            )
        logger.debug(f"Loaded configuration from {config_path}")
        return config_dict

    @classmethod
    def _parse_config(cls, raw: Dict[str, Any], overrides: Dict[str, Any]) -> ExportConfig:
        """Validate the raw mapping and build an ExportConfig.

        Raises:
            ConfigError: If configuration is invalid
        """
        unknown = set(raw) - cls.KNOWN_FIELDS
        if unknown:
            logger.warning(f"Ignoring unknown config field(s): {', '.join(sorted(unknown))}")

        overrides = {key: value for key, value in overrides.items() if value is not None}

        values = dict(cls.DEFAULTS)
        values.update({key: raw[key] for key in cls.DEFAULTS if key in raw})
        values['space_key'] = raw.get('space_key')
        values.update({key: overrides[key] for key in list(cls.DEFAULTS) + ['space_key'] if key in overrides})

        retry = cls._section(raw, 'retry', cls.RETRY_DEFAULTS, overrides)
        threshold = cls._section(raw, 'failure_threshold', cls.THRESHOLD_DEFAULTS, overrides)
        discovery = cls._section(raw, 'discovery', cls.DISCOVERY_DEFAULTS, overrides)

        space_key = values['space_key']
        if not isinstance(space_key, str) or not space_key.strip():
            raise ConfigError("A space key is required (config 'space_key' or --space)", 'space_key')

        root_page_id = values['root_page_id']
        if root_page_id is not None:
            root_page_id = str(root_page_id).strip()
            if not root_page_id.isdigit():
                raise ConfigError(f"Must be a numeric page ID, got '{root_page_id}'", 'root_page_id')

        output_dir = values['output_dir']
        if not isinstance(output_dir, str) or not output_dir.strip():
            raise ConfigError("Must be a non-empty path", 'output_dir')

        for flag in cls.DISCOVERY_DEFAULTS:
            if not isinstance(discovery[flag], bool):
                raise ConfigError("Must be true or false", f"discovery.{flag}")

        try:
            retry_policy = RetryPolicy(
                max_attempts=cls._int(retry['max_attempts'], 'retry.max_attempts', minimum=1),
                base_delay_ms=cls._int(retry['base_delay_ms'], 'retry.base_delay_ms', minimum=0),
                max_delay_ms=cls._int(retry['max_delay_ms'], 'retry.max_delay_ms', minimum=0),
                jitter_ratio=cls._float(retry['jitter_ratio'], 'retry.jitter_ratio'),
            )
            failure_threshold = FailureThreshold(
                max_failures=cls._optional_int(threshold['max_failures'], 'max_failures'),
                max_failure_ratio=cls._optional_float(threshold['max_failure_ratio'], 'max_failure_ratio'),
            )
        except ValueError as e:
            raise ConfigError(str(e))

        return ExportConfig(
            space_key=space_key.strip(),
            root_page_id=root_page_id,
            output_dir=output_dir,
            concurrency=cls._int(values['concurrency'], 'concurrency', minimum=1, maximum=MAX_CONCURRENCY),
            limit=cls._optional_int(values['limit'], 'limit'),
            checkpoint_interval=cls._int(values['checkpoint_interval'], 'checkpoint_interval', minimum=1),
            request_timeout=cls._int(values['request_timeout'], 'request_timeout', minimum=1),
            retry=retry_policy,
            threshold=failure_threshold,
            follow_links=discovery['follow_links'],
            include_attachments=discovery['include_attachments'],
            include_users=discovery['include_users'],
        )

    @staticmethod
    def _section(
        raw: Dict[str, Any],
        name: str,
        defaults: Dict[str, Any],
        overrides: Dict[str, Any],
    ) -> Dict[str, Any]:
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"Must be a mapping, got {type(section).__name__}", name)
        merged = dict(defaults)
        merged.update({key: section[key] for key in defaults if key in section})
        merged.update({key: overrides[key] for key in defaults if key in overrides})
        return merged

    @staticmethod
    def _int(value: Any, field_name: str, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
        # bool is an int subclass; `concurrency: yes` is a mistake, not 1
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"Must be an integer, got '{value}'", field_name)
        if minimum is not None and value < minimum:
            raise ConfigError(f"Must be at least {minimum}, got {value}", field_name)
        if maximum is not None and value > maximum:
            raise ConfigError(f"Must be at most {maximum}, got {value}", field_name)
        return value

    @classmethod
    def _optional_int(cls, value: Any, field_name: str) -> Optional[int]:
        if value is None:
            return None
        return cls._int(value, field_name, minimum=0)

    @staticmethod
    def _float(value: Any, field_name: str) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"Must be a number, got '{value}'", field_name)
        return float(value)

    @classmethod
    def _optional_float(cls, value: Any, field_name: str) -> Optional[float]:
        if value is None:
            return None
        result = cls._float(value, field_name)
        if not 0 <= result <= 1:
            raise ConfigError(f"Must be between 0 and 1, got {value}", field_name)
        return result
