"""
Configuration management for the CHIP-8 emulator.

Settings live in a two-level mapping (section, then key) addressed with
dotted paths such as ``machine.cycles_per_frame``. Files may be JSON or
YAML; values from a file are validated against ``CONFIG_SCHEMA`` and
deep-merged over the defaults, so a file only needs the keys it changes.
"""

import os
import json
import logging
import copy
from typing import Dict, Any, Optional, List, Callable, Tuple
import yaml

from ..constants import (
    DEFAULT_CYCLES_PER_FRAME, DEFAULT_TIMER_HZ, DEFAULT_SCALE, TRACE_FORMATS,
    MAX_HISTORY_SIZE
)

logger = logging.getLogger("Chip8Emulator.ConfigManager")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_CONFIG = {
    "machine": {
        "cycles_per_frame": DEFAULT_CYCLES_PER_FRAME,
        "timer_hz": DEFAULT_TIMER_HZ,
        "seed": None
    },
    "quirks": {
        "legacy_index_add": False
    },
    "display": {
        "scale": DEFAULT_SCALE,
        "dark_mode": True
    },
    "logging": {
        "level": "WARNING",
        "file": None
    },
    "trace": {
        "enabled": False,
        "max_history": MAX_HISTORY_SIZE,
        "format": "json"
    }
}

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)

def _positive_int(value: Any) -> bool:
    return _is_int(value) and value >= 1

def _seed(value: Any) -> bool:
    return value is None or (_is_int(value) and value >= 0)

def _boolean(value: Any) -> bool:
    return isinstance(value, bool)

def _optional_path(value: Any) -> bool:
    return value is None or isinstance(value, str)

def _one_of(options: List[str]) -> Callable[[Any], bool]:
    return lambda value: value in options

# Dotted key -> (check, description of valid values)
CONFIG_SCHEMA: Dict[str, Tuple[Callable[[Any], bool], str]] = {
    "machine.cycles_per_frame": (_positive_int, "a positive integer"),
    "machine.timer_hz": (_positive_int, "a positive integer"),
    "machine.seed": (_seed, "a non-negative integer or null"),
    "quirks.legacy_index_add": (_boolean, "a boolean"),
    "display.scale": (_positive_int, "a positive integer"),
    "display.dark_mode": (_boolean, "a boolean"),
    "logging.level": (_one_of(LOG_LEVELS), "one of " + ", ".join(LOG_LEVELS)),
    "logging.file": (_optional_path, "a path or null"),
    "trace.enabled": (_boolean, "a boolean"),
    "trace.max_history": (_positive_int, "a positive integer"),
    "trace.format": (_one_of(TRACE_FORMATS), "one of " + ", ".join(TRACE_FORMATS)),
}

class ConfigManager:
    """
    Loads, validates and serves emulator settings.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: Optional JSON/YAML file applied over the defaults
        """
        self.defaults = copy.deepcopy(DEFAULT_CONFIG)
        self.config = copy.deepcopy(self.defaults)

        # Dotted keys changed from their defaults
        self.modified_keys = set()

        if config_path:
            self.load_config(config_path)

    def load_config(self, config_path: str) -> bool:
        """
        Apply a configuration file over the current settings.

        Nothing is applied if the file is missing, unreadable or invalid.

        Returns:
            True if the file was applied
        """
        try:
            user_config = self._read_file(config_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Cannot read configuration {config_path}: {e}")
            return False

        if not self.load_from_dict(user_config):
            return False

        logger.info(f"Configuration loaded from {config_path}")
        return True

    @staticmethod
    def _read_file(config_path: str) -> Dict[str, Any]:
        ext = os.path.splitext(config_path)[1].lower()

        with open(config_path, 'r') as f:
            if ext == '.json':
                data = json.load(f)
            elif ext in ('.yaml', '.yml'):
                data = yaml.safe_load(f) or {}
            else:
                raise ValueError(f"unsupported configuration format '{ext}'")

        if not isinstance(data, dict):
            raise ValueError("configuration root must be a mapping")
        return data

    def load_from_dict(self, config_dict: Dict[str, Any]) -> bool:
        """
        Validate and merge a configuration mapping.

        Returns:
            True if the mapping was valid and applied
        """
        errors = self.validate_config(config_dict)
        if errors:
            for error in errors:
                logger.error(f"Configuration validation error: {error}")
            return False

        self._merge_config(config_dict)
        return True

    def _merge_config(self, user_config: Dict[str, Any], path: str = "",
                      target: Optional[Dict[str, Any]] = None) -> None:
        if target is None:
            target = self.config

        for key, value in user_config.items():
            current_path = f"{path}.{key}" if path else key

            if isinstance(value, dict) and isinstance(target.get(key), dict):
                self._merge_config(value, current_path, target[key])
            else:
                target[key] = copy.deepcopy(value)
                self.modified_keys.add(current_path)

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Check a (possibly partial) configuration mapping.

        Unknown keys are logged and otherwise ignored.

        Returns:
            Validation error messages (empty if valid)
        """
        errors = []

        for section, values in config.items():
            if section not in self.defaults:
                logger.warning(f"Unknown configuration section: {section}")
                continue
            if not isinstance(values, dict):
                errors.append(f"Invalid {section}: {values!r}. Must be a mapping")
                continue

            for key, value in values.items():
                dotted = f"{section}.{key}"
                rule = CONFIG_SCHEMA.get(dotted)
                if rule is None:
                    logger.warning(f"Unknown configuration key: {dotted}")
                    continue

                check, expected = rule
                if not check(value):
                    errors.append(f"Invalid {dotted}: {value!r}. Must be {expected}")

        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """Value at a dotted key path, or ``default`` if absent."""
        value = self.config
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def set(self, key: str, value: Any) -> None:
        """Set the value at a dotted key path, creating sections as needed."""
        *sections, name = key.split('.')
        target = self.config
        for part in sections:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]

        target[name] = value
        self.modified_keys.add(key)
        logger.debug(f"Configuration updated: {key} = {value!r}")

    def reset(self, key: Optional[str] = None) -> None:
        """
        Restore defaults.

        Args:
            key: Dotted key to restore (None restores everything)
        """
        if key is None:
            self.config = copy.deepcopy(self.defaults)
            self.modified_keys.clear()
            return

        default_value = self._lookup(self.defaults, key)
        *sections, name = key.split('.')
        target = self.config
        for part in sections:
            if not isinstance(target.get(part), dict):
                return
            target = target[part]

        target[name] = copy.deepcopy(default_value)
        self.modified_keys.discard(key)

    @staticmethod
    def _lookup(mapping: Dict[str, Any], key: str) -> Any:
        for part in key.split('.'):
            if not isinstance(mapping, dict) or part not in mapping:
                return None
            mapping = mapping[part]
        return mapping

    def save_config(self, config_path: str, format: str = 'json') -> bool:
        """
        Write the current settings to a JSON or YAML file.

        Returns:
            True if the file was written
        """
        format = format.lower()
        if format not in ('json', 'yaml', 'yml'):
            logger.error(f"Unsupported configuration format: {format}")
            return False

        try:
            directory = os.path.dirname(config_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(config_path, 'w') as f:
                if format == 'json':
                    json.dump(self.config, f, indent=2)
                else:
                    yaml.safe_dump(self.config, f, default_flow_style=False)
        except OSError as e:
            logger.error(f"Error saving configuration: {e}")
            return False

        logger.info(f"Configuration saved to {config_path}")
        return True

    def get_modified_config(self) -> Dict[str, Any]:
        """Nested mapping holding only the keys changed from the defaults."""
        modified = {}
        for key in sorted(self.modified_keys):
            *sections, name = key.split('.')
            target = modified
            for part in sections:
                target = target.setdefault(part, {})
            target[name] = self.get(key)
        return modified

    def as_dict(self) -> Dict[str, Any]:
        """Deep copy of the full configuration."""
        return copy.deepcopy(self.config)
