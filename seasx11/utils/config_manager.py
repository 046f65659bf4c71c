"""
Run configuration files for seasonal adjustment.
"""

import yaml
import json
import logging
import jsonschema
from pathlib import Path
from typing import Dict, Any, Optional

from seasx11.decomposition.structs import X11Config
from seasx11.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "x11_config_schema.json"


class ConfigManager:
    """
    Loads, validates and merges run configurations.

    A run configuration is a YAML or JSON document with an ``x11`` section
    holding the X11Config settings, plus any sections the calling
    application needs (e.g. ``logging``).
    """

    def __init__(self, config_dir: Optional[str] = None, schema_dir: Optional[str] = None):
        self.config_dir = Path(config_dir) if config_dir else Path("config")
        self.schema_dir = Path(schema_dir) if schema_dir else self.config_dir / "schemas"

    def load_config(self, config_name: str, schema_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Load a configuration file (YAML or JSON).
        Optionally validate against a schema.

        Args:
            config_name: Name of config file (e.g. 'x11_config.yaml')
            schema_name: Name of schema file (e.g. 'x11_config_schema.json')

        Returns:
            Loaded configuration dictionary
        """
        config_path = self.config_dir / config_name

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "r") as f:
            if config_path.suffix in (".yaml", ".yml"):
                config = yaml.safe_load(f)
            elif config_path.suffix == ".json":
                config = json.load(f)
            else:
                raise ConfigurationError(f"Unsupported configuration format: {config_path.suffix}")

        if config is None:
            config = {}
        if schema_name:
            self.validate_config(config, schema_name)

        logger.debug(f"Loaded configuration {config_path}")
        return config

    def validate_config(self, config: Dict[str, Any], schema_name: str = DEFAULT_SCHEMA) -> None:
        """
        Validate configuration against a JSON schema.

        Args:
            config: Configuration dictionary
            schema_name: Name of schema file in the schema directory

        Raises:
            FileNotFoundError: Schema file is missing
            ConfigurationError: Configuration violates the schema
        """
        schema_path = self.schema_dir / schema_name
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        with open(schema_path, "r") as f:
            schema = json.load(f)

        try:
            jsonschema.validate(instance=config, schema=schema)
        except jsonschema.exceptions.ValidationError as e:
            path_str = " -> ".join(str(p) for p in e.path) if e.path else "root"
            error_msg = f"Configuration validation failed at '{path_str}': {e.message}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg) from e

        logger.info(f"Configuration successfully validated against {schema_name}")

    def merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two configurations.

        Args:
            base: Base configuration
            override: Override configuration; nested dicts are merged,
                everything else replaces the base value

        Returns:
            Merged configuration (new dictionary)
        """
        merged = base.copy()
        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self.merge_configs(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get_value(self, config: Dict[str, Any], path: str, default: Any = None) -> Any:
        """
        Get a value from configuration using dot notation.

        Args:
            config: Configuration dictionary
            path: Dot-separated path (e.g., 'x11.henderson_span')
            default: Default value if path not found

        Returns:
            Value at path or default
        """
        current = config
        for key in path.split('.'):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    def set_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        """
        Set a value in configuration using dot notation.
        Creates intermediate dictionaries if they don't exist.

        Args:
            config: Configuration dictionary (modified in-place)
            path: Dot-separated path
            value: Value to set
        """
        keys = path.split('.')
        current = config
        for key in keys[:-1]:
            if key not in current or not isinstance(current[key], dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

    def build_x11_config(
        self,
        config: Dict[str, Any],
        overrides: Optional[Dict[str, Any]] = None,
    ) -> X11Config:
        """
        Turn the ``x11`` section of a run configuration into an X11Config.

        Args:
            config: Run configuration (validated or not)
            overrides: Settings merged over the ``x11`` section, e.g. from
                command line flags

        Returns:
            X11Config

        Raises:
            ConfigurationError: Missing section or invalid settings
        """
        section = self.get_value(config, "x11")
        if not isinstance(section, dict):
            raise ConfigurationError("Run configuration has no 'x11' section")
        if overrides:
            section = self.merge_configs(section, overrides)
        return X11Config.from_dict(section)
