"""Configuration management utilities."""

import os
from pathlib import Path
from typing import Any

import yaml

from ..models.config import Config


class ConfigManager:
    """Manages library configuration from files and environment variables."""

    # Environment variable -> (section, key, converter)
    ENV_MAPPINGS = {
        "MIP_DSL_LOG_LEVEL": ("logging", "level", str),
        "MIP_DSL_SOLVER_DEFAULT": ("solvers", "default", str),
        "MIP_DSL_SOLVER_TIMEOUT": ("solvers", "timeout", int),
        "MIP_DSL_VALIDATION_TOLERANCE": ("validation", "tolerance", float),
    }

    def __init__(self, config_path: str | None = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to config directory or file. If None, uses default.
        """
        self.config_dir = self._resolve_config_path(config_path)
        self.config = self._load_config()

    def _resolve_config_path(self, config_path: str | None) -> Path:
        """Resolve configuration directory path."""
        if config_path:
            path = Path(config_path)
            if path.is_file():
                return path.parent
            return path

        # Default: use config directory relative to this module
        return Path(__file__).parent.parent / "config"

    def _load_config(self) -> Config:
        """Load configuration from files and environment variables."""
        config_data = self._load_yaml("default.yaml")

        env = os.getenv("ENVIRONMENT", "").lower()
        if env and env != "default":
            env_config = self._load_yaml(f"{env}.yaml")
            config_data = self._merge_dict(config_data, env_config)

        self._apply_env_vars(config_data)

        return Config.from_dict(config_data)

    def _load_yaml(self, filename: str) -> dict[str, Any]:
        """Load YAML configuration file."""
        config_path = self.config_dir / filename
        if not config_path.exists():
            if filename == "default.yaml":
                raise FileNotFoundError(f"Default config file not found: {config_path}")
            return {}

        try:
            with open(config_path, encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
        except OSError as e:
            raise ValueError(f"Error loading config file {config_path}: {e}") from e

    def _merge_dict(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dict(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_vars(self, config_data: dict[str, Any]) -> None:
        """Apply environment variable overrides."""
        for env_var, (section, key, convert) in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            section_data = config_data.setdefault(section, {})
            try:
                section_data[key] = convert(value)
            except ValueError:
                # Keep the file value if the override does not parse
                continue

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "solvers.timeout")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.config.model_dump()

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_config(self) -> Config:
        """Get the complete configuration object."""
        return self.config

    def solver_config(self) -> dict[str, Any]:
        """Configuration dictionary handed to solver adapters."""
        config = self.config.solvers.model_dump()
        config["max_variables"] = self.config.validation.max_variables
        config["max_constraints"] = self.config.validation.max_constraints
        return config
