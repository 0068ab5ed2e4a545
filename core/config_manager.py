"""
Configuration Management System for the favorites app
"""

import os
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Mapping
from enum import Enum

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ValidationError, field_validator

logger = logging.getLogger('favorites.core.config_manager')

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
SETTINGS_BACKENDS = ['memory', 'json', 'sqlite']

class Environment(Enum):
    """Supported deployment environments"""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"

class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing"""
    pass

class AppConfiguration(BaseModel):
    """Application configuration model with Pydantic validation"""

    # Settings store
    settings_backend: str = "json"
    settings_path: str = "favorites_settings.json"
    favorites_key: str = "favorites"

    # Favorites policy
    prune_dangling_on_load: bool = False

    # Logging
    log_level: str = "INFO"
    log_file_path: Optional[str] = None
    log_max_bytes: int = 1024 * 1024  # 1MB
    log_backup_count: int = 3

    @field_validator('settings_backend')
    @classmethod
    def validate_settings_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in SETTINGS_BACKENDS:
            raise ValueError(f'settings_backend must be one of {SETTINGS_BACKENDS}')
        return v

    @field_validator('favorites_key')
    @classmethod
    def validate_favorites_key(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('favorites_key must not be empty')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f'log_level must be one of {VALID_LOG_LEVELS}')
        return v.upper()

    @field_validator('log_max_bytes', 'log_backup_count')
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError('must not be negative')
        return v

class ConfigurationManager:
    """
    Centralized configuration management system.

    Sources, lowest precedence first:
      1. config/default.yaml
      2. config/<environment>.yaml
      3. .env in the base path
      4. process environment variables
    """

    # Map environment variables to configuration keys; pydantic does the type coercion
    ENV_MAPPINGS = {
        'FAVORITES_SETTINGS_BACKEND': 'settings_backend',
        'FAVORITES_SETTINGS_PATH': 'settings_path',
        'FAVORITES_KEY': 'favorites_key',
        'FAVORITES_PRUNE_DANGLING': 'prune_dangling_on_load',
        'LOG_LEVEL': 'log_level',
        'LOG_FILE_PATH': 'log_file_path',
    }

    def __init__(self, base_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None):
        self.base_path = Path(base_path) if base_path else Path.cwd()
        self.config_dir = self.base_path / "config"
        self._environ = environ if environ is not None else os.environ
        self.environment = self._detect_environment()
        self._configuration: Optional[AppConfiguration] = None

        logger.debug(f"ConfigurationManager initialized for environment: {self.environment.value}")

    def load_configuration(self) -> AppConfiguration:
        """
        Load and validate configuration from all sources.

        Returns:
            Validated configuration object

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config_data = self._load_base_configuration()
        config_data = self._apply_environment_overrides(config_data)
        config_data = self._apply_env_file(config_data)
        config_data = self._apply_environment_variables(config_data)

        try:
            self._configuration = AppConfiguration(**config_data)
        except ValidationError as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}") from e

        logger.info("Configuration loaded successfully")
        return self._configuration

    def get_configuration(self) -> AppConfiguration:
        """Get current configuration, loading if necessary"""
        if self._configuration is None:
            return self.load_configuration()
        return self._configuration

    def reload_configuration(self) -> AppConfiguration:
        """Reload configuration from sources"""
        self._configuration = None
        return self.load_configuration()

    def get_config_value(self, key: str, default: Any = None) -> Any:
        """Get a specific configuration value, or default when unknown."""
        return getattr(self.get_configuration(), key, default)

    def validate_configuration(self, config_data: Dict[str, Any]) -> bool:
        """Validate configuration data without loading."""
        try:
            AppConfiguration(**config_data)
            return True
        except ValidationError:
            return False

    def _detect_environment(self) -> Environment:
        """Detect current environment from FAVORITES_ENVIRONMENT"""
        env_var = self._environ.get('FAVORITES_ENVIRONMENT', '').lower()
        if env_var:
            try:
                return Environment(env_var)
            except ValueError:
                logger.warning(f"Unknown environment '{env_var}', using development")

        return Environment.DEVELOPMENT

    def _load_base_configuration(self) -> Dict[str, Any]:
        """Load base configuration from config/default.yaml"""
        config_data: Dict[str, Any] = {}

        default_config_path = self.config_dir / "default.yaml"
        if default_config_path.exists():
            config_data.update(self._load_yaml_file(default_config_path))
            logger.debug(f"Loaded base configuration from {default_config_path}")

        return config_data

    def _apply_environment_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment-specific configuration overrides"""
        env_config_path = self.config_dir / f"{self.environment.value}.yaml"
        if env_config_path.exists():
            config_data = self._deep_merge(config_data, self._load_yaml_file(env_config_path))
            logger.debug(f"Applied environment overrides from {env_config_path}")

        return config_data

    def _apply_env_file(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply values from a .env file in the base path"""
        env_file = self.base_path / '.env'
        if env_file.exists():
            values = dotenv_values(env_file)
            config_data = self._apply_mapped_values(config_data, values)
            logger.debug("Loaded configuration from .env file")

        return config_data

    def _apply_environment_variables(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides"""
        return self._apply_mapped_values(config_data, self._environ)

    def _apply_mapped_values(self, config_data: Dict[str, Any], values: Mapping[str, Optional[str]]) -> Dict[str, Any]:
        result = dict(config_data)
        for env_var, config_key in self.ENV_MAPPINGS.items():
            env_value = values.get(env_var)
            if env_value is not None:
                result[config_key] = env_value
                logger.debug(f"Applied environment variable {env_var} -> {config_key}")
        return result

    def _load_yaml_file(self, path: Path) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load YAML file {path}: {e}")
            raise ConfigurationError(f"Failed to load YAML file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"YAML file {path} must contain a mapping")
        return data

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
