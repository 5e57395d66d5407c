"""
Configuration management for the database janitor.

This module provides configuration utilities for the janitor's connection
settings, output locations, and the per-run sanitization options that
decide which tables are sanitized, trimmed, scrubbed, or excluded.
"""

import os
from copy import deepcopy
from pathlib import Path

import yaml
from pydantic import ValidationError
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .exceptions import ConfigurationError
from .models import SanitizationConfig


class JanitorConfig:
    """
    Configuration for the database janitor.

    Values come from built-in defaults, an optional YAML file, and
    environment variables, in increasing order of precedence.
    """

    # Default configuration values
    _default_config: dict[str, object] = {
        "database": {
            "url": "mysql+pymysql://root@localhost/janitor",
            "username": None,
            "password": None,
        },
        "output": "-",  # "-" is standard output
        "manifest_path": None,
        "log_level": "INFO",
        "janitor": {
            "sanitize_tables": {},
            "keep_rows": {},
            "trim_tables": [],
            "scrub_tables": [],
            "excluded_tables": [],
        },
    }

    # Instance configuration values, loaded from file or environment
    _config: dict[str, object] = {}

    # Flag indicating if the configuration has been initialized
    _initialized: bool = False

    @classmethod
    def initialize(cls, config_path: str | None = None) -> None:
        """
        Initialize the configuration.

        Args:
            config_path: Optional path to a YAML configuration file

        Raises:
            ConfigurationError: If the file is missing or unreadable
        """
        cls._config = deepcopy(cls._default_config)

        if config_path:
            cls._load_from_file(config_path)

        cls._load_from_env()

        cls._initialized = True

    @classmethod
    def _load_from_file(cls, config_path: str) -> None:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file
        """
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(path, "r") as f:
                file_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Error loading configuration file: {e}") from e

        if file_config is None:
            return
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

        cls._merge(file_config)

    @classmethod
    def _merge(cls, values: dict[str, object]) -> None:
        """Merge top-level sections into the current configuration."""
        for section, section_values in values.items():
            current = cls._config.get(section)
            if isinstance(section_values, dict) and isinstance(current, dict):
                current.update(section_values)
            else:
                cls._config[section] = section_values

    @classmethod
    def _load_from_env(cls) -> None:
        """Load configuration from environment variables."""
        database = cls._config["database"]

        env_db_url = os.environ.get("JANITOR_DB_URL")
        if env_db_url:
            database["url"] = env_db_url

        env_db_username = os.environ.get("JANITOR_DB_USERNAME")
        if env_db_username:
            database["username"] = env_db_username

        env_db_password = os.environ.get("JANITOR_DB_PASSWORD")
        if env_db_password:
            database["password"] = env_db_password

        env_output = os.environ.get("JANITOR_OUTPUT")
        if env_output:
            cls._config["output"] = env_output

        env_manifest = os.environ.get("JANITOR_MANIFEST")
        if env_manifest:
            cls._config["manifest_path"] = env_manifest

        env_log_level = os.environ.get("JANITOR_LOG_LEVEL")
        if env_log_level:
            cls._config["log_level"] = env_log_level.upper()

    @classmethod
    def _ensure_initialized(cls) -> None:
        """Ensure the configuration is initialized."""
        if not cls._initialized:
            cls.initialize()

    @classmethod
    def get(cls, key: str, default: object = None) -> object:
        """
        Get a configuration value.

        Args:
            key: The configuration key to retrieve, dotted for nested values
            default: Default value to return if key is not found

        Returns:
            The configuration value, or default if not found
        """
        cls._ensure_initialized()

        if "." in key:
            value = cls._config
            for part in key.split("."):
                if isinstance(value, dict) and part in value:
                    value = value[part]
                else:
                    return default
            return value

        return cls._config.get(key, default)

    @classmethod
    def set(cls, key: str, value: object) -> None:
        """Set a top-level configuration value, e.g. from a command line flag."""
        cls._ensure_initialized()
        cls._config[key] = value

    @classmethod
    def get_database_url(cls) -> URL:
        """
        Get the database URL with any credential overrides applied.

        Returns:
            SQLAlchemy URL for the target database

        Raises:
            ConfigurationError: If the configured URL cannot be parsed
        """
        raw_url = cls.get("database.url")
        try:
            url = make_url(str(raw_url))
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid database URL: {raw_url}") from e

        username = cls.get("database.username")
        if username:
            url = url.set(username=str(username))
        password = cls.get("database.password")
        if password:
            url = url.set(password=str(password))
        return url

    @classmethod
    def get_output(cls) -> str:
        """Get the dump destination; "-" means standard output."""
        return str(cls.get("output", "-"))

    @classmethod
    def get_manifest_path(cls) -> Path | None:
        """Get the path of the rename manifest, if one is configured."""
        path = cls.get("manifest_path")
        return Path(str(path)) if path else None

    @classmethod
    def get_log_level(cls) -> str:
        """Get the configured log level name."""
        return str(cls.get("log_level", "INFO")).upper()

    @classmethod
    def get_sanitization_config(cls) -> SanitizationConfig:
        """
        Build the per-run sanitization options from the ``janitor`` section.

        Returns:
            Validated sanitization configuration

        Raises:
            ConfigurationError: If the section does not validate
        """
        section = cls.get("janitor") or {}
        try:
            return SanitizationConfig.model_validate(section)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid janitor configuration: {e}") from e

    @classmethod
    def load_from_secrets_file(cls, file_path: str) -> bool:
        """
        Load configuration from a secrets file.

        This is a convenience method for keeping credentials out of the
        main configuration file. A missing secrets file is not an error.

        Args:
            file_path: Path to the secrets file

        Returns:
            True if the file was found and loaded
        """
        cls._ensure_initialized()
        path = Path(file_path)
        if not path.exists():
            return False

        try:
            with open(path, "r") as f:
                secrets = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Error loading secrets file: {e}") from e

        if secrets:
            if not isinstance(secrets, dict):
                raise ConfigurationError(f"Secrets file must contain a mapping: {file_path}")
            cls._merge(secrets)

        # Environment still wins over anything on disk
        cls._load_from_env()
        return True
