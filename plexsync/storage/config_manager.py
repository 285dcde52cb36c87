"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from plexsync.exceptions import ConfigurationError
from plexsync.models.config import ListenerConfig

log = logging.getLogger(__name__)

MAPPINGS_SECTION = "media_mappings"

# Written into fresh files and added to files that predate a setting
DEFAULT_VALUES: dict[str, dict[str, str]] = {
    "service_bus": {
        "connection_string": "",
        "listen_queue": "plex-downloads",
        "success_queue": "plex-downloads-success",
        "error_queue": "plex-downloads-error",
        "max_concurrent_calls": "1",
        "receive_timeout": "60",
        "lock_renewal_interval": "30",
    },
    "blob_storage": {
        "container_url": "",
        "sas_token": "",
    },
    "download": {
        "verify_size": "false",
    },
    "logging": {
        "log_level": "INFO",
        "json_log_dir": "",
    },
}

DEFAULT_MAPPINGS = {
    "movies": "/media/movies",
    "tv": "/media/tv",
}


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        # Connection strings and SAS tokens contain '%' and must be read raw
        self._parser = configparser.ConfigParser(interpolation=None)
        # Category names keep their case
        self._parser.optionxform = str

    def load_config(self, overrides: dict[str, Any] | None = None) -> ListenerConfig:
        """
        Loads configuration from the INI file, applies overrides, and validates it.

        Args:
            overrides: Settings provided via the command line.

        Returns:
            A validated ListenerConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        self.read()

        if self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )

        config_from_file = self.get_config_as_dict()
        if overrides:
            config_from_file.update(overrides)

        try:
            return ListenerConfig(
                **config_from_file, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def read(self) -> None:
        """Parses the INI file without validating it, for display and tooling."""
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'plexsync init' first."
            )
        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

    def save_new_config(self, settings: dict[str, Any] | None = None) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: Flat settings to write over the defaults. A
                'media_mappings' entry replaces the default mappings.
        """
        settings = dict(settings or {})
        mappings = settings.pop(MAPPINGS_SECTION, None) or DEFAULT_MAPPINGS

        config = configparser.ConfigParser(interpolation=None)
        config.optionxform = str
        for section, defaults in DEFAULT_VALUES.items():
            config[section] = {}
            for key, default in defaults.items():
                value = settings.get(key, default)
                if isinstance(value, bool):
                    value = "true" if value else "false"
                config[section][key] = str(value)
        config[MAPPINGS_SECTION] = {str(k): str(v) for k, v in mappings.items()}

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def get_config_as_dict(self) -> dict[str, Any]:
        """Flattens the INI sections into the keyword arguments of ListenerConfig."""
        sb = self._section("service_bus")
        blob = self._section("blob_storage")
        download = self._section("download")
        logging_section = self._section("logging")

        try:
            return {
                "connection_string": sb.get("connection_string", ""),
                "listen_queue": sb.get("listen_queue", ""),
                "success_queue": sb.get("success_queue", ""),
                "error_queue": sb.get("error_queue", ""),
                "max_concurrent_calls": sb.getint("max_concurrent_calls", 1),
                "receive_timeout": sb.getint("receive_timeout", 60),
                "lock_renewal_interval": sb.getint("lock_renewal_interval", 30),
                "container_url": blob.get("container_url", ""),
                "sas_token": blob.get("sas_token", ""),
                "media_mappings": dict(self._section(MAPPINGS_SECTION).items()),
                "verify_size": download.getboolean("verify_size", False),
                "log_level": logging_section.get("log_level", "INFO"),
                "json_log_dir": logging_section.get("json_log_dir", ""),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

    def _section(self, name: str) -> configparser.SectionProxy:
        if not self._parser.has_section(name):
            self._parser.add_section(name)
        return self._parser[name]

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        needs_saving = False

        for section, defaults in DEFAULT_VALUES.items():
            if not self._parser.has_section(section):
                self._parser.add_section(section)
            for key, default in defaults.items():
                if key not in self._parser[section]:
                    self._parser[section][key] = default
                    needs_saving = True
                    log.debug(
                        f"Migrating config: added missing key '{section}.{key}' with "
                        f"value '{default}'."
                    )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
