"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from soaper_dl.exceptions import ConfigurationError
from soaper_dl.models.config import SoaperConfig

log = logging.getLogger(__name__)

SUBTITLE_LANG_ENV = "SOAPER_SUBTITLE_LANG"

_INT_KEYS = {"max_workers", "connections_per_host", "max_attempts"}
_FLOAT_KEYS = {"base_delay", "request_timeout", "connect_timeout"}


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> SoaperConfig:
        """
        Builds the configuration from defaults, the INI file, the environment and
        CLI overrides, in increasing order of precedence.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated, immutable SoaperConfig.

        Raises:
            ConfigurationError: If the config file is unreadable or validation fails.
        """
        settings: dict[str, Any] = {}

        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            settings.update(self._get_config_as_dict())
        else:
            log.debug(f"No config file at '{self.config_file_path}', using defaults.")

        if env_lang := os.getenv(SUBTITLE_LANG_ENV):
            settings["subtitle_lang"] = env_lang

        if cli_options:
            settings.update(cli_options)

        try:
            return SoaperConfig(
                **settings, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any] | None = None) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: Values to write instead of the defaults.
        """
        settings = settings or {}
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = SoaperConfig()
        for key in sorted(SoaperConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key))
            config["DEFAULT"][key] = str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the known keys of the 'DEFAULT' section into a dictionary."""
        section = self._parser["DEFAULT"]
        values: dict[str, Any] = {}
        for key in SoaperConfig.get_ini_keys():
            if key not in section:
                continue
            try:
                if key in _INT_KEYS:
                    values[key] = section.getint(key)
                elif key in _FLOAT_KEYS:
                    values[key] = section.getfloat(key)
                else:
                    values[key] = section.get(key)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for '{key}': {e}") from e
        return values

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = SoaperConfig()
        config_section = self._parser["DEFAULT"]
        needs_saving = False

        for key in SoaperConfig.get_ini_keys():
            if key not in config_section:
                config_section[key] = str(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
