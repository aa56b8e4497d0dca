"""
Reads, migrates, and writes the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from twspace_dl.exceptions import ConfigurationError
from twspace_dl.models.config import DownloaderConfig

log = logging.getLogger(__name__)

SECTION = "DEFAULT"


def _to_ini(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _new_parser() -> configparser.ConfigParser:
    # Templates use %{field} placeholders, so values are read verbatim
    return configparser.ConfigParser(interpolation=None)


class ConfigManager:
    """Loads `DownloaderConfig` from an INI file and keeps that file current."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = _new_parser()

    def load_config(
        self, cli_options: dict[str, Any] | None = None
    ) -> DownloaderConfig:
        """
        Builds the run configuration: defaults, then the file, then `cli_options`.

        A missing file is not an error; defaults are used instead.

        Raises:
            ConfigurationError: If the file cannot be parsed or a value is invalid.
        """
        settings: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Cannot parse {self.config_file_path}: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    f"[yellow]Added new default settings to {self.config_file_path}."
                    "[/yellow]"
                )
            settings = self.get_config_as_dict()
        else:
            log.debug(f"No configuration file at '{self.config_file_path}', using defaults.")

        settings.update(cli_options or {})
        try:
            return DownloaderConfig(
                **settings, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Writes a fresh configuration file.

        Args:
            settings: Values to write; keys not given get their defaults.
        """
        defaults = DownloaderConfig()
        config = _new_parser()
        config[SECTION] = {
            key: _to_ini(settings.get(key, getattr(defaults, key)))
            for key in DownloaderConfig.get_ini_keys()
        }

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def get_config_as_dict(self) -> dict[str, Any]:
        """Reads every known key from the file, converted to its field's type."""
        section = self._parser[SECTION]
        readers = {
            bool: section.getboolean,
            int: section.getint,
            float: section.getfloat,
        }
        values = {}
        for key in DownloaderConfig.get_ini_keys():
            if key not in section:
                continue
            annotation = DownloaderConfig.model_fields[key].annotation
            read = readers.get(annotation, section.get)
            try:
                values[key] = read(key)
            except (ValueError, configparser.Error) as e:
                raise ConfigurationError(f"Invalid value for '{key}': {e}") from e
        return values

    def _migrate_if_needed(self) -> bool:
        """Writes default values for keys the file does not have yet."""
        defaults = DownloaderConfig()
        section = self._parser[SECTION]
        missing = [key for key in DownloaderConfig.get_ini_keys() if key not in section]
        if not missing:
            return False

        for key in missing:
            section[key] = _to_ini(getattr(defaults, key))
            log.debug(f"Config migration: '{key}' = '{section[key]}'")

        try:
            with open(self.config_file_path, "w", encoding="utf-8") as f:
                self._parser.write(f)
        except OSError as e:
            log.error(f"Could not save migrated configuration file: {e}")
            return False
        return True
