import logging
from pathlib import Path
from typing import Optional

import tomlkit
from tomlkit.exceptions import TOMLKitError
from pydantic import BaseModel, ValidationError

from .domain.errors import MalformedConfigError
from .utils.files import atomic_write_text, read_text

logger = logging.getLogger(__name__)

APP_DIR_NAME = "spacetime-token"
CONFIG_DIR = Path.home() / ".config" / APP_DIR_NAME
CONFIG_FILENAME = "config.toml"

# reserved address handled by the external CLI login instead of HTTP issuance
LOCAL_ALIAS = "local"
SPACETIME_CLI_COMMAND = "spacetime"


class AppSettings(BaseModel):
    """tool configuration, persisted as config.toml."""
    profiles_filename: str = "profiles.toml"
    cli_config_dir_from_home: str = ".config/spacetime"
    cli_config_filename: str = "cli.toml"
    cli_token_key: str = "spacetimedb_token"
    local_server_url: str = "http://127.0.0.1:3000"


def get_config_file(config_dir: Path = CONFIG_DIR) -> Path:
    return config_dir / CONFIG_FILENAME


def load_settings(config_dir: Path = CONFIG_DIR) -> AppSettings:
    """
    load the tool config, writing defaults on first use.

    raises:
        MalformedConfigError: if the file exists but cannot be parsed
        ConfigIOError: if the file cannot be read or the defaults written
    """
    config_file = get_config_file(config_dir)
    content = read_text(config_file)

    if content is None:
        logger.debug("config not found at %s, writing defaults", config_file)
        settings = AppSettings()
        save_settings(settings, config_dir)
        return settings

    try:
        data = tomlkit.parse(content).unwrap()
        return AppSettings(**data)
    except (TOMLKitError, ValidationError, TypeError) as e:
        raise MalformedConfigError(config_file, str(e)) from e


def save_settings(settings: AppSettings, config_dir: Path = CONFIG_DIR) -> Path:
    """write the tool config and return its path."""
    config_file = get_config_file(config_dir)
    atomic_write_text(config_file, tomlkit.dumps(settings.model_dump()))
    return config_file


def get_profiles_path(settings: AppSettings, config_dir: Path = CONFIG_DIR) -> Path:
    return config_dir / settings.profiles_filename


def get_cli_config_path(settings: AppSettings, home: Optional[Path] = None) -> Path:
    home = home or Path.home()
    return home / settings.cli_config_dir_from_home / settings.cli_config_filename
