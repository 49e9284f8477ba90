"""Configuration management for mdnotes."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mdnotes.logger import get_logger

logger = get_logger(__name__)


class NotesConfig(BaseSettings):
    """Main configuration for the mdnotes host and its plugin runtime."""

    model_config = SettingsConfigDict(
        env_prefix="MDNOTES_",
        case_sensitive=False,
    )

    data_dir: Path = Field(
        default=Path.home() / ".mdnotes",
        description="Directory holding the installed plugin table and plugin storage",
    )
    storage_file_name: str = Field(
        default="storage.json",
        description="Name of the key-value file inside data_dir",
    )

    # Network capability
    api_base_url: str = Field(
        default="http://127.0.0.1:8080",
        description="Base URL that relative plugin requests are resolved against",
    )
    network_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Default timeout in seconds for plugin network requests",
    )

    def __init__(self, config_file: Path | None = None, **kwargs: Any) -> None:
        if config_file is not None and config_file.exists():
            try:
                with open(config_file, encoding="utf-8") as f:
                    config_data = yaml.safe_load(f) or {}
                # Precedence: kwargs > environment > config file > defaults
                env_keys = {key.upper() for key in os.environ}
                config_data = {
                    key: value
                    for key, value in config_data.items()
                    if f"MDNOTES_{key}".upper() not in env_keys
                }
                kwargs = {**config_data, **kwargs}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Ignoring unreadable config file {config_file}: {e}")

        super().__init__(**kwargs)

        # Relative data directories are anchored at the config file
        if config_file is not None and not self.data_dir.is_absolute():
            self.data_dir = config_file.parent / self.data_dir

    @property
    def storage_path(self) -> Path:
        """Return the path of the key-value store file."""
        return self.data_dir / self.storage_file_name

    def ensure_data_dir(self) -> None:
        """Ensure the data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
