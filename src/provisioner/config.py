"""Runtime configuration using Pydantic settings."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STATE_DIR = Path("/var/lib/provisioner")
STATE_DB_NAME = "state.sqlite"


class ApacheConfig(BaseModel):
    """Where the web server keeps its site and module configuration."""

    sites_available: Path = Path("/etc/apache2/sites-available")
    sites_enabled: Path = Path("/etc/apache2/sites-enabled")
    mods_enabled: Path = Path("/etc/apache2/mods-enabled")
    log_dir_variable: str = "${APACHE_LOG_DIR}"
    default_site: str = "000-default"
    service_name: str = "apache2"


class PackagesConfig(BaseModel):
    """Package names and upstream sources installed on the host."""

    base: List[str] = Field(default_factory=lambda: ["software-properties-common"])
    php_repository: str = "ppa:ondrej/php"
    php_extensions: List[str] = Field(
        default_factory=lambda: [
            "cli", "mysql", "curl", "mbstring", "xml", "zip", "gd", "intl", "bcmath", "opcache",
        ]
    )
    webserver: List[str] = Field(default_factory=lambda: ["apache2"])
    database: List[str] = Field(default_factory=lambda: ["mysql-server"])
    nodesource_url: str = "https://deb.nodesource.com/setup_{major}.x"
    composer_installer_url: str = "https://getcomposer.org/installer"
    composer_path: Path = Path("/usr/local/bin/composer")


class Settings(BaseSettings):
    """Central application settings."""

    model_config = SettingsConfigDict(env_prefix="PROVISION_", env_nested_delimiter="__")

    state_dir: Path = DEFAULT_STATE_DIR
    command_timeout: float = 900.0
    php_version: str = "8.3"
    node_major: int = 20
    web_user: str = "www-data"
    web_group: str = "www-data"
    log_file: Optional[Path] = None
    apache: ApacheConfig = Field(default_factory=ApacheConfig)
    packages: PackagesConfig = Field(default_factory=PackagesConfig)

    @property
    def state_db_path(self) -> Path:
        return self.state_dir / STATE_DB_NAME

    def php_packages(self) -> List[str]:
        prefix = f"php{self.php_version}"
        return [prefix] + [f"{prefix}-{ext}" for ext in self.packages.php_extensions]


def load_settings(path: Optional[Path] = None, **overrides: Any) -> Settings:
    """
    Load settings from the environment, then apply a JSON file and keyword overrides.

    Keys in the JSON file mirror the ``Settings`` fields; nested sections such as
    ``apache`` are merged key by key rather than replaced.
    """
    payload: Dict[str, Any] = {}
    if path is not None:
        with Path(path).expanduser().open("r", encoding="utf-8") as handle:
            payload = json.load(handle)

    base = Settings().model_dump()
    _merge(base, payload)
    _merge(base, {key: value for key, value in overrides.items() if value is not None})
    return Settings(**base)


def _merge(target: Dict[str, Any], updates: Dict[str, Any]) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


__all__ = ["ApacheConfig", "PackagesConfig", "Settings", "load_settings", "DEFAULT_STATE_DIR"]
