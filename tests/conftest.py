from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

import pytest

from provisioner.config import ApacheConfig, PackagesConfig, Settings
from provisioner.host import Host
from provisioner.host.webserver import ApacheWebServer
from provisioner.persistence import SQLiteStateStore
from provisioner.schemas import ExecutionContext

DB_PASSWORD = "app-S3cret!pw"
DB_ROOT_PASSWORD = "root-T0psecret#pw"


class RecordingRunner:
    """Stands in for CommandRunner; adapters built on it must never reach it in tests."""

    def __init__(self) -> None:
        self.commands: List[List[str]] = []

    def run(self, command, cwd=None, **kwargs):
        self.commands.append(list(command))
        raise AssertionError(f"unexpected command in test: {command}")


class FakePackages:
    def __init__(self) -> None:
        self.packages: Set[str] = set()
        self.repositories: Set[str] = set()
        self.calls: List[str] = []

    def installed(self, names: Iterable[str]) -> Set[str]:
        return {name for name in names if name in self.packages}

    def is_installed(self, names: Sequence[str]) -> bool:
        return all(name in self.packages for name in names)

    def update(self) -> None:
        self.calls.append("update")

    def upgrade(self) -> None:
        self.calls.append("upgrade")

    def install(self, names: Sequence[str]) -> None:
        self.calls.append(f"install {' '.join(names)}")
        self.packages.update(names)

    def has_repository(self, spec: str) -> bool:
        return spec in self.repositories

    def add_repository(self, spec: str) -> None:
        self.calls.append(f"add-repository {spec}")
        self.repositories.add(spec)

    def run_setup_script(self, url: str) -> None:
        self.calls.append(f"setup {url}")


class FakeVcs:
    """Clones by creating a skeleton application in the target folder."""

    def __init__(self) -> None:
        self.clones: List[str] = []

    def is_clone_of(self, path: Path, url: str) -> bool:
        marker = Path(path) / ".git" / "origin"
        return marker.is_file() and marker.read_text(encoding="utf-8") == url

    def clone(self, url: str, path: Path) -> None:
        path = Path(path)
        (path / ".git").mkdir(parents=True)
        (path / ".git" / "origin").write_text(url, encoding="utf-8")
        (path / "public").mkdir()
        (path / ".env.example").write_text(
            "APP_NAME=Laravel\nAPP_ENV=local\nAPP_DEBUG=true\nDB_HOST=127.0.0.1\nDB_DATABASE=laravel\n",
            encoding="utf-8",
        )
        self.clones.append(url)


class FakeWebServer(ApacheWebServer):
    """Real vhost rendering and paths; a2en*/a2dis* emulated with symlinks and marker files."""

    def __init__(self, config: ApacheConfig) -> None:
        super().__init__(RecordingRunner(), config)
        for directory in (config.sites_available, config.sites_enabled, config.mods_enabled):
            directory.mkdir(parents=True, exist_ok=True)
        (config.sites_available / f"{config.default_site}.conf").write_text("# default\n", encoding="utf-8")
        (config.sites_enabled / f"{config.default_site}.conf").write_text("# default\n", encoding="utf-8")
        self.config_tests = 0

    def enable_site(self, site: str) -> None:
        (self.config.sites_enabled / f"{site}.conf").write_text(
            self.vhost_path(site).read_text(encoding="utf-8"), encoding="utf-8"
        )

    def disable_site(self, site: str) -> None:
        (self.config.sites_enabled / f"{site}.conf").unlink()

    def enable_module(self, module: str) -> None:
        (self.config.mods_enabled / f"{module}.load").write_text("", encoding="utf-8")

    def config_test(self) -> None:
        self.config_tests += 1


class FakeDatabase:
    def __init__(self) -> None:
        self.root_password: Optional[str] = None
        self.databases: Set[str] = set()
        self.users: Dict[str, str] = {}
        self.grants: Set[tuple] = set()
        self.calls: List[str] = []

    def root_password_works(self, password: str) -> bool:
        return self.root_password == password

    def set_root_password(self, password: str) -> None:
        self.calls.append("set_root_password")
        self.root_password = password

    def database_exists(self, name: str, root_password: str) -> bool:
        return name in self.databases

    def create_database(self, name: str, root_password: str) -> None:
        self.calls.append(f"create_database {name}")
        self.databases.add(name)

    def user_exists(self, user: str, root_password: str) -> bool:
        return user in self.users

    def create_user(self, user: str, password: str, root_password: str) -> None:
        self.calls.append(f"create_user {user}")
        self.users[user] = password

    def has_grant(self, database: str, user: str, root_password: str) -> bool:
        return (database, user) in self.grants

    def grant_all(self, database: str, user: str, root_password: str) -> None:
        self.calls.append(f"grant_all {database} {user}")
        self.grants.add((database, user))


class FakeServices:
    def __init__(self) -> None:
        self.started: Dict[str, datetime] = {}
        self.restarts: List[str] = []

    def is_active(self, name: str) -> bool:
        return name in self.started

    def active_since(self, name: str) -> Optional[datetime]:
        return self.started.get(name)

    def restart(self, name: str) -> None:
        self.restarts.append(name)
        self.started[name] = datetime.now(timezone.utc)


class FakeTooling:
    def __init__(self) -> None:
        self.calls: List[str] = []
        self.migrated = False
        self.permissions: List[tuple] = []

    def install_composer(self, installer_url: str, target: Path) -> None:
        self.calls.append("install_composer")
        Path(target).parent.mkdir(parents=True, exist_ok=True)
        Path(target).write_text("#!/usr/bin/env php\n", encoding="utf-8")

    def composer_install(self, app_folder: Path) -> None:
        self.calls.append("composer_install")
        (app_folder / "vendor").mkdir(exist_ok=True)
        (app_folder / "vendor" / "autoload.php").write_text("<?php\n", encoding="utf-8")

    def npm_install(self, app_folder: Path) -> None:
        self.calls.append("npm_install")
        (app_folder / "node_modules").mkdir(exist_ok=True)

    def npm_build(self, app_folder: Path) -> None:
        self.calls.append("npm_build")
        (app_folder / "public" / "build").mkdir(parents=True, exist_ok=True)
        (app_folder / "public" / "build" / "manifest.json").write_text("{}", encoding="utf-8")

    def artisan(self, app_folder: Path, *args: str) -> str:
        self.calls.append("artisan " + " ".join(args))
        if args and args[0] == "migrate":
            self.migrated = True
        return ""

    def has_pending_migrations(self, app_folder: Path) -> bool:
        return not self.migrated

    def set_permissions(self, path: Path, owner: str, group: str, mode: str = "755") -> None:
        self.permissions.append((str(path), owner, group, mode))


def build_fake_host(settings: Settings, privileged: bool = True) -> Host:
    return Host(
        packages=FakePackages(),
        vcs=FakeVcs(),
        webserver=FakeWebServer(settings.apache),
        database=FakeDatabase(),
        services=FakeServices(),
        tooling=FakeTooling(),
        is_privileged=lambda: privileged,
    )


def settings_payload(root: Path) -> dict:
    return {
        "state_dir": str(root / "state"),
        "apache": {
            "sites_available": str(root / "apache" / "sites-available"),
            "sites_enabled": str(root / "apache" / "sites-enabled"),
            "mods_enabled": str(root / "apache" / "mods-enabled"),
        },
        "packages": {"composer_path": str(root / "bin" / "composer")},
    }


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    payload = settings_payload(tmp_path)
    return Settings(
        state_dir=Path(payload["state_dir"]),
        apache=ApacheConfig(**payload["apache"]),
        packages=PackagesConfig(**payload["packages"]),
    )


@pytest.fixture
def fake_host(settings: Settings) -> Host:
    return build_fake_host(settings)


@pytest.fixture
def context(tmp_path: Path) -> ExecutionContext:
    return ExecutionContext(
        git_url="https://x/a.git",
        app_name="app1",
        app_folder=str(tmp_path / "www" / "app1"),
        db_name="app1db",
        db_user="app1user",
        db_password=DB_PASSWORD,
        db_root_password=DB_ROOT_PASSWORD,
    )


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStateStore:
    return SQLiteStateStore(tmp_path / "state" / "state.sqlite")
