import os
import time
from pathlib import Path

import pytest

from conftest import DB_PASSWORD, DB_ROOT_PASSWORD, FakeDatabase, FakePackages, FakeServices, FakeVcs, FakeWebServer
from provisioner.actions import (
    CloneRepository,
    CopyFileIfMissing,
    EnsureDatabase,
    EnsureKeyValues,
    EnsurePackages,
    EnsureSiteEnabled,
    EnsureVhost,
    RequirePrivilege,
    RestartService,
)
from provisioner.errors import ActionApplyFailed, PermissionDenied
from provisioner.orchestrator import ExecutionEngine
from provisioner.persistence import SQLiteStateStore
from provisioner.registry import StepRegistry
from provisioner.schemas import ExecutionContext, StepStatus


class CountingDatabase(FakeDatabase):
    def __init__(self) -> None:
        super().__init__()
        self.create_calls = 0

    def create_database(self, name: str, root_password: str) -> None:
        self.create_calls += 1
        super().create_database(name, root_password)


def test_database_create_twice_applies_once(context):
    database = CountingDatabase()
    action = EnsureDatabase("database.create", database)

    assert action.check(context) is False
    action.apply(context)

    assert action.check(context) is True
    assert database.create_calls == 1


def test_database_create_through_engine_without_resume(context, tmp_path):
    database = CountingDatabase()
    registry = StepRegistry([EnsureDatabase("database.create", database)])
    # separate stores: the second run has no previous record and must rely on check
    first = ExecutionEngine().run(registry, context, SQLiteStateStore(tmp_path / "one.sqlite"))
    second = ExecutionEngine().run(registry, context, SQLiteStateStore(tmp_path / "two.sqlite"))

    assert first.result_for("database.create").status is StepStatus.SUCCEEDED
    assert second.result_for("database.create").status is StepStatus.SKIPPED
    assert second.first_failure() is None
    assert database.create_calls == 1


def test_ensure_key_values_rewrites_and_appends(context, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("# comment\nAPP_ENV=local\nAPP_NAME=Shop\n", encoding="utf-8")
    action = EnsureKeyValues(
        "app.env_settings",
        lambda ctx: env_file,
        lambda ctx: {"APP_ENV": "production", "DB_PASSWORD": ctx.db_password.get_secret_value()},
    )

    assert action.check(context) is False
    note = action.apply(context)

    text = env_file.read_text(encoding="utf-8")
    assert text.splitlines() == [
        "# comment",
        "APP_ENV=production",
        "APP_NAME=Shop",
        f"DB_PASSWORD={DB_PASSWORD}",
    ]
    assert DB_PASSWORD not in note
    assert action.check(context) is True


def test_ensure_key_values_quotes_awkward_values(context, tmp_path):
    env_file = tmp_path / ".env"
    action = EnsureKeyValues("env", lambda ctx: env_file, lambda ctx: {"APP_NAME": "My Shop", "EMPTY": ""})
    action.apply(context)
    assert env_file.read_text(encoding="utf-8") == 'APP_NAME="My Shop"\nEMPTY=""\n'
    assert action.check(context) is True


def test_vhost_matches_documented_layout(settings):
    webserver = FakeWebServer(settings.apache)
    ctx = ExecutionContext(
        git_url="https://x/a.git",
        app_name="app1",
        app_folder="/var/www/app1",
        db_name="app1db",
        db_user="app1user",
        db_password=DB_PASSWORD,
        db_root_password=DB_ROOT_PASSWORD,
    )
    action = EnsureVhost("webserver.vhost", webserver)

    assert action.check(ctx) is False
    action.apply(ctx)

    vhost = settings.apache.sites_available / "app1.conf"
    content = vhost.read_text(encoding="utf-8")
    assert "ServerName app1" in content
    assert "DocumentRoot /var/www/app1/public" in content
    assert "<Directory /var/www/app1/public>" in content
    assert "${APACHE_LOG_DIR}/app1-error.log" in content
    assert action.check(ctx) is True

    vhost.write_text("# edited by hand\n", encoding="utf-8")
    assert action.check(ctx) is False


def test_copy_file_if_missing_requires_source(context, tmp_path):
    action = CopyFileIfMissing("env", lambda ctx: tmp_path / ".env.example", lambda ctx: tmp_path / ".env")
    with pytest.raises(ActionApplyFailed):
        action.apply(context)

    (tmp_path / ".env.example").write_text("APP_ENV=local\n", encoding="utf-8")
    action.apply(context)
    assert (tmp_path / ".env").read_text(encoding="utf-8") == "APP_ENV=local\n"
    assert action.check(context) is True


def test_require_privilege_raises_permission_denied(context):
    action = RequirePrivilege("preflight.privileges", lambda: False)
    assert action.check(context) is False
    with pytest.raises(PermissionDenied):
        action.apply(context)


def test_ensure_packages_installs_only_missing():
    packages = FakePackages()
    packages.packages.add("apache2")
    action = EnsurePackages("web", packages, ["apache2", "libapache2-mod-php"], refresh=True)

    note = action.apply(None)

    assert packages.calls == ["update", "install libapache2-mod-php"]
    assert note == "installed libapache2-mod-php"


def test_clone_replaces_foreign_folder(context):
    folder = Path(context.app_folder)
    folder.mkdir(parents=True)
    (folder / "stale.txt").write_text("old deployment", encoding="utf-8")
    vcs = FakeVcs()
    action = CloneRepository("app.clone", vcs)

    assert action.is_destructive
    assert action.check(context) is False
    assert action.apply(context) == "replaced existing folder"
    assert not (folder / "stale.txt").exists()
    assert action.check(context) is True


def test_default_site_can_be_disabled(settings, context):
    webserver = FakeWebServer(settings.apache)
    action = EnsureSiteEnabled("default", webserver, lambda ctx: "000-default", enabled=False)
    assert action.check(context) is False
    action.apply(context)
    assert action.check(context) is True


def test_restart_service_tracks_watched_files(context, tmp_path):
    services = FakeServices()
    watched = tmp_path / "site.conf"
    watched.write_text("v1", encoding="utf-8")
    checks = []
    action = RestartService(
        "webserver.restart",
        services,
        "apache2",
        lambda ctx: [watched],
        before_restart=lambda: checks.append("configtest"),
    )

    assert action.check(context) is False
    action.apply(context)
    assert checks == ["configtest"]
    assert action.check(context) is True

    later = time.time() + 60
    os.utime(watched, (later, later))
    assert action.check(context) is False
