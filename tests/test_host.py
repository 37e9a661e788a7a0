from pathlib import Path

from provisioner.config import ApacheConfig
from provisioner.host import AptPackageManager, MySQLDatabase, SystemdServiceManager
from provisioner.host.webserver import ApacheWebServer
from provisioner.sandbox import CommandResult


class ScriptedRunner:
    """Answers commands from a queue of (return_code, stdout) pairs and records the calls."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls = []

    def run(self, command, cwd=None, *, env=None, input_text=None, timeout=None, check=False):
        self.calls.append({"command": list(command), "env": env or {}, "input": input_text})
        return_code, stdout = self.responses.pop(0) if self.responses else (0, "")
        return CommandResult(command=list(command), cwd=cwd, return_code=return_code, stdout=stdout, stderr="")


def test_dpkg_output_is_parsed():
    runner = ScriptedRunner(
        (1, "apache2 install ok installed\nphp8.3-cli:amd64 install ok installed\nnodejs deinstall ok config-files\n")
    )
    manager = AptPackageManager(runner)
    assert manager.installed(["apache2", "php8.3-cli", "nodejs", "mysql-server"]) == {"apache2", "php8.3-cli"}


def test_repository_detection_reads_sources(tmp_path: Path):
    (tmp_path / "ondrej-ubuntu-php-jammy.list").write_text(
        "deb https://ppa.launchpadcontent.net/ondrej/php/ubuntu/ jammy main\n", encoding="utf-8"
    )
    manager = AptPackageManager(ScriptedRunner(), sources_dir=tmp_path)
    assert manager.has_repository("ppa:ondrej/php")
    assert not manager.has_repository("ppa:ondrej/apache2")


def test_mysql_passwords_never_reach_argv():
    runner = ScriptedRunner()
    database = MySQLDatabase(runner)

    database.create_user("app1user", "app-pw", "root-pw")

    call = runner.calls[0]
    assert all("app-pw" not in part and "root-pw" not in part for part in call["command"])
    assert call["env"]["MYSQL_PWD"] == "root-pw"
    assert "IDENTIFIED BY 'app-pw'" in call["input"]


def test_socket_authenticated_root_is_not_a_working_password():
    assert not MySQLDatabase(ScriptedRunner((0, "auth_socket\n"))).root_password_works("pw")
    assert MySQLDatabase(ScriptedRunner((0, "mysql_native_password\n"))).root_password_works("pw")
    assert not MySQLDatabase(ScriptedRunner((1, ""))).root_password_works("pw")


def test_grant_detection():
    grants = "GRANT USAGE ON *.* TO `app1user`@`localhost`\nGRANT ALL PRIVILEGES ON `app1db`.* TO `app1user`@`localhost`\n"
    database = MySQLDatabase(ScriptedRunner((0, grants)))
    assert database.has_grant("app1db", "app1user", "root-pw")
    assert not MySQLDatabase(ScriptedRunner((0, grants))).has_grant("otherdb", "app1user", "root-pw")


def test_active_since_parses_unix_timestamp():
    services = SystemdServiceManager(ScriptedRunner((0, "ActiveEnterTimestamp=@1700000000\n")))
    since = services.active_since("apache2")
    assert since is not None and int(since.timestamp()) == 1700000000
    assert SystemdServiceManager(ScriptedRunner((0, "ActiveEnterTimestamp=\n"))).active_since("apache2") is None


def test_site_and_module_state_come_from_the_filesystem(tmp_path: Path):
    config = ApacheConfig(
        sites_available=tmp_path / "available",
        sites_enabled=tmp_path / "enabled",
        mods_enabled=tmp_path / "mods",
    )
    runner = ScriptedRunner()
    webserver = ApacheWebServer(runner, config)
    config.sites_enabled.mkdir()
    config.mods_enabled.mkdir()
    (config.sites_enabled / "app1.conf").write_text("", encoding="utf-8")
    (config.mods_enabled / "rewrite.load").write_text("", encoding="utf-8")

    assert webserver.is_site_enabled("app1")
    assert not webserver.is_site_enabled("000-default")
    assert webserver.is_module_enabled("rewrite")

    webserver.enable_site("shop")
    assert runner.calls[-1]["command"] == ["a2ensite", "-q", "shop.conf"]
