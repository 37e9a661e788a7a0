"""MySQL server adapter.

Statements are fed to the ``mysql`` client on stdin and passwords travel in
``MYSQL_PWD``, so no credential ever appears in a process argument list.
"""
from __future__ import annotations

from typing import List, Optional

from ..sandbox import CommandRunner

NATIVE_PLUGIN = "mysql_native_password"


def sql_string(value: str) -> str:
    """Quote ``value`` as a MySQL string literal."""

    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def sql_identifier(value: str) -> str:
    return "`" + value.replace("`", "``") + "`"


class MySQLDatabase:
    def __init__(self, runner: CommandRunner, host: str = "localhost") -> None:
        self._runner = runner
        self._host = host

    def _account(self, user: str) -> str:
        return f"{sql_string(user)}@{sql_string(self._host)}"

    def _execute(self, sql: str, password: Optional[str], check: bool = True) -> List[str]:
        env = {"MYSQL_PWD": password} if password else {}
        command = ["mysql", "--user=root", "--batch", "--skip-column-names"]
        result = self._runner.run(command, env=env, input_text=sql, check=check)
        if not result.ok:
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]

    def root_password_works(self, password: str) -> bool:
        """True once root authenticates with ``password`` rather than the local socket."""

        result = self._runner.run(
            ["mysql", "--user=root", "--batch", "--skip-column-names"],
            env={"MYSQL_PWD": password},
            input_text=f"SELECT plugin FROM mysql.user WHERE user='root' AND host={sql_string(self._host)};\n",
        )
        if not result.ok:
            return False
        plugins = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        return bool(plugins) and all(plugin != "auth_socket" for plugin in plugins)

    def set_root_password(self, password: str) -> None:
        sql = (
            f"ALTER USER {self._account('root')} IDENTIFIED WITH {NATIVE_PLUGIN} BY {sql_string(password)};\n"
            "FLUSH PRIVILEGES;\n"
        )
        self._execute(sql, password=None)

    def database_exists(self, name: str, root_password: str) -> bool:
        rows = self._execute(
            f"SELECT SCHEMA_NAME FROM information_schema.SCHEMATA WHERE SCHEMA_NAME={sql_string(name)};\n",
            root_password,
        )
        return name in rows

    def create_database(self, name: str, root_password: str) -> None:
        self._execute(f"CREATE DATABASE IF NOT EXISTS {sql_identifier(name)};\n", root_password)

    def user_exists(self, user: str, root_password: str) -> bool:
        rows = self._execute(
            f"SELECT User FROM mysql.user WHERE User={sql_string(user)} AND Host={sql_string(self._host)};\n",
            root_password,
        )
        return user in rows

    def create_user(self, user: str, password: str, root_password: str) -> None:
        self._execute(
            f"CREATE USER IF NOT EXISTS {self._account(user)} IDENTIFIED BY {sql_string(password)};\n",
            root_password,
        )

    def has_grant(self, database: str, user: str, root_password: str) -> bool:
        rows = self._execute(f"SHOW GRANTS FOR {self._account(user)};\n", root_password, check=False)
        target = f"ON {sql_identifier(database)}.*"
        return any("ALL PRIVILEGES" in row and target in row for row in rows)

    def grant_all(self, database: str, user: str, root_password: str) -> None:
        self._execute(
            f"GRANT ALL PRIVILEGES ON {sql_identifier(database)}.* TO {self._account(user)};\n"
            "FLUSH PRIVILEGES;\n",
            root_password,
        )
