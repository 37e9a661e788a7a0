"""Database actions: root credentials, schema, application user and grant."""
from __future__ import annotations

from typing import Iterable, Optional

from ..host.database import MySQLDatabase
from ..schemas import ExecutionContext
from .base import Action


class DatabaseAction(Action):
    def __init__(self, name: str, database: MySQLDatabase, depends_on: Iterable[str] = (), **kwargs) -> None:
        super().__init__(name, depends_on, **kwargs)
        self.database = database


class EnsureRootPassword(DatabaseAction):
    def check(self, ctx: ExecutionContext) -> bool:
        return self.database.root_password_works(ctx.db_root_password.get_secret_value())

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self.database.set_root_password(ctx.db_root_password.get_secret_value())
        return "root now authenticates with a password"


class EnsureDatabase(DatabaseAction):
    def check(self, ctx: ExecutionContext) -> bool:
        return self.database.database_exists(ctx.db_name, ctx.db_root_password.get_secret_value())

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self.database.create_database(ctx.db_name, ctx.db_root_password.get_secret_value())
        return f"created database {ctx.db_name}"


class EnsureDatabaseUser(DatabaseAction):
    def check(self, ctx: ExecutionContext) -> bool:
        return self.database.user_exists(ctx.db_user, ctx.db_root_password.get_secret_value())

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self.database.create_user(
            ctx.db_user,
            ctx.db_password.get_secret_value(),
            ctx.db_root_password.get_secret_value(),
        )
        return f"created user {ctx.db_user}"


class EnsureGrant(DatabaseAction):
    def check(self, ctx: ExecutionContext) -> bool:
        return self.database.has_grant(ctx.db_name, ctx.db_user, ctx.db_root_password.get_secret_value())

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self.database.grant_all(ctx.db_name, ctx.db_user, ctx.db_root_password.get_secret_value())
        return f"granted {ctx.db_user} all privileges on {ctx.db_name}"
