"""Resolve and validate the parameters of a deployment."""
from __future__ import annotations

import logging
import posixpath
import re
from typing import Callable, Mapping, Optional, Sequence
from urllib.parse import urlsplit

import click

from .errors import InvalidParameter, MissingParameter
from .schemas import ExecutionContext

logger = logging.getLogger(__name__)

POSITIONAL_NAMES = ("git_url", "app_name", "app_folder", "db_name", "db_user")

SECRET_ENV = {
    "db_password": "DB_PASSWORD",
    "db_root_password": "DB_ROOT_PASSWORD",
}
SECRET_PROMPTS = {
    "db_password": "Database password for the application user",
    "db_root_password": "MySQL root password",
}

GIT_SCHEMES = {"http", "https", "ssh", "git", "file"}
SCP_LIKE = re.compile(r"^[A-Za-z0-9._-]+@[A-Za-z0-9.-]+:(?!//)[^\s]+$")
APP_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
SQL_NAME = re.compile(r"^[A-Za-z0-9_]+$")

APP_NAME_MAX = 64
DB_NAME_MAX = 64
DB_USER_MAX = 32

Prompt = Callable[[str], str]


def hidden_prompt(label: str) -> str:
    return click.prompt(label, hide_input=True, default="", show_default=False)


def validate_git_url(value: str) -> str:
    url = value.strip()
    if SCP_LIKE.match(url):
        return url
    parts = urlsplit(url)
    if parts.scheme not in GIT_SCHEMES:
        raise InvalidParameter(f"git_url {value!r} is not a git URL (http, https, ssh, git, file or user@host:path)")
    if parts.scheme != "file" and not parts.netloc:
        raise InvalidParameter(f"git_url {value!r} has no host")
    if parts.path.strip("/") == "":
        raise InvalidParameter(f"git_url {value!r} has no repository path")
    return url


def validate_app_folder(value: str) -> str:
    if not value.startswith("/"):
        raise InvalidParameter(f"app_folder {value!r} must be an absolute path")
    folder = posixpath.normpath(value)
    if folder == "/":
        raise InvalidParameter("app_folder cannot be the filesystem root")
    return folder


def _validate_name(field: str, value: str, pattern: re.Pattern, limit: int) -> str:
    if not value:
        raise InvalidParameter(f"{field} cannot be empty")
    if len(value) > limit:
        raise InvalidParameter(f"{field} {value!r} is longer than {limit} characters")
    if not pattern.match(value):
        raise InvalidParameter(f"{field} {value!r} contains unsupported characters")
    return value


def _resolve_secret(
    field: str,
    environ: Mapping[str, str],
    prompt: Optional[Prompt],
    interactive: bool,
) -> str:
    env_name = SECRET_ENV[field]
    value = environ.get(env_name)
    if value is None:
        if not interactive or prompt is None:
            raise MissingParameter(f"{field} not provided; set {env_name} or run interactively")
        value = prompt(SECRET_PROMPTS[field])
    if not value:
        raise InvalidParameter(f"{field} cannot be empty")
    return value


def resolve_inputs(
    args: Sequence[str],
    environ: Mapping[str, str],
    prompt: Optional[Prompt] = hidden_prompt,
    interactive: bool = True,
) -> ExecutionContext:
    """
    Build the execution context from positional arguments and secrets.

    Secrets are taken from ``DB_PASSWORD`` / ``DB_ROOT_PASSWORD`` in ``environ``
    and otherwise requested through ``prompt`` with echo disabled. Nothing here
    logs a secret value.
    """
    args = list(args)
    if len(args) < len(POSITIONAL_NAMES):
        missing = ", ".join(POSITIONAL_NAMES[len(args):])
        raise MissingParameter(f"missing positional parameter(s): {missing}")
    if len(args) > len(POSITIONAL_NAMES):
        raise InvalidParameter(
            f"expected {len(POSITIONAL_NAMES)} positional parameters, got {len(args)}; "
            "pass passwords through DB_PASSWORD / DB_ROOT_PASSWORD"
        )

    git_url, app_name, app_folder, db_name, db_user = (arg.strip() for arg in args)
    values = {
        "git_url": validate_git_url(git_url),
        "app_name": _validate_name("app_name", app_name, APP_NAME, APP_NAME_MAX),
        "app_folder": validate_app_folder(app_folder),
        "db_name": _validate_name("db_name", db_name, SQL_NAME, DB_NAME_MAX),
        "db_user": _validate_name("db_user", db_user, SQL_NAME, DB_USER_MAX),
    }
    for field in SECRET_ENV:
        values[field] = _resolve_secret(field, environ, prompt, interactive)

    context = ExecutionContext(**values)
    logger.info(
        "Deploying %s from %s into %s (database %s as %s)",
        context.app_name,
        context.git_url,
        context.app_folder,
        context.db_name,
        context.db_user,
    )
    return context


__all__ = ["resolve_inputs", "validate_git_url", "validate_app_folder", "hidden_prompt"]
