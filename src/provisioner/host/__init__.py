"""
Adapters for the external collaborators a deployment drives.

``Host`` bundles one adapter per collaborator so actions can be built against
fakes in tests and against the real system in ``build_host``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable

from ..config import Settings
from ..sandbox import CommandRunner
from .database import MySQLDatabase
from .packages import AptPackageManager
from .services import SystemdServiceManager
from .tooling import AppTooling
from .vcs import GitClient
from .webserver import ApacheWebServer


def _running_as_root() -> bool:
    return os.geteuid() == 0


@dataclass
class Host:
    packages: AptPackageManager
    vcs: GitClient
    webserver: ApacheWebServer
    database: MySQLDatabase
    services: SystemdServiceManager
    tooling: AppTooling
    is_privileged: Callable[[], bool] = field(default=_running_as_root)


def build_host(settings: Settings, runner: CommandRunner) -> Host:
    """Wire the real adapters to ``runner``."""
    return Host(
        packages=AptPackageManager(runner),
        vcs=GitClient(runner),
        webserver=ApacheWebServer(runner, settings.apache),
        database=MySQLDatabase(runner),
        services=SystemdServiceManager(runner),
        tooling=AppTooling(runner),
    )


__all__ = [
    "Host",
    "build_host",
    "AptPackageManager",
    "GitClient",
    "ApacheWebServer",
    "MySQLDatabase",
    "SystemdServiceManager",
    "AppTooling",
]
