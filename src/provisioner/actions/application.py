"""Application checkout, build and database migration actions."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..host.tooling import AppTooling
from ..host.vcs import GitClient
from ..schemas import ExecutionContext
from .base import Action

logger = logging.getLogger(__name__)


class CloneRepository(Action):
    """
    Ensure the app folder is a checkout of the configured repository.

    A folder holding anything else is removed first, which is why the action
    is flagged destructive.
    """

    is_destructive = True

    def __init__(self, name: str, vcs: GitClient, depends_on: Iterable[str] = (), **kwargs) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._vcs = vcs

    def check(self, ctx: ExecutionContext) -> bool:
        return self._vcs.is_clone_of(Path(ctx.app_folder), ctx.git_url)

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        folder = Path(ctx.app_folder)
        note = None
        if folder.exists():
            logger.warning("App folder %s exists and is not a clone of %s; replacing it", folder, ctx.git_url)
            shutil.rmtree(folder)
            note = "replaced existing folder"
        self._vcs.clone(ctx.git_url, folder)
        return note


class EnsureBuildOutput(Action):
    """Run a build step inside the app folder unless its output already exists."""

    def __init__(
        self,
        name: str,
        output: str,
        build: Callable[[Path], None],
        depends_on: Iterable[str] = (),
        **kwargs,
    ) -> None:
        super().__init__(name, depends_on, **kwargs)
        self.output = output
        self._build = build

    def check(self, ctx: ExecutionContext) -> bool:
        return (Path(ctx.app_folder) / self.output).exists()

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self._build(Path(ctx.app_folder))
        return None


class ApplyMigrations(Action):
    def __init__(self, name: str, tooling: AppTooling, depends_on: Iterable[str] = (), **kwargs) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._tooling = tooling

    def check(self, ctx: ExecutionContext) -> bool:
        return not self._tooling.has_pending_migrations(Path(ctx.app_folder))

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self._tooling.artisan(Path(ctx.app_folder), "migrate", "--force", "--no-interaction")
        return None


class SeedDatabase(Action):
    """
    Seed the application database.

    Seeders leave no trace the host can be asked about, so the check never
    reports satisfied; the state store's record of a previous success is what
    keeps repeated runs from seeding twice.
    """

    def __init__(self, name: str, tooling: AppTooling, depends_on: Iterable[str] = (), **kwargs) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._tooling = tooling

    def check(self, ctx: ExecutionContext) -> bool:
        return False

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self._tooling.artisan(Path(ctx.app_folder), "db:seed", "--force", "--no-interaction")
        return None
