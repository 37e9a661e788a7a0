"""Application build tooling: Composer, npm, artisan and file ownership."""
from __future__ import annotations

import tempfile
from pathlib import Path

from ..sandbox import CommandRunner

COMPOSER_ENV = {"COMPOSER_ALLOW_SUPERUSER": "1", "COMPOSER_NO_INTERACTION": "1"}


class AppTooling:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def install_composer(self, installer_url: str, target: Path) -> None:
        """Fetch the Composer installer with PHP itself and install the phar at ``target``."""

        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="composer-setup-") as workdir:
            self._runner.run(
                ["php", "-r", f"copy('{installer_url}', 'composer-setup.php');"],
                cwd=Path(workdir),
                check=True,
            )
            self._runner.run(
                [
                    "php",
                    "composer-setup.php",
                    "--quiet",
                    f"--install-dir={target.parent}",
                    f"--filename={target.name}",
                ],
                cwd=Path(workdir),
                env=COMPOSER_ENV,
                check=True,
            )

    def composer_install(self, app_folder: Path) -> None:
        self._runner.run(
            ["composer", "install", "--no-interaction", "--prefer-dist", "--optimize-autoloader", "--no-dev"],
            cwd=app_folder,
            env=COMPOSER_ENV,
            check=True,
        )

    def npm_install(self, app_folder: Path) -> None:
        self._runner.run(["npm", "install", "--silent"], cwd=app_folder, check=True)

    def npm_build(self, app_folder: Path) -> None:
        self._runner.run(["npm", "run", "build", "--silent"], cwd=app_folder, check=True)

    def artisan(self, app_folder: Path, *args: str) -> str:
        result = self._runner.run(["php", "artisan", *args], cwd=app_folder, check=True)
        return result.stdout

    def has_pending_migrations(self, app_folder: Path) -> bool:
        result = self._runner.run(["php", "artisan", "migrate:status", "--no-ansi"], cwd=app_folder)
        # a missing migrations table makes the status command fail: nothing has run yet
        if not result.ok:
            return True
        return "Pending" in result.stdout

    def set_permissions(self, path: Path, owner: str, group: str, mode: str = "755") -> None:
        self._runner.run(["chown", "-R", f"{owner}:{group}", str(path)], check=True)
        self._runner.run(["chmod", "-R", mode, str(path)], check=True)
