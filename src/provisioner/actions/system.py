"""Host-level actions: privileges, apt packages and repositories, binaries."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from ..errors import PermissionDenied
from ..host.packages import AptPackageManager
from ..host.tooling import AppTooling
from ..schemas import ExecutionContext
from .base import Action

logger = logging.getLogger(__name__)


class RequirePrivilege(Action):
    """Precondition: later actions write system paths and manage services."""

    def __init__(self, name: str, is_privileged: Callable[[], bool], **kwargs) -> None:
        super().__init__(name, description="Verify root privileges", **kwargs)
        self._is_privileged = is_privileged

    def check(self, ctx: ExecutionContext) -> bool:
        return self._is_privileged()

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        raise PermissionDenied("run as root or with sudo", action=self.name)


class EnsurePackages(Action):
    """Ensure every package in ``packages`` is installed."""

    def __init__(
        self,
        name: str,
        manager: AptPackageManager,
        packages: Sequence[str],
        depends_on: Iterable[str] = (),
        *,
        refresh: bool = False,
        upgrade: bool = False,
        setup_script: Optional[str] = None,
        **kwargs,
    ) -> None:
        kwargs.setdefault("description", f"Install {', '.join(packages)}")
        super().__init__(name, depends_on, **kwargs)
        self._manager = manager
        self.packages = list(packages)
        self._refresh = refresh
        self._upgrade = upgrade
        self._setup_script = setup_script

    def check(self, ctx: ExecutionContext) -> bool:
        return self._manager.is_installed(self.packages)

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        missing = [pkg for pkg in self.packages if pkg not in self._manager.installed(self.packages)]
        if self._setup_script:
            logger.info("Running vendor setup script %s", self._setup_script)
            self._manager.run_setup_script(self._setup_script)
        if self._refresh:
            self._manager.update()
        if self._upgrade:
            self._manager.upgrade()
        self._manager.install(missing)
        return f"installed {', '.join(missing)}"


class EnsureRepository(Action):
    def __init__(self, name: str, manager: AptPackageManager, spec: str, depends_on: Iterable[str] = (), **kwargs) -> None:
        kwargs.setdefault("description", f"Add apt repository {spec}")
        super().__init__(name, depends_on, **kwargs)
        self._manager = manager
        self.spec = spec

    def check(self, ctx: ExecutionContext) -> bool:
        return self._manager.has_repository(self.spec)

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self._manager.add_repository(self.spec)
        return None


class EnsureComposer(Action):
    """Install the Composer phar when no binary exists at ``target``."""

    def __init__(
        self,
        name: str,
        tooling: AppTooling,
        installer_url: str,
        target: Path,
        depends_on: Iterable[str] = (),
        **kwargs,
    ) -> None:
        kwargs.setdefault("description", f"Install Composer to {target}")
        super().__init__(name, depends_on, **kwargs)
        self._tooling = tooling
        self._installer_url = installer_url
        self.target = Path(target)

    def check(self, ctx: ExecutionContext) -> bool:
        return self.target.is_file()

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        self._tooling.install_composer(self._installer_url, self.target)
        return str(self.target)
