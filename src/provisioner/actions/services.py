"""Service lifecycle actions."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..host.services import SystemdServiceManager
from ..schemas import ExecutionContext
from .base import Action


class RestartService(Action):
    """
    Restart a service whose configuration may have changed.

    The service counts as up to date when it is active and was (re)started
    after the last modification of every watched path.
    """

    def __init__(
        self,
        name: str,
        services: SystemdServiceManager,
        service: str,
        watch: Callable[[ExecutionContext], List[Path]] = lambda ctx: [],
        depends_on: Iterable[str] = (),
        *,
        before_restart: Optional[Callable[[], None]] = None,
        **kwargs,
    ) -> None:
        kwargs.setdefault("description", f"Restart {service}")
        super().__init__(name, depends_on, **kwargs)
        self._services = services
        self.service = service
        self._watch = watch
        self._before_restart = before_restart

    def check(self, ctx: ExecutionContext) -> bool:
        if not self._services.is_active(self.service):
            return False
        since = self._services.active_since(self.service)
        if since is None:
            return False
        for path in self._watch(ctx):
            if not path.exists():
                continue
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            if modified > since:
                return False
        return True

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        if self._before_restart is not None:
            self._before_restart()
        self._services.restart(self.service)
        return None
