"""systemd service manager adapter."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from ..sandbox import CommandRunner


class SystemdServiceManager:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def is_active(self, name: str) -> bool:
        return self._runner.run(["systemctl", "is-active", "--quiet", name]).ok

    def active_since(self, name: str) -> Optional[datetime]:
        """When the unit last entered the active state, or None if it never did."""

        result = self._runner.run(
            ["systemctl", "show", name, "--property=ActiveEnterTimestamp", "--timestamp=unix"]
        )
        if not result.ok:
            return None
        _, _, value = result.stdout.strip().partition("=")
        if not value.startswith("@"):
            return None
        try:
            return datetime.fromtimestamp(int(value[1:]), tz=timezone.utc)
        except ValueError:
            return None

    def restart(self, name: str) -> None:
        self._runner.run(["systemctl", "restart", name], check=True)
