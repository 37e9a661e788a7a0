"""Source-control client adapter."""
from __future__ import annotations

from pathlib import Path

from ..sandbox import CommandRunner


class GitClient:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def origin_url(self, path: Path) -> str:
        if not (Path(path) / ".git").is_dir():
            return ""
        result = self._runner.run(["git", "-C", str(path), "remote", "get-url", "origin"])
        return result.stdout.strip() if result.ok else ""

    def is_clone_of(self, path: Path, url: str) -> bool:
        """True when ``path`` is a checkout whose origin is ``url``."""

        return self.origin_url(path) == url

    def clone(self, url: str, path: Path) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._runner.run(["git", "clone", "-q", url, str(path)], check=True)
