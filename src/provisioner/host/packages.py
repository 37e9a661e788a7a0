"""Debian package manager adapter."""
from __future__ import annotations

import shlex
from pathlib import Path
from typing import Iterable, List, Sequence, Set

from ..sandbox import CommandRunner

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
SOURCES_DIR = Path("/etc/apt/sources.list.d")


class AptPackageManager:
    """Query and install packages through dpkg/apt-get."""

    def __init__(self, runner: CommandRunner, sources_dir: Path = SOURCES_DIR) -> None:
        self._runner = runner
        self._sources_dir = Path(sources_dir)

    def installed(self, names: Iterable[str]) -> Set[str]:
        """Return the subset of ``names`` that dpkg reports as installed."""

        names = list(names)
        if not names:
            return set()
        result = self._runner.run(["dpkg-query", "-W", "-f=${Package} ${Status}\n", *names])
        found = set()
        # dpkg-query exits 1 when some names are unknown but still prints the rest
        for line in result.stdout.splitlines():
            package, _, status = line.partition(" ")
            if status.strip() == "install ok installed":
                found.add(package.split(":")[0])
        return found

    def is_installed(self, names: Sequence[str]) -> bool:
        return set(names) <= self.installed(names)

    def update(self) -> None:
        self._runner.run(["apt-get", "update", "-q"], env=APT_ENV, check=True)

    def upgrade(self) -> None:
        self._runner.run(["apt-get", "upgrade", "-y", "-q"], env=APT_ENV, check=True)

    def install(self, names: Sequence[str]) -> None:
        self._runner.run(["apt-get", "install", "-y", "-q", *names], env=APT_ENV, check=True)

    def has_repository(self, spec: str) -> bool:
        """Whether an apt source for ``spec`` (e.g. ``ppa:ondrej/php``) is configured."""

        needle = _repository_needle(spec)
        if not self._sources_dir.is_dir():
            return False
        for entry in sorted(self._sources_dir.iterdir()):
            if entry.suffix not in {".list", ".sources"}:
                continue
            if needle in entry.read_text(encoding="utf-8", errors="replace"):
                return True
        return False

    def add_repository(self, spec: str) -> None:
        self._runner.run(["add-apt-repository", "-y", spec], env=APT_ENV, check=True)
        self.update()

    def run_setup_script(self, url: str) -> None:
        """Pipe a vendor setup script (e.g. NodeSource) into bash."""

        script = f"curl -fsSL {shlex.quote(url)} | bash -"
        self._runner.run(["bash", "-o", "pipefail", "-c", script], env=APT_ENV, check=True)


def _repository_needle(spec: str) -> str:
    if spec.startswith("ppa:"):
        return f"{spec[len('ppa:'):]}/ubuntu"
    return spec


__all__: List[str] = ["AptPackageManager", "APT_ENV"]
