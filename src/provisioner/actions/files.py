"""Generic file actions."""
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from ..errors import ActionApplyFailed
from ..host.tooling import AppTooling
from ..schemas import ExecutionContext
from ..utils import atomic_write, format_env_value, owner_of, read_env_assignments, upsert_env_lines
from .base import Action

PathFn = Callable[[ExecutionContext], Path]


class EnsureKeyValues(Action):
    """
    Ensure ``KEY=value`` lines are present in a dotenv-style file.

    Existing assignments are rewritten in place, missing keys are appended,
    every other line is left untouched.
    """

    def __init__(
        self,
        name: str,
        path: PathFn,
        values: Callable[[ExecutionContext], Dict[str, str]],
        depends_on: Iterable[str] = (),
        **kwargs,
    ) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._path = path
        self._values = values

    def _pending(self, ctx: ExecutionContext) -> Dict[str, str]:
        path = Path(self._path(ctx))
        current = read_env_assignments(path.read_text(encoding="utf-8")) if path.is_file() else {}
        return {
            key: value
            for key, value in self._values(ctx).items()
            if current.get(key) != format_env_value(value)
        }

    def check(self, ctx: ExecutionContext) -> bool:
        return not self._pending(ctx)

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        path = Path(self._path(ctx))
        pending = self._pending(ctx)
        text = path.read_text(encoding="utf-8") if path.is_file() else ""
        atomic_write(path, upsert_env_lines(text, pending))
        return f"updated {', '.join(sorted(pending))}"


class CopyFileIfMissing(Action):
    def __init__(self, name: str, source: PathFn, target: PathFn, depends_on: Iterable[str] = (), **kwargs) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._source = source
        self._target = target

    def check(self, ctx: ExecutionContext) -> bool:
        return Path(self._target(ctx)).exists()

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        source = Path(self._source(ctx))
        target = Path(self._target(ctx))
        if not source.is_file():
            raise ActionApplyFailed(f"{source} does not exist", action=self.name)
        shutil.copyfile(source, target)
        return f"created {target.name} from {source.name}"


class EnsureOwnership(Action):
    """Recursively hand a tree to a user/group with a fixed mode."""

    def __init__(
        self,
        name: str,
        tooling: AppTooling,
        path: PathFn,
        owner: str,
        group: str,
        mode: str = "755",
        depends_on: Iterable[str] = (),
        **kwargs,
    ) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._tooling = tooling
        self._path = path
        self.owner = owner
        self.group = group
        self.mode = mode

    def check(self, ctx: ExecutionContext) -> bool:
        return owner_of(Path(self._path(ctx))) == (self.owner, self.group)

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        path = Path(self._path(ctx))
        self._tooling.set_permissions(path, self.owner, self.group, self.mode)
        return f"{self.owner}:{self.group} {self.mode}"
