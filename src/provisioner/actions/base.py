"""Base action class for the provisioning engine."""
from __future__ import annotations

import abc
from typing import Callable, Iterable, Optional

from ..schemas import ExecutionContext


class Action(abc.ABC):
    """
    Smallest idempotent unit of provisioning work.

    Each action:
    1. Reports whether the host already satisfies it (``check``)
    2. Makes it so when it does not (``apply``)

    ``apply`` signals failure by raising; its return value is an optional note
    recorded with the step result.
    """

    is_destructive: bool = False

    def __init__(
        self,
        name: str,
        depends_on: Iterable[str] = (),
        *,
        description: str = "",
        is_destructive: Optional[bool] = None,
    ) -> None:
        self.name = name
        self.depends_on = frozenset(depends_on)
        self.description = description or name
        if is_destructive is not None:
            self.is_destructive = is_destructive

    @abc.abstractmethod
    def check(self, ctx: ExecutionContext) -> bool:
        """Return True when nothing needs to be done."""

    @abc.abstractmethod
    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        """Bring the host into the desired state."""

    def __repr__(self) -> str:
        deps = ", ".join(sorted(self.depends_on))
        return f"{type(self).__name__}({self.name!r}, depends_on=[{deps}])"


class FunctionAction(Action):
    """Action assembled from two callables."""

    def __init__(
        self,
        name: str,
        check: Callable[[ExecutionContext], bool],
        apply: Callable[[ExecutionContext], Optional[str]],
        depends_on: Iterable[str] = (),
        **kwargs,
    ) -> None:
        super().__init__(name, depends_on, **kwargs)
        self._check = check
        self._apply = apply

    def check(self, ctx: ExecutionContext) -> bool:
        return bool(self._check(ctx))

    def apply(self, ctx: ExecutionContext) -> Optional[str]:
        return self._apply(ctx)
