"""Exception taxonomy shared by the resolver, registry, engine and store."""
from __future__ import annotations

from typing import Iterable, Optional, Sequence


class ProvisionError(Exception):
    """Base class for every error the provisioner raises on purpose."""

    def __init__(self, message: str, *, action: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.action = action

    def one_line(self) -> str:
        """Return the user-facing cause on a single line."""

        text = " ".join(self.message.split())
        prefix = f"[{self.action}] " if self.action else ""
        return f"{prefix}{type(self).__name__}: {text}"


class MissingParameter(ProvisionError):
    """A required input was not supplied by args, environment or prompt."""


class InvalidParameter(ProvisionError):
    """An input was supplied but failed validation."""


class DuplicateName(ProvisionError):
    """An action with the same name is already registered."""


class UnknownDependency(ProvisionError):
    """An action depends on a name that is not registered."""


class CycleDetected(ProvisionError):
    def __init__(self, members: Iterable[str]) -> None:
        self.members: Sequence[str] = tuple(sorted(members))
        super().__init__(f"dependency cycle between: {', '.join(self.members)}")


class ActionCheckFailed(ProvisionError):
    """The check itself errored, as opposed to reporting "not satisfied"."""


class ActionApplyFailed(ProvisionError):
    """Wraps whatever a collaborator raised while an action was applied."""


class Timeout(ProvisionError):
    """An external command exceeded its time budget."""


class StateCorrupt(ProvisionError):
    """The state database could not be read or written."""


class PermissionDenied(ProvisionError):
    """The process lacks the privilege an action requires."""


class CommandFailed(ProvisionError):
    """A collaborator command exited non-zero."""

    def __init__(self, command: Sequence[str], return_code: int, stderr: str = "") -> None:
        self.command = list(command)
        self.return_code = return_code
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(f"`{' '.join(self.command)}` exited with {return_code}: {detail}")


__all__ = [
    "ProvisionError",
    "MissingParameter",
    "InvalidParameter",
    "DuplicateName",
    "UnknownDependency",
    "CycleDetected",
    "ActionCheckFailed",
    "ActionApplyFailed",
    "Timeout",
    "StateCorrupt",
    "PermissionDenied",
    "CommandFailed",
]
