"""Shared data models for the provisioning engine."""
from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    """Outcome recorded for a single action in a run."""

    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNREACHED = "unreached"
    PLANNED = "planned"


class RunStatus(str, Enum):
    """Lifecycle states tracked for a run."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INTERRUPTED = "interrupted"


class FailurePolicy(str, Enum):
    """What the engine does after an action fails."""

    STOP_ON_FIRST_FAILURE = "stop_on_first_failure"
    CONTINUE_AND_REPORT = "continue_and_report"


SECRET_FIELDS = ("db_password", "db_root_password")


class ExecutionContext(BaseModel):
    """Resolved deployment parameters, frozen before the first action runs."""

    model_config = ConfigDict(frozen=True)

    git_url: str = Field(..., description="Repository the application is cloned from.")
    app_name: str = Field(..., description="Application name; also used as the vhost ServerName.")
    app_folder: str = Field(..., description="Absolute path the application is deployed to.")
    db_name: str
    db_user: str
    db_password: SecretStr
    db_root_password: SecretStr

    @property
    def server_name(self) -> str:
        return self.app_name

    @property
    def document_root(self) -> str:
        return str(PurePosixPath(self.app_folder) / "public")

    @property
    def env_file(self) -> str:
        return str(PurePosixPath(self.app_folder) / ".env")

    def public_values(self) -> Dict[str, str]:
        """Every parameter that is safe to log or hash."""

        return {
            key: value
            for key, value in self.model_dump().items()
            if key not in SECRET_FIELDS
        }

    def secret_values(self) -> List[str]:
        return [getattr(self, key).get_secret_value() for key in SECRET_FIELDS]

    def fingerprint(self) -> str:
        """Stable identifier of the deployment target; secrets are excluded."""

        canonical = json.dumps(self.public_values(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class StepResult(BaseModel):
    """Append-only log entry for one action in one run."""

    model_config = ConfigDict(frozen=True)

    action_name: str
    status: StepStatus
    error: Optional[str] = None
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    duration_seconds: float = 0.0


class RunRecord(BaseModel):
    """Ordered step results of one invocation for one fingerprint."""

    run_id: str
    fingerprint: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    status: RunStatus = RunStatus.RUNNING
    steps: List[StepResult] = Field(default_factory=list)

    def append(self, result: StepResult) -> None:
        self.steps.append(result)

    def result_for(self, action_name: str) -> Optional[StepResult]:
        for step in reversed(self.steps):
            if step.action_name == action_name:
                return step
        return None

    def counts(self) -> Dict[StepStatus, int]:
        totals = {status: 0 for status in StepStatus}
        for step in self.steps:
            totals[step.status] += 1
        return totals

    def first_failure(self) -> Optional[StepResult]:
        for step in self.steps:
            if step.status is StepStatus.FAILED:
                return step
        return None


__all__ = [
    "ExecutionContext",
    "FailurePolicy",
    "RunRecord",
    "RunStatus",
    "SECRET_FIELDS",
    "StepResult",
    "StepStatus",
    "utcnow",
]
