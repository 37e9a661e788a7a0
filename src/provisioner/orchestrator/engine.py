"""Execution engine: walk the registry, apply actions, record every outcome."""
from __future__ import annotations

import logging
import signal
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Set, Union

from ..actions.base import Action
from ..errors import ActionApplyFailed, ActionCheckFailed, CommandFailed, ProvisionError, Timeout
from ..persistence.store import SQLiteStateStore
from ..redaction import Redactor
from ..registry import StepRegistry
from ..reporter import NullReporter, Reporter
from ..schemas import ExecutionContext, FailurePolicy, RunRecord, RunStatus, StepResult, StepStatus, utcnow

logger = logging.getLogger(__name__)


class CancellationToken:
    """Set from a signal handler; the engine reads it between actions."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@contextmanager
def interrupt_guard(token: CancellationToken) -> Iterator[CancellationToken]:
    """Turn SIGINT/SIGTERM into a cancellation request for the duration of a run."""

    def _handler(signum, _frame) -> None:
        name = signal.Signals(signum).name
        logger.warning("%s received; stopping after the current action", name)
        token.cancel(name)

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def new_run_id() -> str:
    timestamp = utcnow().strftime("%Y%m%d%H%M%S")
    return f"run-{timestamp}-{uuid.uuid4().hex[:6]}"


def describe(exc: BaseException) -> str:
    message = exc.message if isinstance(exc, ProvisionError) else str(exc)
    return f"{type(exc).__name__}: {' '.join(message.split()) or type(exc).__name__}"


def cause(exc: BaseException) -> str:
    """Cause of a collaborator error; a failed command keeps its own message."""
    return exc.message if isinstance(exc, CommandFailed) else describe(exc)


class ExecutionEngine:
    """Coordinate action execution, persistence and reporting for one context."""

    def __init__(
        self,
        reporter: Union[Reporter, NullReporter, None] = None,
        cancel_token: Optional[CancellationToken] = None,
        dry_run: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.reporter = reporter or NullReporter()
        self.cancel_token = cancel_token or CancellationToken()
        self.dry_run = dry_run
        self._clock = clock

    def run(
        self,
        registry: StepRegistry,
        context: ExecutionContext,
        state_store: SQLiteStateStore,
        policy: FailurePolicy = FailurePolicy.STOP_ON_FIRST_FAILURE,
        run_id: Optional[str] = None,
    ) -> RunRecord:
        # graph errors surface here, before any side effect
        order = registry.resolve_order()
        fingerprint = context.fingerprint()
        redactor = Redactor(context.secret_values())

        previous = state_store.load(fingerprint)
        completed_before = state_store.completed_actions(fingerprint) if previous else set()
        if previous is not None:
            logger.info(
                "Previous run %s (%s) found for %s; resuming",
                previous.run_id,
                previous.status.value,
                context.app_name,
            )

        record = RunRecord(run_id=run_id or new_run_id(), fingerprint=fingerprint, started_at=utcnow())
        if not self.dry_run:
            state_store.start_run(fingerprint, record.run_id, record.started_at)

        changed: Set[str] = set()
        blocked: Set[str] = set()
        planned: Set[str] = set()
        stop_reason: Optional[str] = None
        interrupted = False

        try:
            for action in order:
                if stop_reason is None and self.cancel_token.cancelled:
                    interrupted = True
                    stop_reason = f"run interrupted ({self.cancel_token.reason})"

                if stop_reason is not None:
                    result = StepResult(action_name=action.name, status=StepStatus.UNREACHED, detail=stop_reason)
                elif action.depends_on & blocked:
                    missing = ", ".join(sorted(action.depends_on & blocked))
                    result = StepResult(
                        action_name=action.name,
                        status=StepStatus.UNREACHED,
                        detail=f"dependency did not complete: {missing}",
                    )
                elif action.depends_on & planned:
                    result = StepResult(
                        action_name=action.name,
                        status=StepStatus.PLANNED,
                        detail=f"after {', '.join(sorted(action.depends_on & planned))}",
                    )
                elif action.name in completed_before and not action.depends_on & changed:
                    result = StepResult(
                        action_name=action.name,
                        status=StepStatus.SKIPPED,
                        detail="completed in previous run",
                    )
                else:
                    result = self._execute(action, context, redactor)

                if result.status is StepStatus.SUCCEEDED or action.depends_on & changed:
                    changed.add(action.name)
                if result.status in (StepStatus.FAILED, StepStatus.UNREACHED):
                    blocked.add(action.name)
                if result.status is StepStatus.PLANNED:
                    planned.add(action.name)

                self._record(state_store, record, result)
                if result.status is StepStatus.FAILED and policy is FailurePolicy.STOP_ON_FIRST_FAILURE:
                    stop_reason = f"stopped after {action.name} failed"
        except KeyboardInterrupt:
            # only reachable when no interrupt_guard is installed
            interrupted = True
            done = {step.action_name for step in record.steps}
            for action in order:
                if action.name not in done:
                    self._record(
                        state_store,
                        record,
                        StepResult(action_name=action.name, status=StepStatus.UNREACHED, detail="run interrupted"),
                    )
            self._finish(state_store, record, RunStatus.INTERRUPTED)
            raise

        if interrupted:
            status = RunStatus.INTERRUPTED
        elif record.first_failure() is not None:
            status = RunStatus.FAILED
        else:
            status = RunStatus.SUCCEEDED
        self._finish(state_store, record, status)
        return record

    def _execute(self, action: Action, context: ExecutionContext, redactor: Redactor) -> StepResult:
        started = self._clock()
        with self.reporter.running(action):
            try:
                satisfied = action.check(context)
            except Timeout as exc:
                return self._failed(action, exc, started, redactor)
            except Exception as exc:
                error = ActionCheckFailed(f"check errored: {cause(exc)}", action=action.name)
                return self._failed(action, error, started, redactor)

            if satisfied:
                logger.debug("%s already satisfied", action.name)
                return StepResult(
                    action_name=action.name,
                    status=StepStatus.SKIPPED,
                    duration_seconds=self._clock() - started,
                )

            if self.dry_run:
                detail = "would apply"
                if action.is_destructive:
                    detail += " (destructive)"
                return StepResult(
                    action_name=action.name,
                    status=StepStatus.PLANNED,
                    detail=detail,
                    duration_seconds=self._clock() - started,
                )

            if action.is_destructive:
                logger.warning("Applying destructive action %s", action.name)
            else:
                logger.info("Applying %s", action.name)
            try:
                note = action.apply(context)
            except Exception as exc:
                if isinstance(exc, ProvisionError) and not isinstance(exc, CommandFailed):
                    error: ProvisionError = exc
                else:
                    error = ActionApplyFailed(cause(exc), action=action.name)
                return self._failed(action, error, started, redactor)

        return StepResult(
            action_name=action.name,
            status=StepStatus.SUCCEEDED,
            detail=redactor.redact(note) if note else None,
            duration_seconds=self._clock() - started,
        )

    def _failed(self, action: Action, error: ProvisionError, started: float, redactor: Redactor) -> StepResult:
        error.action = error.action or action.name
        logger.error("%s", redactor.redact(error.one_line()))
        return StepResult(
            action_name=action.name,
            status=StepStatus.FAILED,
            error=redactor.redact(describe(error)),
            duration_seconds=self._clock() - started,
        )

    def _record(self, state_store: SQLiteStateStore, record: RunRecord, result: StepResult) -> None:
        record.append(result)
        if not self.dry_run:
            state_store.append(record.fingerprint, result)
        self.reporter.step(result)

    def _finish(self, state_store: SQLiteStateStore, record: RunRecord, status: RunStatus) -> None:
        record.status = status
        record.completed_at = utcnow()
        if not self.dry_run:
            state_store.finish_run(record.fingerprint, record.run_id, status, record.completed_at)


__all__ = ["CancellationToken", "ExecutionEngine", "interrupt_guard", "new_run_id"]
