"""SQLite persistence for run records."""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Set

from pydantic import ValidationError

from ..errors import StateCorrupt
from ..schemas import RunRecord, RunStatus, StepResult, StepStatus, utcnow

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    run_id TEXT PRIMARY KEY,
    fingerprint TEXT NOT NULL,
    started_at TEXT NOT NULL,
    completed_at TEXT,
    status TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS runs_fingerprint ON runs(fingerprint, started_at);

CREATE TABLE IF NOT EXISTS step_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT NOT NULL,
    fingerprint TEXT NOT NULL,
    seq INTEGER NOT NULL,
    action_name TEXT NOT NULL,
    status TEXT NOT NULL,
    error TEXT,
    detail TEXT,
    timestamp TEXT NOT NULL,
    duration_seconds REAL NOT NULL DEFAULT 0,
    FOREIGN KEY (run_id) REFERENCES runs(run_id)
);
"""


class SQLiteStateStore:
    """
    Durable record of which actions completed for each deployment fingerprint.

    Every step result is committed as soon as it is appended, so a crash
    mid-run leaves everything up to the last finished action on disk. An
    unreadable database is moved aside and replaced instead of failing the run.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        try:
            with self._connection() as conn:
                conn.executescript(SCHEMA)
                conn.execute("SELECT COUNT(*) FROM runs").fetchone()
        except sqlite3.DatabaseError as exc:
            self._quarantine(exc)
            try:
                with self._connection() as conn:
                    conn.executescript(SCHEMA)
            except sqlite3.DatabaseError as retry_exc:
                raise StateCorrupt(f"cannot initialise {self.path}: {retry_exc}") from retry_exc

    def _quarantine(self, exc: Exception) -> None:
        stamp = utcnow().strftime("%Y%m%d%H%M%S")
        target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        logger.warning("State database %s is unreadable (%s); moving it to %s", self.path, exc, target)
        if self.path.exists():
            self.path.replace(target)

    def start_run(self, fingerprint: str, run_id: str, started_at: Optional[datetime] = None) -> None:
        started_at = started_at or utcnow()
        with self._writing() as conn:
            conn.execute(
                "INSERT INTO runs(run_id, fingerprint, started_at, status) VALUES(?,?,?,?)",
                (run_id, fingerprint, started_at.isoformat(), RunStatus.RUNNING.value),
            )

    def append(self, fingerprint: str, result: StepResult) -> None:
        """Attach ``result`` to the most recent run of ``fingerprint``."""

        with self._writing() as conn:
            row = conn.execute(
                "SELECT run_id FROM runs WHERE fingerprint = ? ORDER BY started_at DESC, rowid DESC LIMIT 1",
                (fingerprint,),
            ).fetchone()
            if row is None:
                raise StateCorrupt(f"no run started for fingerprint {fingerprint[:12]}")
            seq = conn.execute(
                "SELECT COUNT(*) FROM step_results WHERE run_id = ?", (row[0],)
            ).fetchone()[0]
            conn.execute(
                """
                INSERT INTO step_results(
                    run_id, fingerprint, seq, action_name, status, error, detail, timestamp, duration_seconds
                )
                VALUES(?,?,?,?,?,?,?,?,?)
                """,
                (
                    row[0],
                    fingerprint,
                    seq,
                    result.action_name,
                    result.status.value,
                    result.error,
                    result.detail,
                    result.timestamp.isoformat(),
                    result.duration_seconds,
                ),
            )

    def finish_run(self, fingerprint: str, run_id: str, status: RunStatus, completed_at: Optional[datetime] = None) -> None:
        completed_at = completed_at or utcnow()
        with self._writing() as conn:
            conn.execute(
                "UPDATE runs SET status = ?, completed_at = ? WHERE run_id = ? AND fingerprint = ?",
                (status.value, completed_at.isoformat(), run_id, fingerprint),
            )

    def load(self, fingerprint: str) -> Optional[RunRecord]:
        """Return the latest run for ``fingerprint``; unreadable state counts as no run."""

        try:
            with self._connection() as conn:
                run_row = conn.execute(
                    """
                    SELECT run_id, started_at, completed_at, status FROM runs
                    WHERE fingerprint = ? ORDER BY started_at DESC, rowid DESC LIMIT 1
                    """,
                    (fingerprint,),
                ).fetchone()
                if run_row is None:
                    return None
                step_rows = conn.execute(
                    """
                    SELECT action_name, status, error, detail, timestamp, duration_seconds
                    FROM step_results WHERE run_id = ? ORDER BY seq
                    """,
                    (run_row[0],),
                ).fetchall()
            return RunRecord(
                run_id=run_row[0],
                fingerprint=fingerprint,
                started_at=run_row[1],
                completed_at=run_row[2],
                status=run_row[3],
                steps=[
                    StepResult(
                        action_name=row[0],
                        status=row[1],
                        error=row[2],
                        detail=row[3],
                        timestamp=row[4],
                        duration_seconds=row[5],
                    )
                    for row in step_rows
                ],
            )
        except (sqlite3.DatabaseError, ValidationError, ValueError) as exc:
            logger.warning(
                "Ignoring unreadable state for %s (%s); treating as no previous run", fingerprint[:12], exc
            )
            return None

    def completed_actions(self, fingerprint: str) -> Set[str]:
        """
        Actions left satisfied by any earlier run of ``fingerprint``.

        Results are replayed oldest first. A succeeded or skipped result marks
        the action completed and only a later failure revokes it, so an action
        that a later run never reached keeps its earlier success.
        """

        try:
            with self._connection() as conn:
                rows = conn.execute(
                    """
                    SELECT step_results.action_name, step_results.status
                    FROM step_results JOIN runs ON runs.run_id = step_results.run_id
                    WHERE step_results.fingerprint = ?
                    ORDER BY runs.started_at, runs.rowid, step_results.seq
                    """,
                    (fingerprint,),
                ).fetchall()
        except sqlite3.DatabaseError as exc:
            logger.warning("Ignoring unreadable state for %s (%s)", fingerprint[:12], exc)
            return set()

        completed: Set[str] = set()
        for action_name, status in rows:
            if status in (StepStatus.SUCCEEDED.value, StepStatus.SKIPPED.value):
                completed.add(action_name)
            elif status == StepStatus.FAILED.value:
                completed.discard(action_name)
        return completed

    def clear(self, fingerprint: str) -> None:
        with self._writing() as conn:
            conn.execute("DELETE FROM step_results WHERE fingerprint = ?", (fingerprint,))
            conn.execute("DELETE FROM runs WHERE fingerprint = ?", (fingerprint,))

    def export(self, fingerprint: str) -> str:
        """JSON dump of the latest run, for support requests."""

        record = self.load(fingerprint)
        return json.dumps(record.model_dump(mode="json") if record else None, indent=2)

    @contextmanager
    def _writing(self) -> Iterator[sqlite3.Connection]:
        try:
            with self._connection() as conn:
                yield conn
                conn.commit()
        except sqlite3.DatabaseError as exc:
            raise StateCorrupt(f"cannot write {self.path}: {exc}") from exc

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        try:
            yield conn
        finally:
            conn.close()


__all__ = ["SQLiteStateStore"]
