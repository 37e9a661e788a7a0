from __future__ import annotations

import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from .errors import CommandFailed, Timeout
from .redaction import Redactor

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    command: List[str]
    cwd: Optional[Path]
    return_code: int
    stdout: str
    stderr: str
    log_path: Optional[Path] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.return_code == 0


class CommandRunner:
    """
    Run collaborator commands with a bounded timeout.

    Each command runs in its own session so a terminal interrupt reaches the
    engine rather than the command, and a timed-out command is killed together
    with anything it spawned. When ``logs_dir`` is set, a transcript of every
    command is written under it.
    """

    def __init__(
        self,
        timeout: float = 900.0,
        logs_dir: Optional[Path] = None,
        redactor: Optional[Redactor] = None,
    ) -> None:
        self._timeout = timeout
        self._logs_dir = Path(logs_dir) if logs_dir else None
        self._redactor = redactor or Redactor()
        if self._logs_dir is not None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)

    @property
    def logs_dir(self) -> Optional[Path]:
        return self._logs_dir

    @property
    def timeout(self) -> float:
        return self._timeout

    def run(
        self,
        command: Iterable[str],
        cwd: Optional[Path] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
        input_text: Optional[str] = None,
        timeout: Optional[float] = None,
        check: bool = False,
    ) -> CommandResult:
        command_list = list(command)
        limit = timeout if timeout is not None else self._timeout
        merged_env = dict(os.environ)
        if env:
            merged_env.update(env)
        logger.debug("$ %s", " ".join(command_list))

        try:
            process = subprocess.Popen(
                command_list,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                start_new_session=True,
            )
        except FileNotFoundError as exc:
            result = CommandResult(
                command=command_list,
                cwd=cwd,
                return_code=127,
                stdout="",
                stderr=str(exc),
                reason="missing-executable",
            )
            result.log_path = self._write_log(result)
            return self._finish(result, check)
        except PermissionError as exc:
            result = CommandResult(
                command=command_list,
                cwd=cwd,
                return_code=126,
                stdout="",
                stderr=str(exc),
                reason="not-executable",
            )
            result.log_path = self._write_log(result)
            return self._finish(result, check)

        try:
            stdout, stderr = process.communicate(input=input_text, timeout=limit)
        except subprocess.TimeoutExpired:
            self._kill(process)
            result = CommandResult(
                command=command_list,
                cwd=cwd,
                return_code=-signal.SIGKILL,
                stdout="",
                stderr=f"killed after {limit:g}s",
                reason="timeout",
            )
            self._write_log(result)
            shown = self._redactor.redact(" ".join(command_list))
            raise Timeout(f"`{shown}` did not finish within {limit:g}s")

        result = CommandResult(
            command=command_list,
            cwd=cwd,
            return_code=process.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
        )
        result.log_path = self._write_log(result)
        return self._finish(result, check)

    def _finish(self, result: CommandResult, check: bool) -> CommandResult:
        if check and not result.ok:
            raise CommandFailed(
                [self._redactor.redact(part) for part in result.command],
                result.return_code,
                self._redactor.redact(result.stderr),
            )
        return result

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        process.communicate()

    def _write_log(self, result: CommandResult) -> Optional[Path]:
        if self._logs_dir is None:
            return None
        safe = "-".join(
            self._redactor.redact(part).replace("/", "_").replace(" ", "_") for part in result.command[:3] if part
        )
        if len(safe) > 60:
            safe = safe[:57] + "..."
        index = len(list(self._logs_dir.glob("*.log"))) + 1
        log_path = self._logs_dir / f"{index:03d}-{safe}.log"
        header = f"$ {' '.join(result.command)}\n"
        if result.reason:
            header = f"[{result.reason}] {header}"
        body = f"{header}\nexit: {result.return_code}\n\nSTDOUT:\n{result.stdout}\n\nSTDERR:\n{result.stderr}"
        log_path.write_text(self._redactor.redact(body), encoding="utf-8")
        return log_path


__all__ = ["CommandResult", "CommandRunner"]
