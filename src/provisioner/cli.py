from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .config import Settings, load_settings
from .errors import InvalidParameter, MissingParameter, PermissionDenied, ProvisionError
from .host import build_host
from .inputs import hidden_prompt, resolve_inputs
from .logging_config import configure_logging
from .orchestrator import CancellationToken, ExecutionEngine, interrupt_guard, new_run_id
from .persistence import SQLiteStateStore
from .plan import HINTS, build_deployment_plan
from .redaction import Redactor
from .reporter import Reporter
from .sandbox import CommandRunner
from .schemas import ExecutionContext, FailurePolicy, RunStatus

EXIT_OK = 0
EXIT_INPUT = 1
EXIT_FAILED = 2
EXIT_INTERNAL = 3


class ProvisionCommand(click.Command):
    """Report click usage errors with the input-error exit code."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as exc:
            exc.exit_code = EXIT_INPUT
            raise


@click.command(cls=ProvisionCommand, context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="provisioner", message="Provisioner %(version)s")
@click.argument("params", nargs=-1, metavar="GIT_URL APP_NAME APP_FOLDER DB_NAME DB_USER")
@click.option("--continue-on-error", is_flag=True, default=False, help="Keep running actions that do not depend on a failed one.")
@click.option("--dry-run", is_flag=True, default=False, help="Check every action and report what would change.")
@click.option("--state-dir", type=click.Path(file_okay=False, path_type=Path), default=None, help="Where run state is kept.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None, help="JSON settings overrides.")
@click.option("--reset-state", is_flag=True, default=False, help="Forget previous runs of this deployment first.")
@click.option("--show-state", is_flag=True, default=False, help="Print the last recorded run of this deployment and exit.")
@click.option("--timeout", type=click.FloatRange(min=1), default=None, help="Per-command timeout in seconds.")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Also write the log to this file.")
@click.option("--non-interactive", is_flag=True, default=False, help="Never prompt; secrets must come from the environment.")
@click.option("--verbose", is_flag=True, default=False, help="Increase logging verbosity.")
def main(
    params: Tuple[str, ...],
    continue_on_error: bool,
    dry_run: bool,
    state_dir: Optional[Path],
    config_path: Optional[Path],
    reset_state: bool,
    show_state: bool,
    timeout: Optional[float],
    log_file: Optional[Path],
    non_interactive: bool,
    verbose: bool,
) -> None:
    """
    Deploy a PHP application from GIT_URL into APP_FOLDER behind Apache with MySQL.

    Passwords are read from DB_PASSWORD and DB_ROOT_PASSWORD, or prompted for.
    Re-running with the same parameters skips everything already in place.
    """

    redactor = Redactor()
    logger = configure_logging(verbose=verbose, log_file=log_file, redactor=redactor, logger_name="provisioner.cli")

    try:
        context = resolve_inputs(params, os.environ, prompt=hidden_prompt, interactive=not non_interactive)
    except (MissingParameter, InvalidParameter) as exc:
        logger.error("%s", exc.one_line())
        sys.exit(EXIT_INPUT)
    redactor.add(*context.secret_values())

    try:
        settings = load_settings(config_path, state_dir=state_dir, command_timeout=timeout, log_file=log_file)
    except (OSError, ValueError) as exc:
        logger.error("Cannot load settings: %s", exc)
        sys.exit(EXIT_INPUT)
    if log_file is None and settings.log_file is not None:
        logger = configure_logging(
            verbose=verbose, log_file=settings.log_file, redactor=redactor, logger_name="provisioner.cli"
        )

    run_id = new_run_id()
    reporter = Reporter(redactor=redactor)
    try:
        sys.exit(_execute(settings, context, reporter, redactor, run_id, dry_run, continue_on_error, reset_state, show_state))
    except PermissionDenied as exc:
        logger.error("%s", exc.one_line())
        sys.exit(EXIT_FAILED)
    except ProvisionError as exc:
        logger.error("%s", exc.one_line())
        sys.exit(EXIT_INTERNAL)
    except OSError as exc:
        logger.error("Cannot prepare %s: %s", settings.state_dir, exc)
        sys.exit(EXIT_INTERNAL)
    except Exception:  # pragma: no cover - last-resort guard
        logger.exception("Unexpected error during run %s", run_id)
        sys.exit(EXIT_INTERNAL)


def _execute(
    settings: Settings,
    context: ExecutionContext,
    reporter: Reporter,
    redactor: Redactor,
    run_id: str,
    dry_run: bool,
    continue_on_error: bool,
    reset_state: bool,
    show_state: bool,
) -> int:
    try:
        store = SQLiteStateStore(settings.state_db_path)
    except PermissionError as exc:
        raise PermissionDenied(
            f"cannot write state under {settings.state_dir}; run as root or with sudo, or pass --state-dir"
        ) from exc
    fingerprint = context.fingerprint()
    if show_state:
        click.echo(redactor.redact(store.export(fingerprint)))
        return EXIT_OK
    if reset_state:
        reporter.warning(f"Clearing recorded runs for {context.app_name} ({fingerprint[:12]})")
        store.clear(fingerprint)

    runner = CommandRunner(
        timeout=settings.command_timeout,
        logs_dir=None if dry_run else settings.state_dir / "logs" / run_id,
        redactor=redactor,
    )
    registry = build_deployment_plan(build_host(settings, runner), settings)
    if dry_run:
        reporter.plan(f"Dry run for {context.app_name}: nothing will be changed", registry.resolve_order())

    policy = FailurePolicy.CONTINUE_AND_REPORT if continue_on_error else FailurePolicy.STOP_ON_FIRST_FAILURE
    token = CancellationToken()
    engine = ExecutionEngine(reporter=reporter, cancel_token=token, dry_run=dry_run)
    with interrupt_guard(token):
        record = engine.run(registry, context, store, policy, run_id=run_id)

    succeeded = record.status is RunStatus.SUCCEEDED
    reporter.summary(record, hints=HINTS if succeeded and not dry_run else ())
    if runner.logs_dir is not None:
        reporter.info(f"Command transcripts: {runner.logs_dir}")
    return EXIT_OK if succeeded else EXIT_FAILED


if __name__ == "__main__":  # pragma: no cover
    main()
