"""Orchestration layer for provisioning runs."""

from .engine import CancellationToken, ExecutionEngine, interrupt_guard, new_run_id

__all__ = ["CancellationToken", "ExecutionEngine", "interrupt_guard", "new_run_id"]
