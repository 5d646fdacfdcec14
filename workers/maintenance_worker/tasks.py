"""Single-shot entry points for external schedulers."""

from __future__ import annotations

from workers.maintenance_worker.worker import (
    MaintenanceWorkerSettings,
    TaskRunResult,
    load_settings,
    run_task_with_retries,
)


def reconcile_tick(settings: MaintenanceWorkerSettings | None = None) -> TaskRunResult:
    return run_task_with_retries(settings or load_settings(), "reconcile")


def cleanup_tick(settings: MaintenanceWorkerSettings | None = None) -> TaskRunResult:
    """Run reconciliation first so paid-but-unconfirmed orders are not cancelled."""
    resolved = settings or load_settings()
    run_task_with_retries(resolved, "reconcile")
    return run_task_with_retries(resolved, "cleanup")


def print_retry_tick(settings: MaintenanceWorkerSettings | None = None) -> TaskRunResult:
    return run_task_with_retries(settings or load_settings(), "print_retries")
