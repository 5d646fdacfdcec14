"""Maintenance worker module exports."""

from .worker import (
    MaintenanceWorkerSettings,
    TaskRunResult,
    load_settings,
    run_task_once,
    run_task_with_retries,
    run_tick,
    run_forever,
)

__all__ = [
    "MaintenanceWorkerSettings",
    "TaskRunResult",
    "load_settings",
    "run_task_once",
    "run_task_with_retries",
    "run_tick",
    "run_forever",
]
