"""Maintenance worker that drives the cron endpoints on a fixed cadence."""

from __future__ import annotations

import json
import os
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Callable

TASK_PATHS: dict[str, str] = {
    "reconcile": "/api/v1/cron/reconcile-payments",
    "cleanup": "/api/v1/cron/cleanup-pending-orders",
    "print_retries": "/api/v1/cron/drain-print-retries",
}


@dataclass(frozen=True)
class MaintenanceWorkerSettings:
    api_base_url: str
    interval_s: int
    cleanup_every_ticks: int
    timeout_s: float
    cron_secret: str | None
    max_retries: int
    retry_backoff_s: float


@dataclass(frozen=True)
class TaskRunResult:
    task: str
    ok: bool
    status_code: int | None = None
    summary: dict = field(default_factory=dict)
    error: str | None = None
    attempts: int = 1


def load_settings(env: dict[str, str] | None = None) -> MaintenanceWorkerSettings:
    source = env if env is not None else os.environ
    prefix = "PRINTFLOW_MAINTENANCE_WORKER_"
    api_base_url = source.get(f"{prefix}API_BASE_URL", "http://localhost:8000").strip()
    interval_s = int(source.get(f"{prefix}INTERVAL_S", "60"))
    cleanup_every_ticks = int(source.get(f"{prefix}CLEANUP_EVERY_TICKS", "10"))
    timeout_s = float(source.get(f"{prefix}TIMEOUT_S", "30"))
    cron_secret = source.get(f"{prefix}CRON_SECRET") or source.get("CRON_SECRET")
    max_retries = int(source.get(f"{prefix}MAX_RETRIES", "2"))
    retry_backoff_s = float(source.get(f"{prefix}RETRY_BACKOFF_S", "1"))

    if interval_s < 1:
        raise ValueError(f"{prefix}INTERVAL_S must be >= 1")
    if cleanup_every_ticks < 1:
        raise ValueError(f"{prefix}CLEANUP_EVERY_TICKS must be >= 1")
    if timeout_s <= 0:
        raise ValueError(f"{prefix}TIMEOUT_S must be > 0")
    if max_retries < 0:
        raise ValueError(f"{prefix}MAX_RETRIES must be >= 0")
    if retry_backoff_s < 0:
        raise ValueError(f"{prefix}RETRY_BACKOFF_S must be >= 0")

    return MaintenanceWorkerSettings(
        api_base_url=api_base_url.rstrip("/"),
        interval_s=interval_s,
        cleanup_every_ticks=cleanup_every_ticks,
        timeout_s=timeout_s,
        cron_secret=cron_secret,
        max_retries=max_retries,
        retry_backoff_s=retry_backoff_s,
    )


def _decode_summary(raw: str) -> tuple[bool, dict, str | None]:
    if not raw:
        return True, {}, None
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        return False, {}, "Invalid JSON in cron response"
    if not isinstance(body, dict):
        return False, {}, "Cron response must be a JSON object"
    return True, body, None


def run_task_once(
    settings: MaintenanceWorkerSettings,
    task: str,
    opener: Callable[..., object] = urllib.request.urlopen,
) -> TaskRunResult:
    request = urllib.request.Request(
        url=f"{settings.api_base_url}{TASK_PATHS[task]}",
        data=b"{}",
        method="POST",
        headers={
            "Content-Type": "application/json",
            **({"X-Cron-Secret": settings.cron_secret} if settings.cron_secret else {}),
        },
    )

    try:
        with opener(request, timeout=settings.timeout_s) as response:
            raw = response.read().decode("utf-8")
            valid, summary, error = _decode_summary(raw)
            return TaskRunResult(
                task=task,
                ok=valid,
                status_code=getattr(response, "status", 200),
                summary=summary,
                error=error,
            )
    except urllib.error.HTTPError as exc:
        return TaskRunResult(
            task=task, ok=False, status_code=exc.code, error=f"HTTPError: {exc.code}"
        )
    except urllib.error.URLError as exc:
        return TaskRunResult(task=task, ok=False, error=f"URLError: {exc.reason}")


def _is_retryable(result: TaskRunResult) -> bool:
    if result.ok:
        return False
    if result.status_code is None:
        return True
    if result.status_code in {408, 429}:
        return True
    return result.status_code >= 500


def run_task_with_retries(
    settings: MaintenanceWorkerSettings,
    task: str,
    opener: Callable[..., object] = urllib.request.urlopen,
    sleep: Callable[[float], None] = time.sleep,
) -> TaskRunResult:
    attempts = 0
    while True:
        attempts += 1
        result = run_task_once(settings, task, opener=opener)
        if result.ok or not _is_retryable(result) or attempts > settings.max_retries:
            return TaskRunResult(
                task=result.task,
                ok=result.ok,
                status_code=result.status_code,
                summary=result.summary,
                error=result.error,
                attempts=attempts,
            )
        sleep(settings.retry_backoff_s * (2 ** (attempts - 1)))


def tasks_for_tick(settings: MaintenanceWorkerSettings, tick: int) -> list[str]:
    # reconciliation must run before cleanup so a captured payment is never cancelled
    tasks = ["reconcile"]
    if tick % settings.cleanup_every_ticks == 0:
        tasks.append("cleanup")
    tasks.append("print_retries")
    return tasks


def run_tick(
    settings: MaintenanceWorkerSettings,
    tick: int,
    opener: Callable[..., object] = urllib.request.urlopen,
    sleep: Callable[[float], None] = time.sleep,
) -> list[TaskRunResult]:
    return [
        run_task_with_retries(settings, task, opener=opener, sleep=sleep)
        for task in tasks_for_tick(settings, tick)
    ]


def run_forever(settings: MaintenanceWorkerSettings) -> None:
    tick = 0
    while True:
        run_tick(settings, tick)
        tick += 1
        time.sleep(settings.interval_s)


if __name__ == "__main__":
    run_forever(load_settings())
