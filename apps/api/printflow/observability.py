"""Structured JSON logging, request correlation and process-local metrics."""

import json
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from threading import Lock

LOGGER_NAME = "printflow"

# Attributes copied from a LogRecord into every JSON line, in output order.
CORRELATION_FIELDS = ("request_id", "order_id", "job_id", "delivery_number")

_current_request_id: ContextVar[str | None] = ContextVar("printflow_request_id", default=None)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CORRELATION_FIELDS:
            entry[field] = getattr(record, field, None)
        if entry["request_id"] is None:
            entry["request_id"] = _current_request_id.get()

        detail = getattr(record, "detail", None)
        if detail:
            entry["detail"] = detail
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


@dataclass
class MetricsSnapshot:
    counters: dict[str, int]
    timings: dict[str, dict[str, float]]


@dataclass
class _TimingAggregate:
    samples: int = 0
    total_s: float = 0.0
    max_s: float = 0.0

    def add(self, value_s: float) -> None:
        self.samples += 1
        self.total_s += value_s
        self.max_s = max(self.max_s, value_s)

    def as_dict(self) -> dict[str, float]:
        return {
            "count": float(self.samples),
            "avg_s": self.total_s / self.samples,
            "max_s": self.max_s,
        }


class MetricsStore:
    """Counters and running timing aggregates.

    Sync endpoints and background tasks run on FastAPI's threadpool, so every
    mutation goes through one lock. Timings keep aggregates only, which keeps
    memory flat for long-lived processes.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, int] = {}
        self._timings: dict[str, _TimingAggregate] = {}

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def observe(self, name: str, value_s: float) -> None:
        with self._lock:
            self._timings.setdefault(name, _TimingAggregate()).add(value_s)

    def count(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def reset(self) -> None:
        with self._lock:
            self._counters = {}
            self._timings = {}

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                counters=dict(self._counters),
                timings={
                    name: aggregate.as_dict()
                    for name, aggregate in self._timings.items()
                    if aggregate.samples
                },
            )


metrics_store = MetricsStore()


def set_request_id(request_id: str) -> None:
    _current_request_id.set(request_id)


def get_request_id() -> str | None:
    return _current_request_id.get()


def log_event(
    message: str,
    *,
    order_id: str | None = None,
    job_id: str | None = None,
    delivery_number: str | None = None,
    level: int = logging.INFO,
    **detail,
) -> None:
    """Emit one structured line on the service logger.

    Keyword arguments beyond the correlation ids land under ``detail``.
    """
    correlation = {
        "request_id": get_request_id(),
        "order_id": order_id,
        "job_id": job_id,
        "delivery_number": delivery_number,
    }
    logging.getLogger(LOGGER_NAME).log(
        level, message, extra={**correlation, "detail": detail or None}
    )


@contextmanager
def observe_timing(metric_name: str) -> Iterator[None]:
    started = time.perf_counter()
    try:
        yield
    finally:
        metrics_store.observe(metric_name, time.perf_counter() - started)
