import itertools
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from threading import Lock

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from printflow.config import settings
from printflow.integrations.errors import IntegrationError
from printflow.integrations.printer_client import (
    PrintJobRequest,
    PrinterClientProtocol,
    PrinterCustomerInfo,
)
from printflow.models.order import Order, OrderStatus, OrderType
from printflow.models.print_job import PrintJob, PrintJobStatus
from printflow.observability import log_event, metrics_store
from printflow.services.pricing import estimate_print_duration_minutes

_delivery_sequence = itertools.count(1)


class PrinterRotation:
    """Process-wide round-robin cursor over the configured printers."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._position = 0

    def next_index(self, printer_count: int) -> int:
        with self._lock:
            index = self._position % max(printer_count, 1) + 1
            self._position += 1
        return index

    def reset(self) -> None:
        with self._lock:
            self._position = 0


def generate_delivery_number(printer_index: int, now: datetime | None = None) -> str:
    """``A<YYYYMMDD><printer>-<HHMMSS><seq>``; the sequence never repeats within a process."""
    now = now or datetime.now(timezone.utc)
    sequence = next(_delivery_sequence)
    return f"A{now:%Y%m%d}{printer_index}-{now:%H%M%S}{sequence:04d}"


def assign_delivery_number(db: Session, order: Order, printer_index: int) -> str:
    if order.delivery_number:
        return order.delivery_number

    db.execute(
        update(Order)
        .where(Order.id == order.id, Order.delivery_number.is_(None))
        .values(delivery_number=generate_delivery_number(printer_index))
    )
    db.commit()
    db.refresh(order)
    log_event(
        "delivery_number_assigned",
        order_id=order.order_id,
        delivery_number=order.delivery_number,
    )
    return order.delivery_number


def ensure_print_job(db: Session, order: Order) -> PrintJob:
    existing = db.scalar(select(PrintJob).where(PrintJob.order_id == order.order_id))
    if existing:
        return existing

    job = PrintJob(
        order_id=order.order_id,
        status=PrintJobStatus.PENDING,
        printing_options=dict(order.printing_options),
        estimated_duration_minutes=estimate_print_duration_minutes(
            order.page_count, order.copies, order.is_color
        ),
    )
    db.add(job)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent drain or manual dispatch created it first
        db.rollback()
        return db.scalar(select(PrintJob).where(PrintJob.order_id == order.order_id))
    db.refresh(job)
    return job


@dataclass
class RetryEntry:
    order_id: str
    printer_index: int
    attempts: int
    next_attempt_at: float
    last_error: str


class RetryQueue:
    """In-memory print retry bookkeeping keyed by order id."""

    def __init__(
        self,
        max_attempts: int,
        backoff_s: float,
        max_backoff_s: float,
        clock=time.time,
    ) -> None:
        self.max_attempts = max_attempts
        self.backoff_s = backoff_s
        self.max_backoff_s = max_backoff_s
        self._clock = clock
        self._lock = Lock()
        self._pending: dict[str, RetryEntry] = {}
        self._exhausted: dict[str, RetryEntry] = {}

    def delay_for(self, attempts: int) -> float:
        return min(self.backoff_s * (2 ** max(attempts - 1, 0)), self.max_backoff_s)

    def record_failure(self, order_id: str, printer_index: int, error: str) -> RetryEntry | None:
        """Count a failed attempt; returns the pending entry or ``None`` once exhausted."""
        with self._lock:
            previous = self._pending.pop(order_id, None)
            attempts = (previous.attempts if previous else 0) + 1
            entry = RetryEntry(
                order_id=order_id,
                printer_index=printer_index,
                attempts=attempts,
                next_attempt_at=self._clock() + self.delay_for(attempts),
                last_error=error,
            )
            if attempts >= self.max_attempts:
                self._exhausted[order_id] = entry
                return None
            self._pending[order_id] = entry
            return entry

    def resolve(self, order_id: str) -> None:
        with self._lock:
            self._pending.pop(order_id, None)
            self._exhausted.pop(order_id, None)

    def due(self, now: float | None = None) -> list[RetryEntry]:
        now = self._clock() if now is None else now
        with self._lock:
            return [
                entry for entry in self._pending.values() if entry.next_attempt_at <= now
            ]

    def pending(self) -> list[RetryEntry]:
        with self._lock:
            return list(self._pending.values())

    def exhausted(self) -> list[RetryEntry]:
        with self._lock:
            return list(self._exhausted.values())

    def reset(self) -> None:
        with self._lock:
            self._pending.clear()
            self._exhausted.clear()


@dataclass
class DispatchResult:
    success: bool
    delivery_number: str | None
    message: str


@dataclass
class DrainReport:
    attempted: int = 0
    succeeded: int = 0
    rescheduled: int = 0
    exhausted: int = 0
    dropped: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class PrintDispatcher:
    def __init__(
        self,
        printer_client: PrinterClientProtocol,
        retry_queue: RetryQueue,
        rotation: PrinterRotation | None = None,
    ) -> None:
        self.printer_client = printer_client
        self.retry_queue = retry_queue
        self.rotation = rotation or PrinterRotation()

    def next_printer_index(self) -> int:
        return self.rotation.next_index(len(self.printer_client.urls))

    def _build_request(
        self, order: Order, printer_index: int, delivery_number: str
    ) -> PrintJobRequest:
        return PrintJobRequest(
            file_url=order.source_document_url,
            file_name=f"{order.order_id}.pdf",
            printing_options=order.printing_options,
            printer_index=printer_index,
            order_id=order.order_id,
            delivery_number=delivery_number,
            customer_info=PrinterCustomerInfo(
                name=order.customer_name,
                email=order.customer_email,
                phone=order.customer_phone,
            ),
        )

    def dispatch(
        self, db: Session, order: Order, printer_index: int | None = None
    ) -> DispatchResult:
        if not order.source_document_url:
            return DispatchResult(False, order.delivery_number, "Order has no printable document")
        if not self.printer_client.urls:
            log_event(
                "print_dispatch_unconfigured", order_id=order.order_id, level=logging.WARNING
            )
            return DispatchResult(False, order.delivery_number, "No printer URLs configured")

        printer_index = printer_index or self.next_printer_index()
        delivery_number = assign_delivery_number(db, order, printer_index)
        job = ensure_print_job(db, order)
        job.attempts += 1
        job.printer_index = printer_index

        try:
            response = self.printer_client.send_print_job(
                self._build_request(order, printer_index, delivery_number)
            )
        except IntegrationError as err:
            metrics_store.increment("print_dispatch_failure_total")
            job.last_error = str(err)
            entry = self.retry_queue.record_failure(order.order_id, printer_index, str(err))
            if entry is None:
                job.status = PrintJobStatus.FAILED
                metrics_store.increment("print_retry_exhausted_total")
                message = "Print retries exhausted; manual intervention required"
            else:
                message = "Failed to send print job, added to retry queue"
            db.commit()
            log_event(
                "print_dispatch_failed",
                order_id=order.order_id,
                delivery_number=delivery_number,
                level=logging.WARNING,
                error=str(err),
                attempts=job.attempts,
                exhausted=entry is None,
            )
            return DispatchResult(False, delivery_number, message)

        job.status = PrintJobStatus.PRINTING
        job.last_error = None
        db.commit()
        self.retry_queue.resolve(order.order_id)

        if response.delivery_number and response.delivery_number != delivery_number:
            log_event(
                "printer_delivery_number_ignored",
                order_id=order.order_id,
                delivery_number=delivery_number,
                printer_delivery_number=response.delivery_number,
            )
        log_event(
            "print_dispatched",
            order_id=order.order_id,
            delivery_number=delivery_number,
            printer_index=printer_index,
            printer_job_id=response.job_id,
        )
        return DispatchResult(True, delivery_number, response.message or "Print job sent")

    def drain(self, db: Session, now: float | None = None) -> DrainReport:
        report = DrainReport()
        for entry in self.retry_queue.due(now):
            order = db.scalar(select(Order).where(Order.order_id == entry.order_id))
            if order is None or order.status == OrderStatus.CANCELLED:
                self.retry_queue.resolve(entry.order_id)
                report.dropped += 1
                continue

            report.attempted += 1
            result = self.dispatch(db, order, entry.printer_index)
            if result.success:
                report.succeeded += 1
            elif any(e.order_id == entry.order_id for e in self.retry_queue.pending()):
                report.rescheduled += 1
            else:
                report.exhausted += 1
        return report


def is_dispatchable(order: Order) -> bool:
    return order.order_type == OrderType.FILE and bool(order.file_url)


_retry_queue = RetryQueue(
    max_attempts=settings.print_retry_max_attempts,
    backoff_s=settings.print_retry_backoff_s,
    max_backoff_s=settings.print_retry_max_backoff_s,
)


def get_retry_queue() -> RetryQueue:
    return _retry_queue


_printer_rotation = PrinterRotation()


def get_printer_rotation() -> PrinterRotation:
    return _printer_rotation
