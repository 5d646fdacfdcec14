import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Protocol

from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker

from printflow.config import settings
from printflow.models.conversion_job import ConversionJobRecord, ConversionJobStatus


@dataclass
class ConversionJob:
    job_id: str
    word_url: str
    status: ConversionJobStatus = ConversionJobStatus.PROCESSING
    order_id: str | None = None
    pdf_url: str | None = None
    error: str | None = None
    created_at: float = field(default_factory=time.time)


class JobStore(Protocol):
    def put(self, job: ConversionJob) -> None: ...

    def get(self, job_id: str) -> ConversionJob | None: ...

    def purge_expired(self) -> int: ...


class InMemoryJobStore:
    """Process-local job map with TTL eviction."""

    def __init__(self, ttl_s: float, clock=time.time) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._lock = Lock()
        self._jobs: dict[str, ConversionJob] = {}

    def put(self, job: ConversionJob) -> None:
        with self._lock:
            self._jobs[job.job_id] = replace(job)

    def get(self, job_id: str) -> ConversionJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if self._clock() - job.created_at > self.ttl_s:
                del self._jobs[job_id]
                return None
            return replace(job)

    def purge_expired(self) -> int:
        cutoff = self._clock() - self.ttl_s
        with self._lock:
            expired = [job_id for job_id, job in self._jobs.items() if job.created_at < cutoff]
            for job_id in expired:
                del self._jobs[job_id]
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._jobs.clear()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DbJobStore:
    """Job store backed by the ``conversion_jobs`` table, shared across processes."""

    def __init__(self, session_factory: sessionmaker, ttl_s: float) -> None:
        self.session_factory = session_factory
        self.ttl_s = ttl_s

    def put(self, job: ConversionJob) -> None:
        created_at = datetime.fromtimestamp(job.created_at, tz=timezone.utc)
        with self.session_factory() as db:
            record = db.get(ConversionJobRecord, job.job_id)
            if record is None:
                record = ConversionJobRecord(
                    job_id=job.job_id,
                    created_at=created_at,
                    expires_at=created_at + timedelta(seconds=self.ttl_s),
                    word_url=job.word_url,
                )
                db.add(record)
            record.order_id = job.order_id
            record.word_url = job.word_url
            record.pdf_url = job.pdf_url
            record.status = job.status
            record.error = job.error
            db.commit()

    def get(self, job_id: str) -> ConversionJob | None:
        with self.session_factory() as db:
            record = db.get(ConversionJobRecord, job_id)
            if record is None:
                return None
            if _as_utc(record.expires_at) <= datetime.now(timezone.utc):
                return None
            return _to_job(record)

    def purge_expired(self) -> int:
        with self.session_factory() as db:
            result = db.execute(
                delete(ConversionJobRecord).where(
                    ConversionJobRecord.expires_at <= datetime.now(timezone.utc)
                )
            )
            db.commit()
            return result.rowcount or 0


def _to_job(record: ConversionJobRecord) -> ConversionJob:
    return ConversionJob(
        job_id=record.job_id,
        word_url=record.word_url,
        status=record.status,
        order_id=record.order_id,
        pdf_url=record.pdf_url,
        error=record.error,
        created_at=_as_utc(record.created_at).timestamp(),
    )


def estimate_progress(job: ConversionJob, now: float, expected_duration_s: float) -> int:
    """Elapsed-time progress estimate; grows with time and stays below 100 until done."""
    if job.status == ConversionJobStatus.COMPLETED:
        return 100
    if job.status == ConversionJobStatus.FAILED:
        return 0
    elapsed = max(now - job.created_at, 0.0)
    fraction = elapsed / (elapsed + max(expected_duration_s, 1.0))
    return min(10 + int(fraction * 90), 95)


_memory_store = InMemoryJobStore(ttl_s=settings.conversion_job_ttl_s)


def get_memory_job_store() -> InMemoryJobStore:
    return _memory_store
