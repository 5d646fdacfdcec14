import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

from printflow.integrations.errors import (
    IntegrationAuthError,
    IntegrationError,
    IntegrationQuotaError,
)
from printflow.integrations.render_service_client import RenderServiceProtocol
from printflow.integrations.storage_client import ObjectStorageProtocol
from printflow.models.conversion_job import ConversionJobStatus
from printflow.observability import log_event, metrics_store, observe_timing
from printflow.services.errors import ConversionFailed, ConversionJobNotFound, ProviderAttempt
from printflow.services.job_store import ConversionJob, JobStore, estimate_progress

PDF_MIME = "application/pdf"
_REMOTE_PROGRESS = {ConversionJobStatus.COMPLETED: 100, ConversionJobStatus.FAILED: 0}


class Converter(Protocol):
    name: str

    def convert(self, docx_bytes: bytes) -> bytes: ...


@dataclass
class ConversionResult:
    pdf_bytes: bytes
    provider: str
    failures: list[ProviderAttempt] = field(default_factory=list)


@dataclass
class ConversionOutcome:
    """Either a finished PDF (``pdf_url``) or an accepted async job (``job``)."""

    pdf_url: str | None = None
    provider: str | None = None
    job: ConversionJob | None = None
    failures: list[ProviderAttempt] = field(default_factory=list)


@dataclass
class JobStatusView:
    job_id: str
    status: ConversionJobStatus
    progress: int
    pdf_url: str | None = None
    word_url: str | None = None
    error: str | None = None


def _failure_kind(err: IntegrationError) -> str:
    if isinstance(err, (IntegrationAuthError, IntegrationQuotaError)):
        return "quota_or_auth"
    if err.retryable:
        return "transient"
    return "rejected"


class ConversionPipeline:
    def __init__(
        self,
        converters: list[Converter],
        render_service: RenderServiceProtocol,
        storage: ObjectStorageProtocol,
        job_store: JobStore,
        callback_url: str,
        expected_duration_s: float = 90.0,
        clock=time.time,
    ) -> None:
        self.converters = converters
        self.render_service = render_service
        self.storage = storage
        self.job_store = job_store
        self.callback_url = callback_url
        self.expected_duration_s = expected_duration_s
        self._clock = clock

    def convert(self, docx_bytes: bytes) -> ConversionResult:
        """Try each synchronous provider in order and return the first PDF."""
        failures: list[ProviderAttempt] = []
        for converter in self.converters:
            try:
                with observe_timing(f"conversion_{converter.name}_s"):
                    pdf_bytes = converter.convert(docx_bytes)
            except IntegrationError as err:
                metrics_store.increment("conversion_provider_failure_total")
                failures.append(ProviderAttempt(converter.name, err.code, err.message))
                log_event(
                    "conversion_provider_failed",
                    level=logging.WARNING,
                    provider=converter.name,
                    code=err.code,
                    kind=_failure_kind(err),
                    error=err.message,
                )
                continue
            return ConversionResult(pdf_bytes=pdf_bytes, provider=converter.name, failures=failures)
        raise ConversionFailed(attempts=failures)

    def submit_async(self, docx_url: str, order_id: str | None = None) -> ConversionJob:
        job_id = self.render_service.submit(docx_url, order_id or "", self.callback_url)
        job = ConversionJob(
            job_id=job_id,
            word_url=docx_url,
            order_id=order_id,
            created_at=self._clock(),
        )
        self.job_store.put(job)
        log_event("conversion_submitted", order_id=order_id, job_id=job_id)
        return job

    def convert_document(
        self,
        docx_url: str,
        *,
        order_id: str | None = None,
        folder: str = "orders/filled-pdf",
        prefer_async: bool = False,
    ) -> ConversionOutcome:
        """Produce a PDF for ``docx_url`` through the provider cascade.

        With ``prefer_async`` and a configured render service the document is
        handed off immediately. Otherwise the synchronous providers run first
        and the render service is the last resort.
        """
        if prefer_async and self.render_service.configured:
            return ConversionOutcome(job=self.submit_async(docx_url, order_id))

        docx_bytes = self.storage.fetch(docx_url)
        try:
            result = self.convert(docx_bytes)
        except ConversionFailed as failed:
            if not self.render_service.configured:
                raise
            try:
                job = self.submit_async(docx_url, order_id)
            except IntegrationError as err:
                metrics_store.increment("conversion_provider_failure_total")
                failed.attempts.append(ProviderAttempt("render_service", err.code, err.message))
                raise failed from err
            return ConversionOutcome(job=job, failures=failed.attempts)

        pdf_url = self.storage.upload_file(result.pdf_bytes, folder, PDF_MIME)
        log_event("conversion_completed", order_id=order_id, provider=result.provider)
        return ConversionOutcome(
            pdf_url=pdf_url, provider=result.provider, failures=result.failures
        )

    def job_status(self, job_id: str) -> JobStatusView:
        job = self.job_store.get(job_id)
        if job is not None:
            return JobStatusView(
                job_id=job.job_id,
                status=job.status,
                progress=estimate_progress(job, self._clock(), self.expected_duration_s),
                pdf_url=job.pdf_url,
                word_url=job.word_url,
                error=job.error,
            )

        if not self.render_service.configured:
            raise ConversionJobNotFound(job_id)
        try:
            remote = self.render_service.status(job_id)
        except IntegrationError as err:
            raise ConversionJobNotFound(job_id) from err

        try:
            status = ConversionJobStatus(remote.status)
        except ValueError:
            status = ConversionJobStatus.PROCESSING
        return JobStatusView(
            job_id=job_id,
            status=status,
            progress=_REMOTE_PROGRESS.get(status, 50),
            pdf_url=remote.pdf_url,
            error=remote.error,
        )
