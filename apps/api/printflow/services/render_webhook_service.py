import base64
import binascii
import hmac
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from printflow.config import settings
from printflow.integrations.notification_client import NotifierProtocol
from printflow.integrations.storage_client import ObjectStorageProtocol
from printflow.models.conversion_job import ConversionJobStatus
from printflow.models.order import Order, OrderType, PdfConversionStatus
from printflow.observability import log_event
from printflow.schemas.webhook import RenderWebhookPayload
from printflow.services.conversion_pipeline import PDF_MIME
from printflow.services.errors import MalformedWebhook, WebhookUnauthorized
from printflow.services.job_store import ConversionJob, JobStore
from printflow.services.orders_service import get_order


def verify_webhook_secret(provided: str | None) -> None:
    expected = settings.render_webhook_secret
    if not expected:
        return
    if not provided or not hmac.compare_digest(provided, expected):
        raise WebhookUnauthorized()


def parse_webhook(body: object) -> RenderWebhookPayload:
    if not isinstance(body, dict):
        raise MalformedWebhook("Webhook body must be a JSON object")
    try:
        return RenderWebhookPayload.model_validate(body)
    except ValidationError as err:
        raise MalformedWebhook(str(err)) from err


def _decode_pdf(encoded: str) -> bytes:
    try:
        pdf_bytes = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as err:
        raise MalformedWebhook("pdfBuffer is not valid base64") from err
    if not pdf_bytes.startswith(b"%PDF"):
        raise MalformedWebhook("pdfBuffer is not a PDF document")
    return pdf_bytes


def _already_delivered(order: Order, job_id: str) -> bool:
    return (
        order.render_job_id == job_id
        and order.pdf_conversion_status == PdfConversionStatus.COMPLETED
        and bool(order.source_document_url)
    )


class RenderWebhookHandler:
    def __init__(
        self,
        storage: ObjectStorageProtocol,
        notifier: NotifierProtocol,
        job_store: JobStore,
    ) -> None:
        self.storage = storage
        self.notifier = notifier
        self.job_store = job_store

    def _job_for(self, order: Order, payload: RenderWebhookPayload) -> ConversionJob:
        job = self.job_store.get(payload.job_id)
        if job is not None:
            return job
        return ConversionJob(
            job_id=payload.job_id,
            word_url=order.filled_docx_url or order.file_url or "",
            order_id=order.order_id,
        )

    def handle(self, db: Session, payload: RenderWebhookPayload) -> str:
        order = get_order(db, payload.order_id)
        job = self._job_for(order, payload)

        if payload.status == "failed":
            job.status = ConversionJobStatus.FAILED
            job.error = payload.error or "Render service reported a failure"
            self.job_store.put(job)
            superseded = order.render_job_id is not None and order.render_job_id != payload.job_id
            if superseded or order.pdf_conversion_status == PdfConversionStatus.COMPLETED:
                log_event(
                    "render_failure_ignored",
                    order_id=order.order_id,
                    job_id=payload.job_id,
                    current_job_id=order.render_job_id,
                )
                return "Stale conversion failure ignored"
            order.pdf_conversion_status = PdfConversionStatus.FAILED
            db.commit()
            log_event(
                "render_conversion_failed",
                order_id=order.order_id,
                job_id=payload.job_id,
                level=logging.WARNING,
                error=job.error,
            )
            return "Conversion failure recorded"

        replay = _already_delivered(order, payload.job_id)
        if payload.pdf_buffer:
            pdf_bytes = _decode_pdf(payload.pdf_buffer)
        else:
            pdf_bytes = self.storage.fetch(payload.pdf_url)

        if order.order_type == OrderType.TEMPLATE:
            pdf_url = self.storage.upload_file(pdf_bytes, "orders/filled-pdf", PDF_MIME)
            order.filled_pdf_url = pdf_url
        else:
            pdf_url = self.storage.upload_file(pdf_bytes, "orders", PDF_MIME)
            order.file_url = pdf_url
        order.pdf_conversion_status = PdfConversionStatus.COMPLETED
        order.render_job_id = payload.job_id
        db.commit()

        job.status = ConversionJobStatus.COMPLETED
        job.pdf_url = pdf_url
        job.error = None
        self.job_store.put(job)
        log_event(
            "render_conversion_completed",
            order_id=order.order_id,
            job_id=payload.job_id,
            replay=replay,
        )

        if not replay:
            self.notifier.notify(
                "pdf_ready",
                {
                    "order_id": order.order_id,
                    "job_id": payload.job_id,
                    "pdf_url": pdf_url,
                    "attach_pdf": True,
                    "customer_email": order.customer_email,
                },
            )
        return "PDF stored"
