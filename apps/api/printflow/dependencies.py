from fastapi import BackgroundTasks, Depends

from printflow.config import render_callback_url, settings
from printflow.db.session import SessionLocal
from printflow.integrations.conversion_api_client import get_remote_conversion_client
from printflow.integrations.local_converter import get_local_converter
from printflow.integrations.notification_client import NotifierProtocol, get_notifier
from printflow.integrations.printer_client import PrinterClientProtocol, get_printer_client
from printflow.integrations.render_service_client import (
    RenderServiceProtocol,
    get_render_service_client,
)
from printflow.integrations.storage_client import ObjectStorageProtocol, get_object_storage
from printflow.services.conversion_pipeline import ConversionPipeline
from printflow.services.job_store import DbJobStore, JobStore, get_memory_job_store
from printflow.services.payment_service import PostPaymentEffects
from printflow.services.print_dispatch_service import (
    PrintDispatcher,
    get_printer_rotation,
    get_retry_queue,
)
from printflow.services.render_webhook_service import RenderWebhookHandler


def get_job_store() -> JobStore:
    if settings.conversion_job_store == "database":
        return DbJobStore(SessionLocal, ttl_s=settings.conversion_job_ttl_s)
    return get_memory_job_store()


def get_conversion_pipeline(
    storage: ObjectStorageProtocol = Depends(get_object_storage),
    render_service: RenderServiceProtocol = Depends(get_render_service_client),
    job_store: JobStore = Depends(get_job_store),
) -> ConversionPipeline:
    converters = []
    remote = get_remote_conversion_client()
    if remote.configured:
        converters.append(remote)
    converters.append(get_local_converter())
    return ConversionPipeline(
        converters=converters,
        render_service=render_service,
        storage=storage,
        job_store=job_store,
        callback_url=render_callback_url(),
        expected_duration_s=settings.conversion_expected_duration_s,
    )


def get_print_dispatcher(
    printer_client: PrinterClientProtocol = Depends(get_printer_client),
) -> PrintDispatcher:
    return PrintDispatcher(printer_client, get_retry_queue(), get_printer_rotation())


def get_post_payment_effects(
    background_tasks: BackgroundTasks,
    dispatcher: PrintDispatcher = Depends(get_print_dispatcher),
    notifier: NotifierProtocol = Depends(get_notifier),
    pipeline: ConversionPipeline = Depends(get_conversion_pipeline),
) -> PostPaymentEffects:
    return PostPaymentEffects(
        dispatcher,
        notifier,
        pipeline,
        defer=background_tasks.add_task,
        session_factory=SessionLocal,
    )


def get_render_webhook_handler(
    storage: ObjectStorageProtocol = Depends(get_object_storage),
    notifier: NotifierProtocol = Depends(get_notifier),
    job_store: JobStore = Depends(get_job_store),
) -> RenderWebhookHandler:
    return RenderWebhookHandler(storage, notifier, job_store)
