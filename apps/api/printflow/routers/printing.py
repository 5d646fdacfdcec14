from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from printflow.auth.dependencies import require_admin
from printflow.db.session import get_db
from printflow.dependencies import get_print_dispatcher
from printflow.integrations.errors import IntegrationError
from printflow.integrations.printer_client import PrinterClientProtocol, get_printer_client
from printflow.models.order import PaymentStatus
from printflow.observability import log_event
from printflow.routers.errors import not_found
from printflow.schemas.printing import (
    DispatchRequest,
    DispatchResponse,
    PrinterFleetHealthResponse,
    PrinterHealthResponse,
    PrinterQueueListResponse,
    PrinterQueueResponse,
    RetryEntryResponse,
    RetryQueueResponse,
)
from printflow.services.errors import OrderNotFound
from printflow.services.orders_service import get_order
from printflow.services.print_dispatch_service import PrintDispatcher, RetryEntry

router = APIRouter(
    prefix="/api/v1/printing",
    tags=["printing"],
    dependencies=[Depends(require_admin)],
)


def _target_urls(client: PrinterClientProtocol, printer_index: int | None) -> list[str]:
    if printer_index is None:
        return list(client.urls)
    if not client.urls:
        return []
    return [client.url_for_index(printer_index)]


def _queue_call(
    urls: list[str], action: str, call: Callable[[str], dict]
) -> PrinterQueueListResponse:
    results = []
    for url in urls:
        try:
            results.append(PrinterQueueResponse(url=url, ok=True, detail=call(url)))
        except IntegrationError as err:
            # printer admin calls are informational; one bad printer must not hide the rest
            log_event("printer_queue_call_failed", action=action, url=url, error=str(err))
            results.append(PrinterQueueResponse(url=url, ok=False, detail=err.message))
    return PrinterQueueListResponse(printers=results)


def _entry(entry: RetryEntry) -> RetryEntryResponse:
    return RetryEntryResponse(
        order_id=entry.order_id,
        printer_index=entry.printer_index,
        attempts=entry.attempts,
        next_attempt_at=entry.next_attempt_at,
        last_error=entry.last_error,
    )


@router.get("/health", response_model=PrinterFleetHealthResponse, summary="Printer health")
def printer_health(
    client: PrinterClientProtocol = Depends(get_printer_client),
) -> PrinterFleetHealthResponse:
    return PrinterFleetHealthResponse(
        printers=[
            PrinterHealthResponse(**client.check_health(url).model_dump()) for url in client.urls
        ]
    )


@router.get("/queue", response_model=PrinterQueueListResponse, summary="Printer queue status")
def printer_queue_status(
    printer_index: int | None = Query(default=None, ge=1),
    client: PrinterClientProtocol = Depends(get_printer_client),
) -> PrinterQueueListResponse:
    return _queue_call(_target_urls(client, printer_index), "status", client.queue_status)


@router.post("/queue/pause", response_model=PrinterQueueListResponse, summary="Pause printers")
def pause_printer_queue(
    printer_index: int | None = Query(default=None, ge=1),
    client: PrinterClientProtocol = Depends(get_printer_client),
) -> PrinterQueueListResponse:
    return _queue_call(_target_urls(client, printer_index), "pause", client.pause_queue)


@router.post("/queue/resume", response_model=PrinterQueueListResponse, summary="Resume printers")
def resume_printer_queue(
    printer_index: int | None = Query(default=None, ge=1),
    client: PrinterClientProtocol = Depends(get_printer_client),
) -> PrinterQueueListResponse:
    return _queue_call(_target_urls(client, printer_index), "resume", client.resume_queue)


@router.get("/retry-queue", response_model=RetryQueueResponse, summary="Print retry queue")
def retry_queue_status(
    dispatcher: PrintDispatcher = Depends(get_print_dispatcher),
) -> RetryQueueResponse:
    queue = dispatcher.retry_queue
    return RetryQueueResponse(
        pending=[_entry(e) for e in queue.pending()],
        exhausted=[_entry(e) for e in queue.exhausted()],
    )


@router.post(
    "/orders/{order_id}/dispatch",
    response_model=DispatchResponse,
    summary="Send an order to a printer",
)
def dispatch_order(
    order_id: str,
    payload: DispatchRequest | None = None,
    db: Session = Depends(get_db),
    dispatcher: PrintDispatcher = Depends(get_print_dispatcher),
) -> DispatchResponse:
    try:
        order = get_order(db, order_id)
    except OrderNotFound as err:
        raise not_found("Order not found") from err
    if order.payment_status != PaymentStatus.COMPLETED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order is not paid")

    printer_index = payload.printer_index if payload else None
    result = dispatcher.dispatch(db, order, printer_index)
    return DispatchResponse(
        success=result.success,
        delivery_number=result.delivery_number,
        message=result.message,
    )
