from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from printflow.auth.dependencies import require_cron_secret
from printflow.config import settings
from printflow.db.session import get_db
from printflow.dependencies import get_job_store, get_post_payment_effects, get_print_dispatcher
from printflow.integrations.notification_client import NotifierProtocol, get_notifier
from printflow.integrations.payment_gateway import PaymentGatewayProtocol, get_payment_gateway
from printflow.routers.errors import gateway_not_configured
from printflow.schemas.cron import ReconcileRunResponse, StaleCleanupResponse
from printflow.schemas.printing import RetryDrainResponse
from printflow.services.errors import GatewayNotConfigured
from printflow.services.job_store import JobStore
from printflow.services.payment_service import PostPaymentEffects
from printflow.services.print_dispatch_service import PrintDispatcher
from printflow.services.reconciliation_service import (
    cancel_stale_orders,
    reconcile_pending_payments,
)

router = APIRouter(
    prefix="/api/v1/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)


@router.post("/reconcile-payments", response_model=ReconcileRunResponse)
def reconcile_payments(
    db: Session = Depends(get_db),
    gateway: PaymentGatewayProtocol = Depends(get_payment_gateway),
    effects: PostPaymentEffects = Depends(get_post_payment_effects),
) -> ReconcileRunResponse:
    try:
        report = reconcile_pending_payments(db, gateway, effects)
    except GatewayNotConfigured as err:
        raise gateway_not_configured() from err
    return ReconcileRunResponse(
        scanned=report.scanned,
        repaired=report.repaired,
        skipped=report.skipped,
        errors=report.errors,
    )


@router.post("/cleanup-pending-orders", response_model=StaleCleanupResponse)
def cleanup_pending_orders(
    db: Session = Depends(get_db),
    notifier: NotifierProtocol = Depends(get_notifier),
) -> StaleCleanupResponse:
    report = cancel_stale_orders(db, notifier)
    return StaleCleanupResponse(
        reminded=report.reminded,
        cancelled=report.cancelled,
        threshold_hours=settings.stale_order_threshold_hours,
    )


@router.post("/drain-print-retries", response_model=RetryDrainResponse)
def drain_print_retries(
    db: Session = Depends(get_db),
    dispatcher: PrintDispatcher = Depends(get_print_dispatcher),
    job_store: JobStore = Depends(get_job_store),
) -> RetryDrainResponse:
    report = dispatcher.drain(db)
    job_store.purge_expired()
    return RetryDrainResponse(**report.as_dict())
