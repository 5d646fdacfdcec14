import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from printflow.config import settings
from printflow.integrations.errors import IntegrationError
from printflow.integrations.notification_client import NotifierProtocol
from printflow.integrations.payment_gateway import GatewayPayment, PaymentGatewayProtocol
from printflow.models.order import Order, OrderStatus, PaymentStatus
from printflow.observability import log_event, metrics_store
from printflow.services.errors import InvalidTransition
from printflow.services.orders_service import append_event, get_order
from printflow.services.payment_service import PostPaymentEffects, capture_payment
from printflow.services.pricing import to_paise


@dataclass
class ReconcileReport:
    scanned: int = 0
    repaired: list[str] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)


@dataclass
class CleanupReport:
    reminded: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)


@dataclass
class AmountCheck:
    expected_paise: int
    captured_paise: int
    within_tolerance: bool
    gross_mismatch: bool


def check_amount(order: Order, payment: GatewayPayment) -> AmountCheck:
    expected = to_paise(order.amount)
    captured = payment.amount
    low, high = sorted((expected, captured))
    ratio = high / max(low, 1)
    return AmountCheck(
        expected_paise=expected,
        captured_paise=captured,
        within_tolerance=abs(expected - captured) <= settings.amount_tolerance_paise,
        gross_mismatch=ratio >= settings.gross_mismatch_ratio,
    )


def _first_successful(payments: list[GatewayPayment]) -> GatewayPayment | None:
    return next((p for p in payments if p.is_successful), None)


def reconcile_order(
    db: Session,
    order: Order,
    gateway: PaymentGatewayProtocol,
    effects: PostPaymentEffects,
) -> str:
    """Repair one pending order from gateway state; returns the outcome label."""
    payments = gateway.fetch_order_payments(order.razorpay_order_id)
    payment = _first_successful(payments)
    if payment is None:
        return "no_captured_payment"

    amounts = check_amount(order, payment)
    if not amounts.within_tolerance:
        log_event(
            "reconcile_amount_mismatch",
            order_id=order.order_id,
            level=logging.WARNING,
            expected_paise=amounts.expected_paise,
            captured_paise=amounts.captured_paise,
            gross=amounts.gross_mismatch,
        )
        if amounts.gross_mismatch and settings.reconcile_strict_amount:
            return "amount_mismatch"
    elif amounts.expected_paise != amounts.captured_paise:
        log_event(
            "reconcile_amount_rounding",
            order_id=order.order_id,
            expected_paise=amounts.expected_paise,
            captured_paise=amounts.captured_paise,
        )

    if not capture_payment(db, order, payment.id, source="reconciliation"):
        return "already_completed"

    metrics_store.increment("reconcile_repaired_total")
    effects.run(db, order)
    return "repaired"


def reconcile_pending_payments(
    db: Session,
    gateway: PaymentGatewayProtocol,
    effects: PostPaymentEffects,
    now: datetime | None = None,
) -> ReconcileReport:
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=settings.reconcile_min_age_minutes)
    candidates = list(
        db.scalars(
            select(Order)
            .where(
                Order.payment_status == PaymentStatus.PENDING,
                Order.status == OrderStatus.PENDING_PAYMENT,
                Order.razorpay_order_id.is_not(None),
                Order.created_at <= cutoff,
            )
            .order_by(Order.created_at.asc())
        )
    )

    report = ReconcileReport(scanned=len(candidates))
    for order in candidates:
        try:
            outcome = reconcile_order(db, order, gateway, effects)
        except (IntegrationError, InvalidTransition) as err:
            db.rollback()
            report.errors.append({"order_id": order.order_id, "error": str(err)})
            log_event(
                "reconcile_order_failed",
                order_id=order.order_id,
                level=logging.WARNING,
                error=str(err),
            )
            continue

        if outcome == "repaired":
            report.repaired.append(order.order_id)
        elif outcome != "no_captured_payment":
            report.skipped.append({"order_id": order.order_id, "reason": outcome})

    log_event(
        "reconcile_finished",
        scanned=report.scanned,
        repaired=len(report.repaired),
        errors=len(report.errors),
    )
    return report


def check_order_payment(
    db: Session,
    order_id: str,
    gateway: PaymentGatewayProtocol,
    effects: PostPaymentEffects,
) -> tuple[Order, str]:
    order = get_order(db, order_id)
    if order.payment_status == PaymentStatus.COMPLETED:
        return order, "already_completed"
    if not order.razorpay_order_id:
        return order, "no_gateway_order"
    if order.status != OrderStatus.PENDING_PAYMENT:
        return order, "not_awaiting_payment"
    outcome = reconcile_order(db, order, gateway, effects)
    db.refresh(order)
    return order, outcome


def list_gateway_payments(
    db: Session, order_id: str, gateway: PaymentGatewayProtocol
) -> tuple[Order, list[GatewayPayment]]:
    order = get_order(db, order_id)
    if not order.razorpay_order_id:
        return order, []
    return order, gateway.fetch_order_payments(order.razorpay_order_id)


def _send_reminders(
    db: Session, notifier: NotifierProtocol, now: datetime, stale_cutoff: datetime
) -> list[str]:
    remind_cutoff = now - timedelta(hours=settings.reminder_min_age_hours)
    orders = db.scalars(
        select(Order).where(
            Order.status == OrderStatus.PENDING_PAYMENT,
            Order.payment_status == PaymentStatus.PENDING,
            Order.payment_reminder_sent_at.is_(None),
            Order.created_at <= remind_cutoff,
            Order.created_at > stale_cutoff,
        )
    )
    reminded = []
    for order in orders:
        sent = notifier.notify(
            "payment_reminder",
            {
                "order_id": order.order_id,
                "amount": order.amount,
                "customer_email": order.customer_email,
                "customer_phone": order.customer_phone,
            },
        )
        if sent:
            order.payment_reminder_sent_at = now
            reminded.append(order.order_id)
    db.commit()
    return reminded


def cancel_stale_orders(
    db: Session, notifier: NotifierProtocol, now: datetime | None = None
) -> CleanupReport:
    now = now or datetime.now(timezone.utc)
    stale_cutoff = now - timedelta(hours=settings.stale_order_threshold_hours)
    report = CleanupReport(reminded=_send_reminders(db, notifier, now, stale_cutoff))

    candidates = list(
        db.scalars(
            select(Order).where(
                Order.status == OrderStatus.PENDING_PAYMENT,
                Order.payment_status == PaymentStatus.PENDING,
                Order.created_at <= stale_cutoff,
            )
        )
    )
    for order in candidates:
        result = db.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.status == OrderStatus.PENDING_PAYMENT,
                Order.payment_status == PaymentStatus.PENDING,
            )
            .values(
                status=OrderStatus.CANCELLED,
                payment_status=PaymentStatus.FAILED,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            continue
        append_event(
            db,
            order,
            OrderStatus.PENDING_PAYMENT,
            OrderStatus.CANCELLED,
            "Order cancelled: payment not received",
            {"threshold_hours": settings.stale_order_threshold_hours},
        )
        db.commit()
        metrics_store.increment("stale_orders_cancelled_total")
        report.cancelled.append(order.order_id)
        log_event("stale_order_cancelled", order_id=order.order_id)

    return report
