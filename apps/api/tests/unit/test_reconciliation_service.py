from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from printflow.config import settings
from printflow.integrations.errors import IntegrationUnavailableError
from printflow.integrations.payment_gateway import GatewayPayment
from printflow.models.order import OrderStatus, PaymentStatus
from printflow.models.order_event import OrderEvent
from printflow.services.payment_service import capture_payment
from printflow.services.reconciliation_service import (
    cancel_stale_orders,
    check_amount,
    check_order_payment,
    list_gateway_payments,
    reconcile_order,
    reconcile_pending_payments,
)


def _ago(**delta) -> datetime:
    return datetime.now(timezone.utc) - timedelta(**delta)


def test_check_amount_tolerance_and_gross_ratio(order_factory):
    order = order_factory(amount=120.0)

    def payment(amount: int) -> GatewayPayment:
        return GatewayPayment(id="pay", status="captured", captured=True, amount=amount)

    exact = check_amount(order, payment(12000))
    assert exact.within_tolerance and not exact.gross_mismatch

    rounding = check_amount(order, payment(12100))
    assert rounding.within_tolerance

    off = check_amount(order, payment(15000))
    assert not off.within_tolerance and not off.gross_mismatch

    gross = check_amount(order, payment(1200))
    assert not gross.within_tolerance and gross.gross_mismatch


def test_sweep_repairs_paid_orders_and_skips_young_ones(
    db_session, gateway, effects, order_factory, printer_client
):
    old = order_factory(created_at=_ago(minutes=30))
    young = order_factory(created_at=_ago(minutes=1))
    gateway.add_captured_payment(old.razorpay_order_id, "pay_old", 12000)
    gateway.add_captured_payment(young.razorpay_order_id, "pay_young", 12000)

    report = reconcile_pending_payments(db_session, gateway, effects)

    assert report.scanned == 1
    assert report.repaired == [old.order_id]
    db_session.refresh(old)
    db_session.refresh(young)
    assert old.payment_status == PaymentStatus.COMPLETED
    assert old.razorpay_payment_id == "pay_old"
    assert old.delivery_number is not None
    assert young.payment_status == PaymentStatus.PENDING
    assert [job.order_id for job in printer_client.sent] == [old.order_id]


def test_sweep_ignores_uncaptured_payments(db_session, gateway, effects, order_factory):
    order = order_factory(created_at=_ago(hours=1))
    gateway.payments[order.razorpay_order_id] = [
        GatewayPayment(id="pay_auth", status="authorized", captured=False, amount=12000),
        GatewayPayment(id="pay_failed", status="failed", captured=False, amount=12000),
    ]

    report = reconcile_pending_payments(db_session, gateway, effects)

    assert report.repaired == []
    assert report.skipped == []
    db_session.refresh(order)
    assert order.payment_status == PaymentStatus.PENDING


def test_rounding_difference_still_reconciles(db_session, gateway, effects, order_factory):
    order = order_factory(created_at=_ago(hours=1))
    gateway.add_captured_payment(order.razorpay_order_id, "pay_1", 12050)

    assert reconcile_order(db_session, order, gateway, effects) == "repaired"


def test_gross_mismatch_warns_and_proceeds_by_default(
    db_session, gateway, effects, order_factory, monkeypatch
):
    monkeypatch.setattr(settings, "reconcile_strict_amount", False)
    order = order_factory(created_at=_ago(hours=1))
    gateway.add_captured_payment(order.razorpay_order_id, "pay_1", 1200)

    assert reconcile_order(db_session, order, gateway, effects) == "repaired"
    assert order.payment_status == PaymentStatus.COMPLETED


def test_gross_mismatch_is_skipped_in_strict_mode(
    db_session, gateway, effects, order_factory, monkeypatch
):
    monkeypatch.setattr(settings, "reconcile_strict_amount", True)
    order = order_factory(created_at=_ago(hours=1))
    gateway.add_captured_payment(order.razorpay_order_id, "pay_1", 1200)

    report = reconcile_pending_payments(db_session, gateway, effects)

    assert report.repaired == []
    assert report.skipped == [{"order_id": order.order_id, "reason": "amount_mismatch"}]
    db_session.refresh(order)
    assert order.payment_status == PaymentStatus.PENDING


def test_strict_mode_still_accepts_moderate_differences(
    db_session, gateway, effects, order_factory, monkeypatch
):
    monkeypatch.setattr(settings, "reconcile_strict_amount", True)
    order = order_factory(created_at=_ago(hours=1))
    gateway.add_captured_payment(order.razorpay_order_id, "pay_1", 15000)

    assert reconcile_order(db_session, order, gateway, effects) == "repaired"


def test_reconcile_after_client_verify_reports_already_completed(
    db_session, gateway, effects, order_factory, session_factory
):
    order = order_factory(created_at=_ago(hours=1))
    gateway.add_captured_payment(order.razorpay_order_id, "pay_1", 12000)
    with session_factory() as other:
        other_order = other.get(type(order), order.id)
        assert capture_payment(other, other_order, "pay_1", source="client_verify")

    assert reconcile_order(db_session, order, gateway, effects) == "already_completed"


def test_gateway_errors_are_reported_per_order(db_session, gateway, effects, order_factory):
    order = order_factory(created_at=_ago(hours=1))
    gateway.fetch_error = IntegrationUnavailableError("razorpay", "down")

    report = reconcile_pending_payments(db_session, gateway, effects)

    assert report.errors[0]["order_id"] == order.order_id
    assert report.repaired == []


def test_check_order_payment_outcomes(db_session, gateway, effects, order_factory):
    paid = order_factory(status=OrderStatus.PAID, payment_status=PaymentStatus.COMPLETED)
    pending = order_factory()
    gateway.add_captured_payment(pending.razorpay_order_id, "pay_1", 12000)

    _, outcome = check_order_payment(db_session, paid.order_id, gateway, effects)
    assert outcome == "already_completed"
    order, outcome = check_order_payment(db_session, pending.order_id, gateway, effects)
    assert outcome == "repaired"
    assert order.payment_status == PaymentStatus.COMPLETED


def test_list_gateway_payments(db_session, gateway, order_factory):
    order = order_factory()
    gateway.add_captured_payment(order.razorpay_order_id, "pay_1", 12000)

    _, payments = list_gateway_payments(db_session, order.order_id, gateway)

    assert [p.id for p in payments] == ["pay_1"]


def test_cleanup_reminds_then_cancels_stale_orders(db_session, notifier, order_factory):
    stale = order_factory(created_at=_ago(hours=30))
    reminder_due = order_factory(created_at=_ago(hours=3))
    fresh = order_factory(created_at=_ago(minutes=30))
    paid = order_factory(
        created_at=_ago(hours=30),
        status=OrderStatus.PAID,
        payment_status=PaymentStatus.COMPLETED,
    )

    report = cancel_stale_orders(db_session, notifier)

    assert report.cancelled == [stale.order_id]
    assert report.reminded == [reminder_due.order_id]
    for order in (stale, reminder_due, fresh, paid):
        db_session.refresh(order)
    assert stale.status == OrderStatus.CANCELLED
    assert stale.payment_status == PaymentStatus.FAILED
    assert reminder_due.payment_reminder_sent_at is not None
    assert fresh.status == OrderStatus.PENDING_PAYMENT
    assert paid.status == OrderStatus.PAID

    events = db_session.scalars(select(OrderEvent).where(OrderEvent.order_id == stale.id)).all()
    assert [(e.from_status, e.to_status) for e in events] == [("pending_payment", "cancelled")]


def test_cleanup_sends_each_reminder_once(db_session, notifier, order_factory):
    order_factory(created_at=_ago(hours=3))

    cancel_stale_orders(db_session, notifier)
    second = cancel_stale_orders(db_session, notifier)

    assert second.reminded == []
    assert len(notifier.events("payment_reminder")) == 1


def test_failed_reminder_is_retried_next_sweep(db_session, notifier, order_factory):
    order_factory(created_at=_ago(hours=3))
    notifier.succeed = False

    first = cancel_stale_orders(db_session, notifier)
    notifier.succeed = True
    second = cancel_stale_orders(db_session, notifier)

    assert first.reminded == []
    assert len(second.reminded) == 1
