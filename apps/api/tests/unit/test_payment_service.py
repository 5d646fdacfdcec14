from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select

from printflow.integrations.errors import IntegrationUnavailableError
from printflow.models.creator_earning import CreatorEarning
from printflow.models.order import (
    OrderStatus,
    OrderType,
    PaymentStatus,
    PdfConversionStatus,
)
from printflow.models.order_event import OrderEvent
from printflow.models.print_job import PrintJob, PrintJobStatus
from printflow.observability import metrics_store
from printflow.services.errors import InvalidSignature, InvalidTransition, OrderNotFound
from printflow.services.payment_service import (
    PostPaymentEffects,
    capture_payment,
    record_creator_earning,
    verify_payment,
)
from printflow.services.print_dispatch_service import PrintDispatcher, get_retry_queue


def _verify(db, gateway, effects, order, payment_id="pay_001"):
    signature = gateway.sign(order.razorpay_order_id, payment_id)
    return verify_payment(db, gateway, effects, order.razorpay_order_id, payment_id, signature)


def _paid_events(db) -> int:
    return db.scalar(
        select(func.count()).select_from(OrderEvent).where(OrderEvent.to_status == "paid")
    )


def test_verify_captures_payment_and_runs_effects_once(
    db_session, gateway, effects, order_factory, printer_client, notifier
):
    order = order_factory()

    result = _verify(db_session, gateway, effects, order)

    assert result.replayed is False
    assert result.order.payment_status == PaymentStatus.COMPLETED
    assert result.order.status == OrderStatus.PAID
    assert result.order.razorpay_payment_id == "pay_001"
    assert result.order.paid_at is not None
    assert result.order.delivery_number.startswith("A")
    assert len(printer_client.sent) == 1
    assert printer_client.sent[0].delivery_number == result.order.delivery_number
    assert len(notifier.events("invoice")) == 1

    job = db_session.scalar(select(PrintJob).where(PrintJob.order_id == order.order_id))
    assert job.status == PrintJobStatus.PRINTING
    assert job.estimated_duration_minutes == 6


def test_second_verify_is_a_replay_without_side_effects(
    db_session, gateway, effects, order_factory, printer_client, notifier
):
    order = order_factory()
    first = _verify(db_session, gateway, effects, order)
    delivery_number = first.order.delivery_number

    second = _verify(db_session, gateway, effects, order)

    assert second.replayed is True
    assert second.order.delivery_number == delivery_number
    assert second.order.status == OrderStatus.PAID
    assert len(printer_client.sent) == 1
    assert len(notifier.events("invoice")) == 1
    assert _paid_events(db_session) == 1
    assert metrics_store.count("payment_verify_total") == 2
    assert metrics_store.count("payment_verify_replay_total") == 1


def test_verify_rejects_bad_signature(db_session, gateway, effects, order_factory):
    order = order_factory()

    with pytest.raises(InvalidSignature):
        verify_payment(db_session, gateway, effects, order.razorpay_order_id, "pay_1", "bogus")

    db_session.refresh(order)
    assert order.payment_status == PaymentStatus.PENDING


def test_verify_unknown_gateway_order(db_session, gateway, effects):
    signature = gateway.sign("order_missing", "pay_1")

    with pytest.raises(OrderNotFound):
        verify_payment(db_session, gateway, effects, "order_missing", "pay_1", signature)


def test_verify_on_cancelled_order_is_an_invalid_transition(
    db_session, gateway, effects, order_factory
):
    order = order_factory(status=OrderStatus.CANCELLED, payment_status=PaymentStatus.FAILED)

    with pytest.raises(InvalidTransition):
        _verify(db_session, gateway, effects, order)


def test_capture_payment_reports_lost_race(db_session, order_factory, session_factory):
    order = order_factory()
    with session_factory() as other:
        stale = other.get(type(order), order.id)
        assert capture_payment(db_session, order, "pay_a", source="client_verify") is True
        assert capture_payment(other, stale, "pay_b", source="reconciliation") is False
        assert stale.razorpay_payment_id == "pay_a"

    assert metrics_store.count("payment_capture_race_lost_total") == 1


def test_concurrent_verify_applies_exactly_one_update(
    db_session, gateway, order_factory, session_factory, printer_client, notifier, pipeline
):
    order = order_factory()
    gateway_order_id = order.razorpay_order_id
    signature = gateway.sign(gateway_order_id, "pay_race")

    def call_verify(_):
        db = session_factory()
        try:
            effects = PostPaymentEffects(
                PrintDispatcher(printer_client, get_retry_queue()), notifier, pipeline
            )
            result = verify_payment(db, gateway, effects, gateway_order_id, "pay_race", signature)
            return result.order.payment_status, result.order.status
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=5) as pool:
        outcomes = list(pool.map(call_verify, range(5)))

    assert outcomes == [(PaymentStatus.COMPLETED, OrderStatus.PAID)] * 5
    assert _paid_events(db_session) == 1
    assert len(printer_client.sent) == 1
    assert len(notifier.events("invoice")) == 1


def test_printer_failure_does_not_fail_verification(
    db_session, gateway, effects, order_factory, printer_client
):
    printer_client.failures_remaining = 1
    order = order_factory()

    result = _verify(db_session, gateway, effects, order)

    assert result.order.payment_status == PaymentStatus.COMPLETED
    assert result.order.delivery_number is not None
    assert [e.order_id for e in get_retry_queue().pending()] == [order.order_id]


def test_effect_errors_are_contained(db_session, gateway, dispatcher, pipeline, order_factory):
    class BrokenNotifier:
        def notify(self, event, payload):
            raise IntegrationUnavailableError("notifications", "down")

    order = order_factory()
    effects = PostPaymentEffects(dispatcher, BrokenNotifier(), pipeline)

    result = _verify(db_session, gateway, effects, order)

    assert result.order.payment_status == PaymentStatus.COMPLETED


def _template_order(order_factory, storage, docx_factory):
    docx_url = "https://storage.test/orders/filled-docx/1.docx"
    storage.files[docx_url] = docx_factory("<w:t>Ravi</w:t>")
    return order_factory(
        order_type=OrderType.TEMPLATE,
        file_url=None,
        filled_docx_url=docx_url,
        pdf_conversion_status=PdfConversionStatus.PENDING,
        template_id="tpl-1",
        template_price=50.0,
        creator_id="creator-1",
        creator_share_amount=40.0,
        platform_share_amount=10.0,
        amount=55.0,
    )


def test_template_order_records_earning_and_converts_locally(
    db_session, gateway, effects, order_factory, storage, notifier, printer_client, docx_factory
):
    order = _template_order(order_factory, storage, docx_factory)

    result = _verify(db_session, gateway, effects, order)

    assert result.order.pdf_conversion_status == PdfConversionStatus.COMPLETED
    assert result.order.filled_pdf_url.startswith("https://storage.test/orders/filled-pdf/")
    assert len(notifier.events("pdf_ready")) == 1
    assert printer_client.sent == []

    earning = db_session.scalar(select(CreatorEarning))
    assert earning.order_id == order.order_id
    assert earning.creator_share_amount == 40.0
    assert record_creator_earning(db_session, result.order).id == earning.id


def test_template_order_uses_render_service_when_configured(
    db_session, gateway, effects, order_factory, storage, render_service, docx_factory
):
    render_service._configured = True
    order = _template_order(order_factory, storage, docx_factory)

    result = _verify(db_session, gateway, effects, order)

    assert result.order.render_job_id == "render-1"
    assert result.order.pdf_conversion_status == PdfConversionStatus.PENDING
    assert result.order.filled_pdf_url is None
    assert render_service.submitted[0]["order_id"] == order.order_id


def test_template_conversion_is_deferred_without_render_service(
    db_session,
    gateway,
    dispatcher,
    notifier,
    pipeline,
    converters,
    order_factory,
    storage,
    docx_factory,
    session_factory,
):
    scheduled = []
    effects = PostPaymentEffects(
        dispatcher,
        notifier,
        pipeline,
        defer=lambda func, *args: scheduled.append((func, args)),
        session_factory=session_factory,
    )
    order = _template_order(order_factory, storage, docx_factory)

    result = _verify(db_session, gateway, effects, order)

    assert result.order.payment_status == PaymentStatus.COMPLETED
    assert result.order.pdf_conversion_status == PdfConversionStatus.PENDING
    assert converters[0].calls == 0
    assert len(scheduled) == 1

    func, args = scheduled[0]
    func(*args)

    db_session.refresh(order)
    assert converters[0].calls == 1
    assert order.pdf_conversion_status == PdfConversionStatus.COMPLETED
    assert order.filled_pdf_url.startswith("https://storage.test/orders/filled-pdf/")
    assert len(notifier.events("pdf_ready")) == 1
