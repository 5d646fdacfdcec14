import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from printflow.integrations.errors import IntegrationError
from printflow.integrations.notification_client import NotifierProtocol
from printflow.integrations.payment_gateway import PaymentGatewayProtocol
from printflow.models.creator_earning import CreatorEarning
from printflow.models.order import (
    Order,
    OrderStatus,
    OrderType,
    PaymentStatus,
    PdfConversionStatus,
)
from printflow.observability import log_event, metrics_store
from printflow.services.conversion_pipeline import ConversionPipeline
from printflow.services.errors import ConversionFailed, InvalidSignature, InvalidTransition
from printflow.services.orders_service import append_event, get_order, get_order_by_gateway_id
from printflow.services.print_dispatch_service import (
    PrintDispatcher,
    assign_delivery_number,
    ensure_print_job,
    is_dispatchable,
)
from printflow.services.state_machine import validate_transition


@dataclass
class VerificationResult:
    order: Order
    replayed: bool = False


def capture_payment(db: Session, order: Order, payment_id: str, source: str) -> bool:
    """Flip ``order`` to paid exactly once.

    The conditional UPDATE is the only guard against concurrent verify calls,
    reconciliation sweeps and replays. Returns ``True`` for the single caller
    whose update applied; every caller ends with ``order`` refreshed.
    """
    validate_transition(order.status, OrderStatus.PAID)
    now = datetime.now(timezone.utc)
    result = db.execute(
        update(Order)
        .where(
            Order.id == order.id,
            Order.payment_status != PaymentStatus.COMPLETED,
            Order.status == OrderStatus.PENDING_PAYMENT,
        )
        .values(
            payment_status=PaymentStatus.COMPLETED,
            razorpay_payment_id=payment_id,
            status=OrderStatus.PAID,
            paid_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    won = result.rowcount == 1
    if won:
        append_event(
            db,
            order,
            OrderStatus.PENDING_PAYMENT,
            OrderStatus.PAID,
            "Payment captured",
            {"payment_id": payment_id, "source": source},
        )
    db.commit()
    db.refresh(order)

    if not won:
        if order.payment_status != PaymentStatus.COMPLETED:
            raise InvalidTransition(
                order.status.value,
                OrderStatus.PAID.value,
                "order is no longer awaiting payment",
            )
        metrics_store.increment("payment_capture_race_lost_total")
        log_event("payment_capture_race_lost", order_id=order.order_id, source=source)
    else:
        log_event("payment_captured", order_id=order.order_id, source=source, payment_id=payment_id)
    return won


def record_creator_earning(db: Session, order: Order) -> CreatorEarning | None:
    if order.order_type != OrderType.TEMPLATE or not order.template_price or not order.creator_id:
        return None

    existing = db.scalar(select(CreatorEarning).where(CreatorEarning.order_id == order.order_id))
    if existing:
        return existing

    earning = CreatorEarning(
        order_id=order.order_id,
        template_id=order.template_id or "",
        creator_id=order.creator_id,
        template_price=order.template_price,
        creator_share_amount=order.creator_share_amount or 0.0,
        platform_share_amount=order.platform_share_amount or 0.0,
    )
    db.add(earning)
    db.commit()
    log_event(
        "creator_earning_recorded",
        order_id=order.order_id,
        creator_id=order.creator_id,
        amount=earning.creator_share_amount,
    )
    return earning


class PostPaymentEffects:
    """Side effects that follow a captured payment; none of them can undo it.

    ``defer`` schedules work to run after the response is sent (FastAPI's
    ``BackgroundTasks.add_task``). Deferred work opens its own session from
    ``session_factory``. Without ``defer`` every effect runs inline.
    """

    def __init__(
        self,
        dispatcher: PrintDispatcher,
        notifier: NotifierProtocol,
        pipeline: ConversionPipeline | None = None,
        *,
        defer: Callable[..., None] | None = None,
        session_factory: Callable[[], Session] | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.pipeline = pipeline
        self.defer = defer
        self.session_factory = session_factory

    def _best_effort(
        self, db: Session, order: Order, name: str, effect: Callable[[], object]
    ) -> None:
        try:
            effect()
        except Exception as err:  # payment is already durable; effects are retried elsewhere
            db.rollback()
            log_event(
                "post_payment_effect_failed",
                order_id=order.order_id,
                level=logging.ERROR,
                effect=name,
                error=str(err),
            )

    def run(self, db: Session, order: Order) -> None:
        printer_index = self.dispatcher.next_printer_index()
        self._best_effort(
            db, order, "delivery_number", lambda: assign_delivery_number(db, order, printer_index)
        )

        if order.order_type == OrderType.TEMPLATE:
            self._best_effort(
                db, order, "creator_earning", lambda: record_creator_earning(db, order)
            )
            self._best_effort(
                db, order, "template_pdf", lambda: self.produce_template_pdf(db, order)
            )
        elif is_dispatchable(order):
            self._best_effort(
                db,
                order,
                "print_dispatch",
                lambda: self.dispatcher.dispatch(db, order, printer_index),
            )
            self._best_effort(db, order, "print_job", lambda: ensure_print_job(db, order))

        self._best_effort(db, order, "invoice", lambda: self.send_invoice(order))

    def send_invoice(self, order: Order) -> bool:
        return self.notifier.notify(
            "invoice",
            {
                "order_id": order.order_id,
                "delivery_number": order.delivery_number,
                "amount": order.amount,
                "customer_name": order.customer_name,
                "customer_email": order.customer_email,
            },
        )

    def produce_template_pdf(self, db: Session, order: Order) -> None:
        if self.pipeline is None or not order.filled_docx_url or order.filled_pdf_url:
            return
        can_defer = self.defer is not None and self.session_factory is not None
        if can_defer and not self.pipeline.render_service.configured:
            # synchronous converters can take minutes; keep them off the verify response
            order.pdf_conversion_status = PdfConversionStatus.PENDING
            db.commit()
            self.defer(self.produce_template_pdf_later, order.order_id)
            log_event("template_pdf_deferred", order_id=order.order_id)
            return
        self._convert_template(db, order)

    def produce_template_pdf_later(self, order_id: str) -> None:
        with self.session_factory() as db:
            order = get_order(db, order_id)
            if order.filled_pdf_url:
                return
            self._best_effort(
                db, order, "template_pdf", lambda: self._convert_template(db, order)
            )

    def _convert_template(self, db: Session, order: Order) -> None:
        try:
            outcome = self.pipeline.convert_document(
                order.filled_docx_url, order_id=order.order_id, prefer_async=True
            )
        except (ConversionFailed, IntegrationError) as err:
            order.pdf_conversion_status = PdfConversionStatus.FAILED
            db.commit()
            log_event(
                "template_pdf_failed",
                order_id=order.order_id,
                level=logging.WARNING,
                error=str(err),
            )
            return

        if outcome.job is not None:
            order.render_job_id = outcome.job.job_id
            order.pdf_conversion_status = PdfConversionStatus.PENDING
            db.commit()
            return

        order.filled_pdf_url = outcome.pdf_url
        order.pdf_conversion_status = PdfConversionStatus.COMPLETED
        db.commit()
        self.notifier.notify(
            "pdf_ready",
            {
                "order_id": order.order_id,
                "pdf_url": order.filled_pdf_url,
                "customer_email": order.customer_email,
            },
        )


def verify_payment(
    db: Session,
    gateway: PaymentGatewayProtocol,
    effects: PostPaymentEffects,
    gateway_order_id: str,
    payment_id: str,
    signature: str,
) -> VerificationResult:
    metrics_store.increment("payment_verify_total")
    if not gateway.verify_signature(gateway_order_id, payment_id, signature):
        log_event(
            "payment_signature_invalid",
            level=logging.WARNING,
            gateway_order_id=gateway_order_id,
        )
        raise InvalidSignature()

    order = get_order_by_gateway_id(db, gateway_order_id)

    if order.payment_status == PaymentStatus.COMPLETED:
        if order.razorpay_payment_id != payment_id:
            log_event(
                "payment_verify_conflicting_payment",
                order_id=order.order_id,
                level=logging.WARNING,
                payment_id=payment_id,
                recorded_payment_id=order.razorpay_payment_id,
            )
        metrics_store.increment("payment_verify_replay_total")
        return VerificationResult(order=order, replayed=True)

    if not capture_payment(db, order, payment_id, source="client_verify"):
        return VerificationResult(order=order, replayed=True)

    effects.run(db, order)
    db.refresh(order)
    return VerificationResult(order=order)
