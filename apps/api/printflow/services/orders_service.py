import secrets
import string

from sqlalchemy import select
from sqlalchemy.orm import Session

from printflow.integrations.payment_gateway import PaymentGatewayProtocol
from printflow.integrations.storage_client import ObjectStorageProtocol
from printflow.models.order import (
    DeliveryOption,
    Order,
    OrderStatus,
    OrderType,
    PaymentStatus,
    PdfConversionStatus,
)
from printflow.models.order_event import OrderEvent
from printflow.observability import log_event
from printflow.schemas.order import OrderCreate
from printflow.services import template_filler
from printflow.services.errors import (
    InvalidOrderRequest,
    InvalidTransition,
    OrderNotFound,
    TemplateFillError,
)
from printflow.services.pricing import PrintingOptions, delivery_charge_for, quote, to_paise
from printflow.services.state_machine import validate_transition

_ORDER_ID_ALPHABET = string.ascii_uppercase + string.digits
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _generate_order_id(length: int = 10) -> str:
    return "ORD" + "".join(secrets.choice(_ORDER_ID_ALPHABET) for _ in range(length))


def _generate_unique_order_id(db: Session) -> str:
    while True:
        order_id = _generate_order_id()
        exists = db.scalar(select(Order.id).where(Order.order_id == order_id))
        if not exists:
            return order_id


def append_event(
    db: Session,
    order: Order,
    from_status: OrderStatus | None,
    to_status: OrderStatus,
    message: str,
    payload: dict | None = None,
) -> None:
    db.add(
        OrderEvent(
            order_id=order.id,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value,
            message=message,
            payload=payload or {},
        )
    )


def transition_order_status(
    db: Session,
    order: Order,
    next_status: OrderStatus,
    message: str,
    payload: dict | None = None,
    *,
    admin: bool = False,
) -> Order:
    previous_status = order.status
    if previous_status == next_status:
        return order

    validate_transition(previous_status, next_status, admin=admin)

    order.status = next_status
    append_event(
        db,
        order,
        previous_status,
        next_status,
        message,
        {"admin_override": admin, **(payload or {})} if admin else payload,
    )
    return order


def _printing_options(payload: OrderCreate) -> PrintingOptions:
    opts = payload.printing_options
    return PrintingOptions(
        page_size=opts.page_size,
        color=opts.color,
        sided=opts.sided,
        copies=opts.copies,
        page_count=opts.page_count,
        color_pages=tuple(opts.color_pages),
        service_option=opts.service_option,
    )


def _fill_template_document(storage: ObjectStorageProtocol, payload: OrderCreate) -> str:
    selection = payload.template
    template_bytes = storage.fetch(selection.template_url)
    try:
        template_filler.require_fields(template_bytes, selection.fields)
        filled = template_filler.fill_template(template_bytes, selection.fields)
    except TemplateFillError as err:
        raise InvalidOrderRequest(str(err)) from err
    return storage.upload_file(filled, "orders/filled-docx", DOCX_MIME)


def create_order(
    db: Session,
    payload: OrderCreate,
    gateway: PaymentGatewayProtocol,
    storage: ObjectStorageProtocol,
) -> Order:
    options = _printing_options(payload)
    delivery_charge = 0.0
    if payload.delivery_option == DeliveryOption.DELIVERY:
        delivery_charge = delivery_charge_for(payload.delivery_distance_km)

    template_price = payload.template.price if payload.template else None
    breakdown = quote(options, delivery_charge=delivery_charge, template_price=template_price)
    if breakdown.total <= 0:
        raise InvalidOrderRequest("Order total must be positive")

    order_id = _generate_unique_order_id(db)
    order = Order(
        order_id=order_id,
        order_type=payload.order_type,
        status=OrderStatus.PENDING_PAYMENT,
        payment_status=PaymentStatus.PENDING,
        amount=breakdown.total,
        customer_name=payload.customer.name,
        customer_email=payload.customer.email,
        customer_phone=payload.customer.phone,
        printing_options=payload.printing_options.model_dump(),
        delivery_option=payload.delivery_option,
        delivery_address=payload.delivery_address,
        file_url=payload.file_url if payload.order_type == OrderType.FILE else None,
    )

    if payload.order_type == OrderType.TEMPLATE:
        selection = payload.template
        order.filled_docx_url = _fill_template_document(storage, payload)
        order.pdf_conversion_status = PdfConversionStatus.PENDING
        order.template_id = selection.template_id
        order.template_name = selection.template_name
        order.template_fields = dict(selection.fields)
        if selection.price > 0:
            order.template_price = selection.price
            order.creator_id = selection.creator_id
            order.creator_share_amount = breakdown.creator_share_amount
            order.platform_share_amount = breakdown.platform_share_amount

    gateway_order = gateway.create_order(
        to_paise(breakdown.total),
        receipt=order_id,
        notes={"order_id": order_id, "order_type": payload.order_type.value},
    )
    order.razorpay_order_id = gateway_order.id

    db.add(order)
    db.flush()
    append_event(
        db,
        order,
        None,
        OrderStatus.PENDING_PAYMENT,
        "Order created",
        {"amount": breakdown.total, "gateway_order_id": gateway_order.id},
    )
    db.commit()
    db.refresh(order)

    log_event("order_created", order_id=order.order_id, amount=order.amount)
    return order


def get_order(db: Session, order_id: str) -> Order:
    order = db.scalar(select(Order).where(Order.order_id == order_id))
    if not order:
        raise OrderNotFound(order_id)
    return order


def get_order_by_gateway_id(db: Session, gateway_order_id: str) -> Order:
    order = db.scalar(select(Order).where(Order.razorpay_order_id == gateway_order_id))
    if not order:
        raise OrderNotFound(gateway_order_id)
    return order


def list_orders(db: Session, status_filter: OrderStatus | None = None) -> list[Order]:
    query = select(Order)
    if status_filter:
        query = query.where(Order.status == status_filter)
    return list(db.scalars(query.order_by(Order.created_at.desc())))


def list_order_events(db: Session, order_id: str) -> list[OrderEvent]:
    order = get_order(db, order_id)
    events = db.scalars(
        select(OrderEvent)
        .where(OrderEvent.order_id == order.id)
        .order_by(OrderEvent.created_at.asc())
    )
    return list(events)


def update_order_status(
    db: Session, order_id: str, next_status: OrderStatus, note: str | None = None
) -> Order:
    order = get_order(db, order_id)
    if next_status == OrderStatus.PAID:
        # payment state only moves through the conditional capture
        raise InvalidTransition(
            order.status.value,
            next_status.value,
            "paid is recorded by payment verification or reconciliation",
        )
    transition_order_status(
        db,
        order,
        next_status,
        note or f"Status set to {next_status.value} by admin",
        admin=True,
    )
    if next_status == OrderStatus.CANCELLED and order.payment_status == PaymentStatus.PENDING:
        order.payment_status = PaymentStatus.FAILED
    db.commit()
    db.refresh(order)
    log_event("order_status_updated", order_id=order.order_id, status=order.status.value)
    return order
