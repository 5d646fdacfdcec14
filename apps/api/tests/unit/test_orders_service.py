import pytest

from printflow.models.order import (
    CustomerOrderStatus,
    OrderStatus,
    OrderType,
    PaymentStatus,
    PdfConversionStatus,
)
from printflow.schemas.order import OrderCreate
from printflow.services.errors import InvalidOrderRequest, InvalidTransition, OrderNotFound
from printflow.services.orders_service import (
    create_order,
    get_order,
    list_order_events,
    list_orders,
    transition_order_status,
    update_order_status,
)

TEMPLATE_URL = "https://storage.test/templates/certificate.docx"


def _file_payload(**overrides) -> OrderCreate:
    payload = {
        "order_type": "file",
        "customer": {"name": " Asha Rao ", "email": "asha@example.com"},
        "printing_options": {"page_count": 4},
        "file_url": "https://storage.test/uploads/report.pdf",
    }
    payload.update(overrides)
    return OrderCreate.model_validate(payload)


def _template_payload(fields: dict, price: float = 50) -> OrderCreate:
    return OrderCreate.model_validate(
        {
            "order_type": "template",
            "customer": {"name": "Ravi"},
            "printing_options": {"page_count": 1},
            "template": {
                "template_id": "tpl-1",
                "template_name": "Certificate",
                "template_url": TEMPLATE_URL,
                "fields": fields,
                "price": price,
                "creator_id": "creator-1",
            },
        }
    )


def test_create_file_order_prices_and_registers_gateway_order(db_session, gateway, storage):
    order = create_order(db_session, _file_payload(), gateway, storage)

    assert order.order_id.startswith("ORD")
    assert len(order.order_id) == 13
    assert order.status == OrderStatus.PENDING_PAYMENT
    assert order.order_status == CustomerOrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.amount == 20
    assert order.customer_name == "Asha Rao"
    assert order.razorpay_order_id == gateway.created[0]["id"]
    assert gateway.created[0]["amount"] == 2000
    assert gateway.created[0]["receipt"] == order.order_id

    events = list_order_events(db_session, order.order_id)
    assert [(e.from_status, e.to_status) for e in events] == [(None, "pending_payment")]


def test_create_order_adds_delivery_charge(db_session, gateway, storage):
    payload = _file_payload(
        delivery_option="delivery",
        delivery_address="12 MG Road",
        delivery_distance_km=7,
    )

    order = create_order(db_session, payload, gateway, storage)

    assert order.amount == 40


def test_create_template_order_fills_and_uploads_docx(
    db_session, gateway, storage, docx_factory, read_docx
):
    storage.files[TEMPLATE_URL] = docx_factory("<w:t>Awarded to {{ name }}</w:t>")

    order = create_order(db_session, _template_payload({"name": "Ravi"}), gateway, storage)

    assert order.order_type == OrderType.TEMPLATE
    assert order.amount == 55
    assert order.creator_share_amount == 40
    assert order.platform_share_amount == 10
    assert order.pdf_conversion_status == PdfConversionStatus.PENDING
    assert storage.uploads[0][0] == "orders/filled-docx"
    assert "Awarded to Ravi" in read_docx(storage.files[order.filled_docx_url])


def test_create_template_order_rejects_missing_fields(db_session, gateway, storage, docx_factory):
    storage.files[TEMPLATE_URL] = docx_factory("<w:t>{{ name }} {{ grade }}</w:t>")

    with pytest.raises(InvalidOrderRequest, match="grade"):
        create_order(db_session, _template_payload({"name": "Ravi"}), gateway, storage)

    assert gateway.created == []
    assert list_orders(db_session) == []


def test_transition_appends_event_and_identity_is_noop(db_session, order_factory):
    order = order_factory(status=OrderStatus.PAID, payment_status=PaymentStatus.COMPLETED)

    transition_order_status(db_session, order, OrderStatus.PAID, "noop")
    transition_order_status(db_session, order, OrderStatus.PROCESSING, "Started")
    db_session.commit()

    events = list_order_events(db_session, order.order_id)
    assert [(e.from_status, e.to_status) for e in events] == [("paid", "processing")]


def test_transition_rejects_skipping_states(db_session, order_factory):
    order = order_factory()

    with pytest.raises(InvalidTransition):
        transition_order_status(db_session, order, OrderStatus.DELIVERED, "Skipped")


def test_update_order_status_uses_admin_overrides(db_session, order_factory):
    order = order_factory(status=OrderStatus.PAID, payment_status=PaymentStatus.COMPLETED)

    updated = update_order_status(db_session, order.order_id, OrderStatus.CANCELLED, "refund")

    assert updated.status == OrderStatus.CANCELLED
    event = list_order_events(db_session, order.order_id)[-1]
    assert event.message == "refund"
    assert event.payload["admin_override"] is True


def test_update_order_status_rejects_paid_target(db_session, order_factory):
    order = order_factory()

    with pytest.raises(InvalidTransition, match="payment verification"):
        update_order_status(db_session, order.order_id, OrderStatus.PAID)

    db_session.refresh(order)
    assert order.status == OrderStatus.PENDING_PAYMENT
    assert order.payment_status == PaymentStatus.PENDING


def test_admin_cancel_of_unpaid_order_fails_payment(db_session, order_factory):
    order = order_factory()

    cancelled = update_order_status(db_session, order.order_id, OrderStatus.CANCELLED)

    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.payment_status == PaymentStatus.FAILED


def test_list_orders_filters_by_status(db_session, order_factory):
    order_factory()
    paid = order_factory(status=OrderStatus.PAID, payment_status=PaymentStatus.COMPLETED)

    assert [o.order_id for o in list_orders(db_session, OrderStatus.PAID)] == [paid.order_id]
    assert len(list_orders(db_session)) == 2


def test_get_order_raises_for_unknown_id(db_session):
    with pytest.raises(OrderNotFound):
        get_order(db_session, "ORDMISSING")
