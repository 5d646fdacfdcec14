from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from printflow.auth.dependencies import require_admin
from printflow.config import settings
from printflow.db.session import get_db
from printflow.dependencies import get_post_payment_effects
from printflow.integrations.errors import IntegrationError
from printflow.integrations.payment_gateway import PaymentGatewayProtocol, get_payment_gateway
from printflow.integrations.storage_client import ObjectStorageProtocol, get_object_storage
from printflow.models.order import OrderStatus
from printflow.observability import observe_timing
from printflow.routers.errors import (
    gateway_not_configured,
    not_found,
    translate_integration_error,
    translate_invalid_transition,
)
from printflow.schemas.order import (
    OrderCreate,
    OrderCreateResponse,
    OrderEventListResponse,
    OrderEventResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from printflow.schemas.payment import (
    GatewayPaymentListResponse,
    GatewayPaymentResponse,
    ReconcileCheckResponse,
)
from printflow.services.errors import (
    GatewayNotConfigured,
    InvalidOrderRequest,
    InvalidTransition,
    OrderNotFound,
)
from printflow.services.orders_service import (
    create_order,
    get_order,
    list_order_events,
    list_orders,
    update_order_status,
)
from printflow.services.payment_service import PostPaymentEffects
from printflow.services.pricing import to_paise
from printflow.services.reconciliation_service import check_order_payment, list_gateway_payments

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.post("", response_model=OrderCreateResponse, summary="Create order", status_code=201)
def create_order_endpoint(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    gateway: PaymentGatewayProtocol = Depends(get_payment_gateway),
    storage: ObjectStorageProtocol = Depends(get_object_storage),
) -> OrderCreateResponse:
    try:
        with observe_timing("order_create_s"):
            order = create_order(db, payload, gateway, storage)
    except InvalidOrderRequest as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except GatewayNotConfigured as err:
        raise gateway_not_configured() from err
    except IntegrationError as err:
        raise translate_integration_error(err) from err

    return OrderCreateResponse(
        order=OrderResponse.model_validate(order),
        gateway_order_id=order.razorpay_order_id,
        amount_paise=to_paise(order.amount),
        currency=settings.currency,
        key_id=settings.razorpay_key_id,
    )


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    dependencies=[Depends(require_admin)],
)
def list_orders_endpoint(
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> OrderListResponse:
    orders = list_orders(db, status_filter)
    return OrderListResponse(items=[OrderResponse.model_validate(order) for order in orders])


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order")
def get_order_endpoint(order_id: str, db: Session = Depends(get_db)) -> OrderResponse:
    try:
        return OrderResponse.model_validate(get_order(db, order_id))
    except OrderNotFound as err:
        raise not_found("Order not found") from err


@router.get(
    "/{order_id}/events",
    response_model=OrderEventListResponse,
    summary="Order status timeline",
    dependencies=[Depends(require_admin)],
)
def list_order_events_endpoint(
    order_id: str, db: Session = Depends(get_db)
) -> OrderEventListResponse:
    try:
        events = list_order_events(db, order_id)
    except OrderNotFound as err:
        raise not_found("Order not found") from err
    return OrderEventListResponse(items=[OrderEventResponse.model_validate(e) for e in events])


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Set order status (admin override)",
    dependencies=[Depends(require_admin)],
)
def update_order_status_endpoint(
    order_id: str,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
) -> OrderResponse:
    try:
        order = update_order_status(db, order_id, payload.status, payload.note)
    except OrderNotFound as err:
        raise not_found("Order not found") from err
    except InvalidTransition as err:
        raise translate_invalid_transition(err) from err
    return OrderResponse.model_validate(order)


@router.get(
    "/{order_id}/payments",
    response_model=GatewayPaymentListResponse,
    summary="List gateway payments for an order",
    dependencies=[Depends(require_admin)],
)
def list_gateway_payments_endpoint(
    order_id: str,
    db: Session = Depends(get_db),
    gateway: PaymentGatewayProtocol = Depends(get_payment_gateway),
) -> GatewayPaymentListResponse:
    try:
        order, payments = list_gateway_payments(db, order_id, gateway)
    except OrderNotFound as err:
        raise not_found("Order not found") from err
    except GatewayNotConfigured as err:
        raise gateway_not_configured() from err
    except IntegrationError as err:
        raise translate_integration_error(err) from err

    return GatewayPaymentListResponse(
        order_id=order.order_id,
        gateway_order_id=order.razorpay_order_id or "",
        items=[
            GatewayPaymentResponse(
                id=p.id, status=p.status, captured=p.captured, amount=p.amount, method=p.method
            )
            for p in payments
        ],
    )


@router.post(
    "/{order_id}/reconcile",
    response_model=ReconcileCheckResponse,
    summary="Check the gateway and repair a pending order",
    dependencies=[Depends(require_admin)],
)
def reconcile_order_endpoint(
    order_id: str,
    db: Session = Depends(get_db),
    gateway: PaymentGatewayProtocol = Depends(get_payment_gateway),
    effects: PostPaymentEffects = Depends(get_post_payment_effects),
) -> ReconcileCheckResponse:
    try:
        order, outcome = check_order_payment(db, order_id, gateway, effects)
    except OrderNotFound as err:
        raise not_found("Order not found") from err
    except GatewayNotConfigured as err:
        raise gateway_not_configured() from err
    except InvalidTransition as err:
        raise translate_invalid_transition(err) from err
    except IntegrationError as err:
        raise translate_integration_error(err) from err

    return ReconcileCheckResponse(
        order_id=order.order_id,
        outcome=outcome,
        payment_status=order.payment_status,
    )
