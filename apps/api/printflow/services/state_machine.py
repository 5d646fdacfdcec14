from printflow.models.order import OrderStatus
from printflow.services.errors import InvalidTransition

ORDER_STATE_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PROCESSING},
    OrderStatus.PROCESSING: {OrderStatus.PRINTING},
    OrderStatus.PRINTING: {OrderStatus.DISPATCHED},
    OrderStatus.DISPATCHED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

# Admin-only shortcuts on top of the normal graph.
ADMIN_OVERRIDE_TRANSITIONS: set[tuple[OrderStatus, OrderStatus]] = {
    (OrderStatus.PENDING_PAYMENT, OrderStatus.PROCESSING),
    (OrderStatus.PAID, OrderStatus.PRINTING),
    (OrderStatus.PAID, OrderStatus.CANCELLED),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    (OrderStatus.PRINTING, OrderStatus.PROCESSING),
}


def is_allowed(current: OrderStatus, next_status: OrderStatus, *, admin: bool = False) -> bool:
    if next_status in ORDER_STATE_TRANSITIONS.get(current, set()):
        return True
    return admin and (current, next_status) in ADMIN_OVERRIDE_TRANSITIONS


def validate_transition(
    current: OrderStatus, next_status: OrderStatus, *, admin: bool = False
) -> None:
    """Raise ``InvalidTransition`` unless ``current -> next_status`` is permitted.

    Pure check; persisting the new status is the caller's job.
    """
    if current == next_status:
        raise InvalidTransition(current.value, next_status.value, "order is already in this state")

    if is_allowed(current, next_status, admin=admin):
        return

    if not ORDER_STATE_TRANSITIONS.get(current):
        reason = f"{current.value} is a terminal state"
    elif (current, next_status) in ADMIN_OVERRIDE_TRANSITIONS:
        reason = "transition requires an admin override"
    else:
        reason = f"{next_status.value} is not reachable from {current.value}"
    raise InvalidTransition(current.value, next_status.value, reason)
