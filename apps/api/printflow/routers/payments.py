from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from printflow.db.session import get_db
from printflow.dependencies import get_post_payment_effects
from printflow.integrations.payment_gateway import PaymentGatewayProtocol, get_payment_gateway
from printflow.observability import observe_timing
from printflow.routers.errors import gateway_not_configured, not_found, translate_invalid_transition
from printflow.schemas.payment import PaymentVerifyRequest, PaymentVerifyResponse, VerifiedOrder
from printflow.services.errors import (
    GatewayNotConfigured,
    InvalidSignature,
    InvalidTransition,
    OrderNotFound,
)
from printflow.services.payment_service import PostPaymentEffects, verify_payment

router = APIRouter(prefix="/payment", tags=["payments"])


@router.post("/verify", response_model=PaymentVerifyResponse, summary="Verify a payment")
def verify_payment_endpoint(
    payload: PaymentVerifyRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGatewayProtocol = Depends(get_payment_gateway),
    effects: PostPaymentEffects = Depends(get_post_payment_effects),
) -> PaymentVerifyResponse:
    try:
        with observe_timing("payment_verify_s"):
            result = verify_payment(
                db,
                gateway,
                effects,
                payload.gateway_order_id,
                payload.gateway_payment_id,
                payload.signature,
            )
    except InvalidSignature as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except OrderNotFound as err:
        raise not_found("Order not found") from err
    except GatewayNotConfigured as err:
        raise gateway_not_configured() from err
    except InvalidTransition as err:
        raise translate_invalid_transition(err) from err

    return PaymentVerifyResponse(success=True, order=VerifiedOrder.model_validate(result.order))
