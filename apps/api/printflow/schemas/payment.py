from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from printflow.models.order import PaymentStatus


class PaymentVerifyRequest(BaseModel):
    gateway_order_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("gatewayOrderId", "razorpay_order_id", "gateway_order_id"),
    )
    gateway_payment_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices(
            "gatewayPaymentId", "razorpay_payment_id", "gateway_payment_id"
        ),
    )
    signature: str = Field(
        min_length=1,
        validation_alias=AliasChoices("signature", "razorpay_signature"),
    )


class VerifiedOrder(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    order_id: str = Field(alias="orderId")
    amount: float
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    delivery_number: str | None = Field(alias="deliveryNumber")
    created_at: datetime = Field(alias="createdAt")


class PaymentVerifyResponse(BaseModel):
    success: bool
    order: VerifiedOrder


class GatewayPaymentResponse(BaseModel):
    id: str
    status: str
    captured: bool
    amount: int
    method: str | None = None


class GatewayPaymentListResponse(BaseModel):
    order_id: str
    gateway_order_id: str
    items: list[GatewayPaymentResponse]


class ReconcileCheckResponse(BaseModel):
    order_id: str
    outcome: str
    payment_status: PaymentStatus
    detail: str | None = None
