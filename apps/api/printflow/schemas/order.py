from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from printflow.models.order import (
    CustomerOrderStatus,
    DeliveryOption,
    OrderStatus,
    OrderType,
    PaymentStatus,
    PdfConversionStatus,
)


class PrintingOptionsIn(BaseModel):
    page_size: Literal["A4", "A3"] = "A4"
    color: Literal["bw", "color", "mixed"] = "bw"
    sided: Literal["single", "double"] = "single"
    copies: int = Field(default=1, ge=1, le=100)
    page_count: int = Field(default=1, ge=1, le=2000)
    color_pages: list[int] = Field(default_factory=list)
    service_option: Literal["binding", "file", "service"] | None = None

    @model_validator(mode="after")
    def check_color_pages(self) -> "PrintingOptionsIn":
        if self.color == "mixed" and not self.color_pages:
            raise ValueError("color_pages is required for mixed color printing")
        if any(page < 1 or page > self.page_count for page in self.color_pages):
            raise ValueError("color_pages must be within the document page range")
        return self


class CustomerInfo(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)

    @field_validator("name", "email", "phone")
    @classmethod
    def strip_strings(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return value.strip()


class TemplateSelection(BaseModel):
    template_id: str = Field(min_length=1, max_length=64)
    template_name: str | None = Field(default=None, max_length=255)
    template_url: str = Field(min_length=1)
    fields: dict[str, str] = Field(default_factory=dict)
    price: float = Field(default=0, ge=0)
    creator_id: str | None = Field(default=None, max_length=64)

    @model_validator(mode="after")
    def check_creator(self) -> "TemplateSelection":
        if self.price > 0 and not self.creator_id:
            raise ValueError("creator_id is required for paid templates")
        return self


class OrderCreate(BaseModel):
    order_type: OrderType
    customer: CustomerInfo
    printing_options: PrintingOptionsIn = Field(default_factory=PrintingOptionsIn)
    delivery_option: DeliveryOption = DeliveryOption.PICKUP
    delivery_address: str | None = None
    delivery_distance_km: float | None = Field(default=None, ge=0)
    file_url: str | None = None
    template: TemplateSelection | None = None

    @model_validator(mode="after")
    def check_source(self) -> "OrderCreate":
        if self.order_type == OrderType.FILE and not self.file_url:
            raise ValueError("file_url is required for file orders")
        if self.order_type == OrderType.TEMPLATE and self.template is None:
            raise ValueError("template is required for template orders")
        if self.delivery_option == DeliveryOption.DELIVERY and not self.delivery_address:
            raise ValueError("delivery_address is required for delivery orders")
        return self


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    order_type: OrderType
    status: OrderStatus
    order_status: CustomerOrderStatus
    payment_status: PaymentStatus
    amount: float
    razorpay_order_id: str | None
    razorpay_payment_id: str | None
    delivery_number: str | None
    customer_name: str
    printing_options: dict
    delivery_option: DeliveryOption
    file_url: str | None
    filled_docx_url: str | None
    filled_pdf_url: str | None
    pdf_conversion_status: PdfConversionStatus | None
    render_job_id: str | None
    template_id: str | None
    template_price: float | None
    creator_share_amount: float | None
    platform_share_amount: float | None
    paid_at: datetime | None
    created_at: datetime
    updated_at: datetime


class OrderCreateResponse(BaseModel):
    order: OrderResponse
    gateway_order_id: str
    amount_paise: int
    currency: str
    key_id: str


class OrderListResponse(BaseModel):
    items: list[OrderResponse]


class OrderEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: str | None
    to_status: str
    message: str
    payload: dict
    created_at: datetime


class OrderEventListResponse(BaseModel):
    items: list[OrderEventResponse]


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: str | None = Field(default=None, max_length=500)
