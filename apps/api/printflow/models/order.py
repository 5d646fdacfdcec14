import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Enum, Float, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from printflow.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderType(str, enum.Enum):
    FILE = "file"
    TEMPLATE = "template"


class OrderStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    PROCESSING = "processing"
    PRINTING = "printing"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class CustomerOrderStatus(str, enum.Enum):
    PENDING = "pending"
    PRINTING = "printing"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PdfConversionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DeliveryOption(str, enum.Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


_CUSTOMER_STATUS: dict[OrderStatus, CustomerOrderStatus] = {
    OrderStatus.PENDING_PAYMENT: CustomerOrderStatus.PENDING,
    OrderStatus.PAID: CustomerOrderStatus.PENDING,
    OrderStatus.PROCESSING: CustomerOrderStatus.PENDING,
    OrderStatus.PRINTING: CustomerOrderStatus.PRINTING,
    OrderStatus.DISPATCHED: CustomerOrderStatus.DISPATCHED,
    OrderStatus.DELIVERED: CustomerOrderStatus.DELIVERED,
    OrderStatus.CANCELLED: CustomerOrderStatus.CANCELLED,
}


def customer_status_for(status: OrderStatus) -> CustomerOrderStatus:
    return _CUSTOMER_STATUS[status]


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    order_type: Mapped[OrderType] = mapped_column(
        Enum(OrderType, name="order_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PENDING_PAYMENT,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)

    razorpay_order_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    razorpay_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    delivery_number: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    printing_options: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    delivery_option: Mapped[DeliveryOption] = mapped_column(
        Enum(
            DeliveryOption,
            name="delivery_option",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=DeliveryOption.PICKUP,
    )
    delivery_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    file_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    filled_docx_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    filled_pdf_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    pdf_conversion_status: Mapped[PdfConversionStatus | None] = mapped_column(
        Enum(
            PdfConversionStatus,
            name="pdf_conversion_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=True,
    )
    render_job_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    template_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    template_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    template_fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    template_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    creator_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    creator_share_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    platform_share_amount: Mapped[float | None] = mapped_column(Float, nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    @property
    def order_status(self) -> CustomerOrderStatus:
        return customer_status_for(self.status)

    @property
    def page_count(self) -> int:
        return int(self.printing_options.get("page_count") or 1)

    @property
    def copies(self) -> int:
        return int(self.printing_options.get("copies") or 1)

    @property
    def is_color(self) -> bool:
        return self.printing_options.get("color") == "color"

    @property
    def source_document_url(self) -> str | None:
        if self.order_type == OrderType.TEMPLATE:
            return self.filled_pdf_url
        return self.file_url
