# Import SQLAlchemy models so they register on Base.metadata
from printflow.models.conversion_job import ConversionJobRecord, ConversionJobStatus  # noqa: F401
from printflow.models.creator_earning import CreatorEarning  # noqa: F401
from printflow.models.order import (  # noqa: F401
    CustomerOrderStatus,
    DeliveryOption,
    Order,
    OrderStatus,
    OrderType,
    PaymentStatus,
    PdfConversionStatus,
)
from printflow.models.order_event import OrderEvent  # noqa: F401
from printflow.models.print_job import PrintJob, PrintJobStatus  # noqa: F401
