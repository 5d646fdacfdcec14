import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from printflow.db.base import Base
from printflow.models.order import utcnow


class PrintJobStatus(str, enum.Enum):
    PENDING = "pending"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"


class PrintJob(Base):
    __tablename__ = "print_jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # public order id; lookup only, the order is not owned by the job
    order_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    status: Mapped[PrintJobStatus] = mapped_column(
        Enum(
            PrintJobStatus,
            name="print_job_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=PrintJobStatus.PENDING,
    )
    printing_options: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    estimated_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    printer_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
