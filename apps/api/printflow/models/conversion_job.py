import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from printflow.db.base import Base
from printflow.models.order import utcnow


class ConversionJobStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ConversionJobRecord(Base):
    __tablename__ = "conversion_jobs"

    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    word_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    pdf_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    status: Mapped[ConversionJobStatus] = mapped_column(
        Enum(
            ConversionJobStatus,
            name="conversion_job_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ConversionJobStatus.PROCESSING,
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
