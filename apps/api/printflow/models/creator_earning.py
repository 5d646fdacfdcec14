import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from printflow.db.base import Base
from printflow.models.order import utcnow


class CreatorEarning(Base):
    __tablename__ = "creator_earnings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    template_id: Mapped[str] = mapped_column(String(64), nullable=False)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    template_price: Mapped[float] = mapped_column(Float, nullable=False)
    creator_share_amount: Mapped[float] = mapped_column(Float, nullable=False)
    platform_share_amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
