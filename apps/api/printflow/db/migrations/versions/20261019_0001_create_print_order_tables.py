"""create orders, print_jobs, order_events, conversion_jobs, creator_earnings

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

order_type = sa.Enum("file", "template", name="order_type")
order_status = sa.Enum(
    "pending_payment",
    "paid",
    "processing",
    "printing",
    "dispatched",
    "delivered",
    "cancelled",
    name="order_status",
)
payment_status = sa.Enum("pending", "completed", "failed", name="payment_status")
pdf_conversion_status = sa.Enum("pending", "completed", "failed", name="pdf_conversion_status")
delivery_option = sa.Enum("pickup", "delivery", name="delivery_option")
print_job_status = sa.Enum("pending", "printing", "completed", "failed", name="print_job_status")
conversion_job_status = sa.Enum(
    "processing", "completed", "failed", name="conversion_job_status"
)

_ENUMS = (
    order_type,
    order_status,
    payment_status,
    pdf_conversion_status,
    delivery_option,
    print_job_status,
    conversion_job_status,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in _ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.String(length=32), nullable=False),
        sa.Column("order_type", order_type, nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("razorpay_order_id", sa.String(length=64), nullable=True),
        sa.Column("razorpay_payment_id", sa.String(length=64), nullable=True),
        sa.Column("delivery_number", sa.String(length=32), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=True),
        sa.Column("customer_phone", sa.String(length=50), nullable=True),
        sa.Column("printing_options", sa.JSON(), nullable=False),
        sa.Column("delivery_option", delivery_option, nullable=False),
        sa.Column("delivery_address", sa.Text(), nullable=True),
        sa.Column("file_url", sa.String(length=1024), nullable=True),
        sa.Column("filled_docx_url", sa.String(length=1024), nullable=True),
        sa.Column("filled_pdf_url", sa.String(length=1024), nullable=True),
        sa.Column("pdf_conversion_status", pdf_conversion_status, nullable=True),
        sa.Column("render_job_id", sa.String(length=64), nullable=True),
        sa.Column("template_id", sa.String(length=64), nullable=True),
        sa.Column("template_name", sa.String(length=255), nullable=True),
        sa.Column("template_fields", sa.JSON(), nullable=False),
        sa.Column("template_price", sa.Float(), nullable=True),
        sa.Column("creator_id", sa.String(length=64), nullable=True),
        sa.Column("creator_share_amount", sa.Float(), nullable=True),
        sa.Column("platform_share_amount", sa.Float(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_orders_order_id"), "orders", ["order_id"], unique=True)
    op.create_index(
        op.f("ix_orders_razorpay_order_id"), "orders", ["razorpay_order_id"], unique=True
    )
    op.create_index(op.f("ix_orders_delivery_number"), "orders", ["delivery_number"], unique=False)
    op.create_index(op.f("ix_orders_render_job_id"), "orders", ["render_job_id"], unique=False)

    op.create_table(
        "order_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("from_status", sa.String(length=32), nullable=True),
        sa.Column("to_status", sa.String(length=32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_order_events_order_id"), "order_events", ["order_id"], unique=False)

    op.create_table(
        "print_jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.String(length=32), nullable=False),
        sa.Column("status", print_job_status, nullable=False),
        sa.Column("printing_options", sa.JSON(), nullable=False),
        sa.Column("estimated_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("printer_index", sa.Integer(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_print_jobs_order_id"), "print_jobs", ["order_id"], unique=True)

    op.create_table(
        "conversion_jobs",
        sa.Column("job_id", sa.String(length=64), nullable=False),
        sa.Column("order_id", sa.String(length=32), nullable=True),
        sa.Column("word_url", sa.String(length=1024), nullable=False),
        sa.Column("pdf_url", sa.String(length=1024), nullable=True),
        sa.Column("status", conversion_job_status, nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("job_id"),
    )
    op.create_index(
        op.f("ix_conversion_jobs_order_id"), "conversion_jobs", ["order_id"], unique=False
    )
    op.create_index(
        op.f("ix_conversion_jobs_expires_at"), "conversion_jobs", ["expires_at"], unique=False
    )

    op.create_table(
        "creator_earnings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.String(length=32), nullable=False),
        sa.Column("template_id", sa.String(length=64), nullable=False),
        sa.Column("creator_id", sa.String(length=64), nullable=False),
        sa.Column("template_price", sa.Float(), nullable=False),
        sa.Column("creator_share_amount", sa.Float(), nullable=False),
        sa.Column("platform_share_amount", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_creator_earnings_order_id"), "creator_earnings", ["order_id"], unique=True
    )
    op.create_index(
        op.f("ix_creator_earnings_creator_id"), "creator_earnings", ["creator_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_creator_earnings_creator_id"), table_name="creator_earnings")
    op.drop_index(op.f("ix_creator_earnings_order_id"), table_name="creator_earnings")
    op.drop_table("creator_earnings")

    op.drop_index(op.f("ix_conversion_jobs_expires_at"), table_name="conversion_jobs")
    op.drop_index(op.f("ix_conversion_jobs_order_id"), table_name="conversion_jobs")
    op.drop_table("conversion_jobs")

    op.drop_index(op.f("ix_print_jobs_order_id"), table_name="print_jobs")
    op.drop_table("print_jobs")

    op.drop_index(op.f("ix_order_events_order_id"), table_name="order_events")
    op.drop_table("order_events")

    op.drop_index(op.f("ix_orders_render_job_id"), table_name="orders")
    op.drop_index(op.f("ix_orders_delivery_number"), table_name="orders")
    op.drop_index(op.f("ix_orders_razorpay_order_id"), table_name="orders")
    op.drop_index(op.f("ix_orders_order_id"), table_name="orders")
    op.drop_table("orders")

    bind = op.get_bind()
    for enum_type in reversed(_ENUMS):
        enum_type.drop(bind, checkfirst=True)
