from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> postgresql.ENUM:
    enum = postgresql.ENUM(*values, name=name)
    enum.create(op.get_bind(), checkfirst=True)
    return postgresql.ENUM(*values, name=name, create_type=False)


def upgrade() -> None:
    user_role = _enum("userrole", "customer", "field_owner", "coach", "admin")
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255)),
        sa.Column("phone", sa.String(length=32)),
        sa.Column("role", user_role, server_default="customer"),
        sa.Column("is_guest", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    resource_kind = _enum("resourcekind", "field", "coach")
    op.create_table(
        "resources",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column("kind", resource_kind, server_default="field"),
        sa.Column("name", sa.String(length=255)),
        sa.Column("slot_duration", sa.Integer(), server_default="60"),
        sa.Column("min_slots", sa.Integer(), server_default="1"),
        sa.Column("max_slots", sa.Integer(), server_default="4"),
        sa.Column("base_price", sa.Integer(), nullable=False),
        sa.Column("operating_hours", sa.JSON()),
        sa.Column("price_rules", sa.JSON()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.CheckConstraint("slot_duration > 0", name="ck_resource_slot_duration_positive"),
        sa.CheckConstraint("min_slots > 0 AND max_slots >= min_slots", name="ck_resource_slot_bounds"),
    )

    op.create_table(
        "courts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resource_id", sa.Integer(), sa.ForeignKey("resources.id", ondelete="CASCADE")),
        sa.Column("name", sa.String(length=128)),
        sa.Column("number", sa.Integer(), server_default="1"),
        sa.Column("base_price_override", sa.Integer()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.UniqueConstraint("resource_id", "number", name="uq_court_resource_number"),
    )

    op.create_table(
        "reservation_ledgers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resource_id", sa.Integer(), sa.ForeignKey("resources.id", ondelete="CASCADE")),
        sa.Column("sub_resource_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("booked_windows", sa.JSON()),
        sa.Column("is_holiday", sa.Boolean(), server_default=sa.false()),
        sa.Column("holiday_reason", sa.String(length=255)),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("resource_id", "sub_resource_id", "date", name="uq_ledger_resource_date"),
    )

    payment_method = _enum(
        "paymentmethod",
        "cash",
        "payos",
        "vnpay",
        "momo",
        "zalopay",
        "ebanking",
        "credit_card",
        "debit_card",
        "qr_code",
    )
    payment_status = _enum("paymentstatus", "pending", "succeeded", "failed")
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), server_default="VND"),
        sa.Column("method", payment_method),
        sa.Column("status", payment_status, server_default="pending"),
        sa.Column("provider", sa.String(length=32)),
        sa.Column("order_id", sa.String(length=64)),
        sa.Column("provider_payment_id", sa.String(length=128)),
        sa.Column("checkout_url", sa.String(length=512)),
        sa.Column("failure_reason", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("order_id", name="uq_payment_order_id"),
    )
    op.create_index("ix_payments_order_id", "payments", ["order_id"])

    booking_type = _enum("bookingtype", "field", "coach")
    booking_status = _enum(
        "bookingstatus", "pending", "confirmed", "checked_in", "completed", "cancelled"
    )
    booking_payment_status = _enum("bookingpaymentstatus", "unpaid", "paid", "refunded")
    approval_status = _enum("approvalstatus", "none", "pending", "approved", "rejected")
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column("resource_id", sa.Integer(), sa.ForeignKey("resources.id", ondelete="CASCADE")),
        sa.Column("sub_resource_id", sa.Integer(), server_default="0"),
        sa.Column("booking_type", booking_type, server_default="field"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5)),
        sa.Column("end_time", sa.String(length=5)),
        sa.Column("num_slots", sa.Integer(), server_default="1"),
        sa.Column("status", booking_status, server_default="pending"),
        sa.Column("payment_status", booking_payment_status, server_default="unpaid"),
        sa.Column("approval_status", approval_status, server_default="none"),
        sa.Column("note", sa.Text()),
        sa.Column("booking_amount", sa.Integer(), server_default="0"),
        sa.Column("platform_fee", sa.Integer(), server_default="0"),
        sa.Column("total_price", sa.Integer(), server_default="0"),
        sa.Column("discount_amount", sa.Integer(), server_default="0"),
        sa.Column("refund_amount", sa.Integer(), server_default="0"),
        sa.Column("penalty_amount", sa.Integer(), server_default="0"),
        sa.Column("pricing_snapshot", sa.JSON()),
        sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id", ondelete="SET NULL")),
        sa.Column("recurring_group_id", sa.String(length=36)),
        sa.Column("is_owner_reserved", sa.Boolean(), server_default=sa.false()),
        sa.Column("owner_fee_amount", sa.Integer(), server_default="0"),
        sa.Column("cancellation_reason", sa.String(length=255)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.String(length=64)),
        sa.Column("confirmation_notified_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_bookings_resource_id", "bookings", ["resource_id"])
    op.create_index("ix_bookings_date", "bookings", ["date"])
    op.create_index("ix_bookings_payment_id", "bookings", ["payment_id"])
    op.create_index("ix_bookings_recurring_group_id", "bookings", ["recurring_group_id"])

    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True),
        sa.Column("pending_balance", sa.Integer(), server_default="0"),
        sa.Column("available_balance", sa.Integer(), server_default="0"),
        sa.Column("refund_balance", sa.Integer(), server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "booking_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_type", sa.String(length=64)),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="SET NULL")),
        sa.Column("payload", sa.JSON()),
        sa.Column("attempts", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("dispatched_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_booking_events_booking_id", "booking_events", ["booking_id"])
    op.create_index("ix_booking_events_dispatched_at", "booking_events", ["dispatched_at"])


def downgrade() -> None:
    for table in (
        "booking_events",
        "wallets",
        "bookings",
        "payments",
        "reservation_ledgers",
        "courts",
        "resources",
        "users",
    ):
        op.drop_table(table)
    for enum_name in (
        "approvalstatus",
        "bookingpaymentstatus",
        "bookingstatus",
        "bookingtype",
        "paymentstatus",
        "paymentmethod",
        "resourcekind",
        "userrole",
    ):
        postgresql.ENUM(name=enum_name).drop(op.get_bind(), checkfirst=True)
