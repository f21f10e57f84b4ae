"""initial bills schema

Revision ID: 202610180900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202610180900"
down_revision = None
branch_labels = None
depends_on = None


BILL_FREQUENCIES = ("weekly", "biweekly", "monthly", "yearly")
BILL_TYPES = (
    "utilities",
    "subscriptions",
    "insurance",
    "rent_mortgage",
    "loans",
    "phone_internet",
    "memberships",
    "other",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=7), nullable=True),
        sa.Column("archived_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "name", name="uq_category_user_name"),
    )

    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=True),
        sa.Column(
            "frequency",
            sa.Enum(*BILL_FREQUENCIES, name="billfrequency"),
            nullable=False,
        ),
        sa.Column("next_due_date", sa.Date(), nullable=False),
        sa.Column(
            "bill_type",
            sa.Enum(*BILL_TYPES, name="billtype"),
            nullable=False,
            server_default="other",
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("auto_pay", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_paid_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_payments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("on_time_payments", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint(
            "amount_cents IS NULL OR amount_cents > 0", name="ck_bill_amount_positive"
        ),
        sa.CheckConstraint(
            "longest_streak >= current_streak", name="ck_bill_streak_bounds"
        ),
        sa.CheckConstraint(
            "total_payments >= on_time_payments", name="ck_bill_payment_counts"
        ),
    )
    op.create_index("ix_bills_user_due", "bills", ["user_id", "next_due_date"])
    op.create_index("ix_bills_user_active", "bills", ["user_id", "is_active"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=True
        ),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "amount_cents >= 0", name="ck_transactions_amount_positive"
        ),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_type_date", "transactions", ["user_id", "type", "date"]
    )

    op.create_table(
        "bill_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "bill_id",
            sa.Integer(),
            sa.ForeignKey("bills.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=True),
        sa.Column("was_on_time", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("days_early", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("days_late", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_bill_payments_bill_date", "bill_payments", ["bill_id", "payment_date"]
    )


def downgrade() -> None:
    op.drop_index("ix_bill_payments_bill_date", table_name="bill_payments")
    op.drop_table("bill_payments")
    op.drop_index("ix_transactions_user_type_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_bills_user_active", table_name="bills")
    op.drop_index("ix_bills_user_due", table_name="bills")
    op.drop_table("bills")
    op.drop_table("categories")
