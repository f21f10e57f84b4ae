from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bills import BillFrequency, BillType
from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


BILL_FREQUENCY_ENUM = SAEnum(
    BillFrequency,
    name="billfrequency",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)

BILL_TYPE_ENUM = SAEnum(
    BillType,
    name="billtype",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(7))
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    bills: Mapped[list["Bill"]] = relationship("Bill", back_populates="category")

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_category_user_name"),
    )


class Bill(Base, TimestampMixin):
    __tablename__ = "bills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # NULL means the amount varies from period to period
    amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    frequency: Mapped[BillFrequency] = mapped_column(
        BILL_FREQUENCY_ENUM, nullable=False
    )
    next_due_date: Mapped[date] = mapped_column(Date, nullable=False)
    bill_type: Mapped[BillType] = mapped_column(
        BILL_TYPE_ENUM, nullable=False, default=BillType.other
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    auto_pay: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_paid_date: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_payments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    on_time_payments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    category: Mapped[Optional["Category"]] = relationship(
        "Category", back_populates="bills"
    )
    payments: Mapped[list["BillPayment"]] = relationship(
        "BillPayment",
        back_populates="bill",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "amount_cents IS NULL OR amount_cents > 0",
            name="ck_bill_amount_positive",
        ),
        CheckConstraint(
            "longest_streak >= current_streak", name="ck_bill_streak_bounds"
        ),
        CheckConstraint(
            "total_payments >= on_time_payments", name="ck_bill_payment_counts"
        ),
        Index("ix_bills_user_due", "user_id", "next_due_date"),
        Index("ix_bills_user_active", "user_id", "is_active"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    note: Mapped[Optional[str]] = mapped_column(Text)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    category: Mapped[Optional["Category"]] = relationship("Category")

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_type_date", "user_id", "type", "date"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )


class BillPayment(Base, TimestampMixin):
    __tablename__ = "bill_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    bill_id: Mapped[int] = mapped_column(
        ForeignKey("bills.id", ondelete="CASCADE"), nullable=False
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    was_on_time: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    days_early: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    days_late: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    transaction_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("transactions.id", ondelete="SET NULL")
    )

    bill: Mapped["Bill"] = relationship("Bill", back_populates="payments")
    transaction: Mapped[Optional["Transaction"]] = relationship("Transaction")

    __table_args__ = (
        Index("ix_bill_payments_bill_date", "bill_id", "payment_date"),
    )
