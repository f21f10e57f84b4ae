from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from bills import (
    DUE_SOON_DAYS,
    BillFrequency,
    BillStatus,
    BILL_TYPE_LABELS,
    FREQUENCY_LABELS,
    BillType,
    add_months,
    calculate_annual_cost,
    calculate_bill_status,
    calculate_monthly_average,
    get_bill_status_label,
    get_on_time_rate,
    get_streak_status_message,
    local_today,
    record_payment,
)
from config import get_settings
from detection import detect_bills
from models import Bill, BillPayment, Category, Transaction, TransactionType
from schemas import BillIn, BillUpdateIn, CategoryIn, MarkPaidIn, TransactionIn

logger = logging.getLogger(__name__)

REMINDER_STATUSES = (BillStatus.overdue, BillStatus.due_today, BillStatus.due_soon)


def get_current_user_id() -> int:
    return 1


def cents_to_amount(cents: Optional[int]) -> Optional[float]:
    if cents is None:
        return None
    return cents / 100


def bill_to_record(bill: Bill) -> dict[str, Any]:
    """Flatten a Bill row into the plain record the engine works with."""
    return {
        "id": bill.id,
        "name": bill.name,
        "amount": cents_to_amount(bill.amount_cents),
        "amount_cents": bill.amount_cents,
        "frequency": bill.frequency.value,
        "frequency_label": FREQUENCY_LABELS[bill.frequency],
        "next_due_date": bill.next_due_date.isoformat(),
        "bill_type": bill.bill_type.value,
        "bill_type_label": BILL_TYPE_LABELS[bill.bill_type],
        "category_id": bill.category_id,
        "category_name": bill.category.name if bill.category else None,
        "auto_pay": bill.auto_pay,
        "last_paid_date": (
            bill.last_paid_date.isoformat() if bill.last_paid_date else None
        ),
        "notes": bill.notes,
        "is_active": bill.is_active,
        "current_streak": bill.current_streak,
        "longest_streak": bill.longest_streak,
        "total_payments": bill.total_payments,
        "on_time_payments": bill.on_time_payments,
        "on_time_rate": get_on_time_rate(bill.on_time_payments, bill.total_payments),
        "streak_message": get_streak_status_message(
            bill.current_streak, bill.longest_streak
        ),
        "created_at": bill.created_at.isoformat() if bill.created_at else None,
    }


def bill_status_record(bill: Bill, today: Optional[date] = None) -> dict[str, Any]:
    record = calculate_bill_status(bill_to_record(bill), today)
    record["status_label"] = get_bill_status_label(
        record["status"], record["days_until_due"]
    )
    return record


def payment_to_record(payment: BillPayment) -> dict[str, Any]:
    return {
        "id": payment.id,
        "bill_id": payment.bill_id,
        "payment_date": payment.payment_date.isoformat(),
        "due_date": payment.due_date.isoformat(),
        "amount": cents_to_amount(payment.amount_cents),
        "was_on_time": payment.was_on_time,
        "days_early": payment.days_early,
        "days_late": payment.days_late,
        "transaction_id": payment.transaction_id,
    }


def transaction_to_record(txn: Transaction) -> dict[str, Any]:
    return {
        "id": txn.id,
        "date": txn.date.isoformat(),
        "type": txn.type.value,
        "amount": cents_to_amount(txn.amount_cents),
        "category_id": txn.category_id,
        "note": txn.note,
    }


def summarize_annual_costs(records: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Project every bill onto a year and group the totals."""
    bill_costs = []
    for record in records:
        frequency = BillFrequency(record["frequency"])
        bill_type = BillType(record.get("bill_type") or BillType.other)
        amount = record.get("amount")
        bill_costs.append(
            {
                "bill_id": record["id"],
                "bill_name": record["name"],
                "bill_type": bill_type.value,
                "frequency": frequency.value,
                "amount": amount,
                "annual_cost": calculate_annual_cost(amount, frequency),
                "monthly_average": calculate_monthly_average(amount, frequency),
            }
        )

    def group(key: str, label: str, members: Iterable[str]) -> list[dict[str, Any]]:
        rows = []
        for member in members:
            matching = [b for b in bill_costs if b[key] == member]
            if matching:
                rows.append(
                    {
                        label: member,
                        "count": len(matching),
                        "annual_cost": sum(b["annual_cost"] for b in matching),
                    }
                )
        return rows

    return {
        "total_annual_cost": sum(b["annual_cost"] for b in bill_costs),
        "total_monthly_average": sum(b["monthly_average"] for b in bill_costs),
        "by_type": group("bill_type", "type", [t.value for t in BillType]),
        "by_frequency": group(
            "frequency", "frequency", [f.value for f in BillFrequency]
        ),
        "bills": sorted(bill_costs, key=lambda b: b["annual_cost"], reverse=True),
    }


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self, include_archived: bool = False) -> list[Category]:
        stmt = select(Category).where(Category.user_id == self.user_id)
        if not include_archived:
            stmt = stmt.where(Category.archived_at.is_(None))
        return self.session.scalars(stmt.order_by(Category.name)).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Category not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        existing = self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id,
                func.lower(Category.name) == name.lower(),
            )
        )
        if existing:
            raise ValueError("Category with this name already exists")
        category = Category(user_id=self.user_id, name=name, color=data.color)
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def create(self, data: TransactionIn, *, commit: bool = True) -> Transaction:
        if data.category_id is not None:
            CategoryService(self.session, self.user_id).get(data.category_id)
        txn = Transaction(
            user_id=self.user_id,
            date=data.date,
            type=data.type,
            amount_cents=data.amount_cents,
            category_id=data.category_id,
            note=data.note,
        )
        self.session.add(txn)
        if commit:
            self.session.commit()
            self.session.refresh(txn)
        else:
            self.session.flush()
        return txn

    def expenses_between(self, start: date, end: date) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.expense,
                Transaction.deleted_at.is_(None),
                Transaction.date >= start,
                Transaction.date <= end,
            )
            .order_by(Transaction.date, Transaction.id)
        )
        return self.session.scalars(stmt).all()


class BillService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, bill_id: int) -> Bill:
        bill = self.session.get(Bill, bill_id)
        if not bill or bill.user_id != self.user_id:
            raise ValueError("Bill not found")
        return bill

    def get_with_status(
        self, bill_id: int, today: Optional[date] = None
    ) -> dict[str, Any]:
        return bill_status_record(self.get(bill_id), today)

    def _query(
        self, active_only: bool = False, due_on_or_before: Optional[date] = None
    ) -> list[Bill]:
        stmt = (
            select(Bill)
            .options(joinedload(Bill.category))
            .where(Bill.user_id == self.user_id)
        )
        if active_only:
            stmt = stmt.where(Bill.is_active.is_(True))
        if due_on_or_before is not None:
            stmt = stmt.where(Bill.next_due_date <= due_on_or_before)
        stmt = stmt.order_by(Bill.next_due_date, Bill.id)
        return self.session.scalars(stmt).all()

    def list(
        self,
        active_only: bool = False,
        upcoming_days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> list[dict[str, Any]]:
        today = today or local_today()
        cutoff = None
        if upcoming_days is not None:
            cutoff = today + timedelta(days=upcoming_days)
        bills = self._query(active_only=active_only, due_on_or_before=cutoff)
        return [bill_status_record(b, today) for b in bills]

    def _check_category(self, category_id: Optional[int]) -> None:
        if category_id is not None:
            CategoryService(self.session, self.user_id).get(category_id)

    def create(self, data: BillIn) -> Bill:
        self._check_category(data.category_id)
        bill = Bill(
            user_id=self.user_id,
            name=data.name.strip(),
            amount_cents=data.amount_cents,
            frequency=data.frequency,
            next_due_date=data.next_due_date,
            bill_type=data.bill_type,
            category_id=data.category_id,
            auto_pay=data.auto_pay,
            notes=data.notes or None,
        )
        self.session.add(bill)
        self.session.commit()
        self.session.refresh(bill)
        logger.info(f"bill_created: id={bill.id} frequency={bill.frequency.value}")
        return bill

    def update(self, bill_id: int, data: BillUpdateIn) -> Bill:
        bill = self.get(bill_id)
        changes = data.model_dump(exclude_unset=True)
        if "category_id" in changes:
            self._check_category(changes["category_id"])
        if "name" in changes and changes["name"] is not None:
            changes["name"] = changes["name"].strip()
        if "notes" in changes:
            changes["notes"] = changes["notes"] or None
        for field in ("name", "frequency", "next_due_date", "bill_type", "auto_pay", "is_active"):
            if field in changes and changes[field] is None:
                raise ValueError(f"{field} cannot be empty")
        for field, value in changes.items():
            setattr(bill, field, value)
        self.session.commit()
        self.session.refresh(bill)
        logger.info(f"bill_updated: id={bill.id} fields={sorted(changes)}")
        return bill

    def delete(self, bill_id: int) -> None:
        bill = self.get(bill_id)
        self.session.delete(bill)
        self.session.commit()
        logger.info(f"bill_deleted: id={bill_id}")

    def mark_paid(
        self, bill_id: int, data: MarkPaidIn, today: Optional[date] = None
    ) -> dict[str, Any]:
        bill = self.get(bill_id)
        today = today or local_today()
        payment_date = data.payment_date or today
        outcome = record_payment(bill_to_record(bill), payment_date)

        amount_cents = data.amount_cents or bill.amount_cents
        transaction = None
        if data.create_transaction and amount_cents:
            transaction = TransactionService(self.session, self.user_id).create(
                TransactionIn(
                    date=payment_date,
                    type=TransactionType.expense,
                    amount_cents=amount_cents,
                    category_id=bill.category_id,
                    note=f"{bill.name} payment",
                ),
                commit=False,
            )

        payment = BillPayment(
            user_id=self.user_id,
            bill_id=bill.id,
            payment_date=outcome.payment_date,
            due_date=outcome.due_date,
            amount_cents=amount_cents,
            was_on_time=outcome.was_on_time,
            days_early=outcome.days_early,
            days_late=outcome.days_late,
            transaction_id=transaction.id if transaction else None,
        )
        self.session.add(payment)

        bill.next_due_date = date.fromisoformat(outcome.next_due_date)
        bill.last_paid_date = outcome.payment_date
        bill.current_streak = outcome.current_streak
        bill.longest_streak = outcome.longest_streak
        bill.total_payments = outcome.total_payments
        bill.on_time_payments = outcome.on_time_payments
        self.session.commit()
        self.session.refresh(bill)
        logger.info(
            f"bill_paid: id={bill.id} due={outcome.due_date} paid={outcome.payment_date} "
            f"on_time={outcome.was_on_time} next_due={outcome.next_due_date}"
        )
        return {
            "bill": bill_status_record(bill, today),
            "payment": payment_to_record(payment),
            "transaction": transaction_to_record(transaction) if transaction else None,
        }

    def payments(self, bill_id: int) -> list[BillPayment]:
        bill = self.get(bill_id)
        stmt = (
            select(BillPayment)
            .where(BillPayment.bill_id == bill.id)
            .order_by(BillPayment.payment_date.desc(), BillPayment.id.desc())
        )
        return self.session.scalars(stmt).all()

    def annual_cost_summary(self, active_only: bool = True) -> dict[str, Any]:
        bills = self._query(active_only=active_only)
        return summarize_annual_costs(bill_to_record(b) for b in bills)

    def due_reminders(self, today: Optional[date] = None) -> list[dict[str, Any]]:
        today = today or local_today()
        cutoff = today + timedelta(days=DUE_SOON_DAYS)
        reminders = []
        for bill in self._query(active_only=True, due_on_or_before=cutoff):
            record = bill_status_record(bill, today)
            if BillStatus(record["status"]) in REMINDER_STATUSES:
                reminders.append(record)
        return reminders

    def detect(
        self,
        months: Optional[int] = None,
        min_transactions: Optional[int] = None,
        today: Optional[date] = None,
    ) -> dict[str, Any]:
        settings = get_settings()
        months = months if months is not None else settings.detect_months
        if min_transactions is None:
            min_transactions = settings.detect_min_transactions
        today = today or local_today()
        start = add_months(today, -months)

        expenses = TransactionService(self.session, self.user_id).expenses_between(
            start, today
        )
        records = [
            {
                "note": txn.note,
                "amount": cents_to_amount(txn.amount_cents),
                "date": txn.date,
                "category_id": txn.category_id,
                "category_name": txn.category.name if txn.category else None,
            }
            for txn in expenses
        ]
        existing_names = self.session.scalars(
            select(Bill.name).where(Bill.user_id == self.user_id)
        ).all()
        detected = detect_bills(
            records, existing_names, min_transactions=min_transactions
        )
        logger.info(
            f"bill_detect: transactions={len(records)} detected={len(detected)}"
        )
        return {
            "detected_bills": [d.to_dict() for d in detected],
            "analyzed_period": {
                "start_date": start.isoformat(),
                "end_date": today.isoformat(),
            },
            "total_detected": len(detected),
        }
