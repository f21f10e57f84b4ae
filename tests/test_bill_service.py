from datetime import date

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from bills import BillFrequency, BillType
from database import Base
from models import BillPayment, Transaction, TransactionType
from schemas import BillIn, BillUpdateIn, CategoryIn, MarkPaidIn, TransactionIn
from services import BillService, CategoryService, TransactionService


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _bill(name: str, frequency: BillFrequency, due: date, **kwargs) -> BillIn:
    return BillIn(name=name, frequency=frequency, next_due_date=due, **kwargs)


def test_list_returns_status_ordered_by_due_date() -> None:
    with _session() as session:
        bills = BillService(session)
        bills.create(_bill("Rent", BillFrequency.monthly, date(2024, 7, 1), amount_cents=120_000))
        bills.create(_bill("Phone", BillFrequency.monthly, date(2024, 6, 14), amount_cents=4_500))
        bills.create(_bill("Water", BillFrequency.monthly, date(2024, 6, 17)))

        records = bills.list(today=date(2024, 6, 15))
        assert [r["name"] for r in records] == ["Phone", "Water", "Rent"]
        assert [r["status"] for r in records] == ["overdue", "due-soon", "upcoming"]
        assert [r["days_until_due"] for r in records] == [-1, 2, 16]
        assert [r["status_label"] for r in records] == [
            "1 day overdue",
            "Due in 2 days",
            "Due in 16 days",
        ]
        assert records[0]["frequency_label"] == "Monthly"
        assert records[0]["amount"] == 45.0
        assert records[1]["amount"] is None

        upcoming = bills.list(upcoming_days=5, today=date(2024, 6, 15))
        assert [r["name"] for r in upcoming] == ["Phone", "Water"]


def test_list_active_only_skips_inactive_bills() -> None:
    with _session() as session:
        bills = BillService(session)
        gym = bills.create(_bill("Gym", BillFrequency.monthly, date(2024, 6, 20)))
        bills.create(_bill("Music", BillFrequency.monthly, date(2024, 6, 21)))
        bills.update(gym.id, BillUpdateIn(is_active=False))

        active = bills.list(active_only=True, today=date(2024, 6, 15))
        assert [r["name"] for r in active] == ["Music"]
        assert len(bills.list(today=date(2024, 6, 15))) == 2


def test_create_records_category_name() -> None:
    with _session() as session:
        utilities = CategoryService(session).create(CategoryIn(name="Utilities"))
        bill = BillService(session).create(
            _bill(
                "Hydro",
                BillFrequency.monthly,
                date(2024, 6, 30),
                category_id=utilities.id,
                bill_type=BillType.utilities,
            )
        )
        record = BillService(session).get_with_status(bill.id, today=date(2024, 6, 15))
        assert record["category_name"] == "Utilities"
        assert record["bill_type"] == "utilities"
        assert record["bill_type_label"] == "Utilities"
        assert record["streak_message"] == "No streak yet"
        assert record["on_time_rate"] == 0


def test_create_rejects_unknown_category() -> None:
    with _session() as session:
        with pytest.raises(ValueError, match="Category not found"):
            BillService(session).create(
                _bill("Hydro", BillFrequency.monthly, date(2024, 6, 30), category_id=99)
            )


def test_update_applies_only_set_fields() -> None:
    with _session() as session:
        bills = BillService(session)
        bill = bills.create(
            _bill("Internet", BillFrequency.monthly, date(2024, 6, 30), amount_cents=6_000, notes="promo")
        )
        bills.update(bill.id, BillUpdateIn(amount_cents=None, frequency=BillFrequency.yearly))
        updated = bills.get(bill.id)
        assert updated.amount_cents is None
        assert updated.frequency == BillFrequency.yearly
        assert updated.name == "Internet"
        assert updated.notes == "promo"

        with pytest.raises(ValueError, match="name cannot be empty"):
            bills.update(bill.id, BillUpdateIn(name=None))


def test_missing_bill_raises() -> None:
    with _session() as session:
        bills = BillService(session)
        with pytest.raises(ValueError, match="Bill not found"):
            bills.get(42)
        with pytest.raises(ValueError, match="Bill not found"):
            bills.mark_paid(42, MarkPaidIn(), today=date(2024, 6, 15))
        with pytest.raises(ValueError, match="Bill not found"):
            bills.delete(42)


def test_bills_are_scoped_to_user() -> None:
    with _session() as session:
        bill = BillService(session, user_id=2).create(
            _bill("Rent", BillFrequency.monthly, date(2024, 7, 1))
        )
        with pytest.raises(ValueError, match="Bill not found"):
            BillService(session, user_id=1).get(bill.id)


def test_mark_paid_advances_from_due_date_and_tracks_streak() -> None:
    with _session() as session:
        bills = BillService(session)
        bill = bills.create(
            _bill("Rent", BillFrequency.monthly, date(2024, 1, 31), amount_cents=150_000)
        )

        result = bills.mark_paid(
            bill.id, MarkPaidIn(payment_date=date(2024, 1, 30)), today=date(2024, 1, 30)
        )
        assert result["bill"]["next_due_date"] == "2024-02-29"
        assert result["bill"]["last_paid_date"] == "2024-01-30"
        assert result["bill"]["current_streak"] == 1
        assert result["bill"]["longest_streak"] == 1
        assert result["bill"]["streak_message"] == "1 on-time payment (personal best!)"
        assert result["payment"]["was_on_time"] is True
        assert result["payment"]["days_early"] == 1
        assert result["payment"]["amount"] == 1500.0
        assert result["transaction"] is None

        result = bills.mark_paid(
            bill.id, MarkPaidIn(payment_date=date(2024, 3, 5)), today=date(2024, 3, 5)
        )
        assert result["payment"]["was_on_time"] is False
        assert result["payment"]["days_late"] == 5
        assert result["bill"]["next_due_date"] == "2024-03-29"
        assert result["bill"]["current_streak"] == 0
        assert result["bill"]["longest_streak"] == 1
        assert result["bill"]["total_payments"] == 2
        assert result["bill"]["on_time_payments"] == 1
        assert result["bill"]["on_time_rate"] == 50
        assert result["bill"]["status"] == "upcoming"
        assert result["bill"]["status_label"] == "Due in 24 days"
        assert result["bill"]["streak_message"] == "No streak yet"

        result = bills.mark_paid(
            bill.id, MarkPaidIn(payment_date=date(2024, 3, 29)), today=date(2024, 3, 29)
        )
        assert result["bill"]["streak_message"] == "1 on-time payment (personal best!)"

        history = bills.payments(bill.id)
        assert [p.payment_date for p in history] == [date(2024, 3, 5), date(2024, 1, 30)]


def test_mark_paid_defaults_payment_date_to_today() -> None:
    with _session() as session:
        bills = BillService(session)
        bill = bills.create(_bill("Phone", BillFrequency.biweekly, date(2024, 6, 10)))
        result = bills.mark_paid(bill.id, MarkPaidIn(), today=date(2024, 6, 12))
        assert result["payment"]["payment_date"] == "2024-06-12"
        assert result["payment"]["days_late"] == 2
        assert result["bill"]["next_due_date"] == "2024-06-24"


def test_mark_paid_can_create_expense_transaction() -> None:
    with _session() as session:
        housing = CategoryService(session).create(CategoryIn(name="Housing"))
        bills = BillService(session)
        bill = bills.create(
            _bill(
                "Rent",
                BillFrequency.monthly,
                date(2024, 6, 1),
                amount_cents=150_000,
                category_id=housing.id,
            )
        )
        result = bills.mark_paid(
            bill.id,
            MarkPaidIn(create_transaction=True, payment_date=date(2024, 6, 1)),
            today=date(2024, 6, 1),
        )
        txn = session.get(Transaction, result["transaction"]["id"])
        assert txn.type == TransactionType.expense
        assert txn.amount_cents == 150_000
        assert txn.category_id == housing.id
        assert txn.note == "Rent payment"
        assert result["payment"]["transaction_id"] == txn.id


def test_mark_paid_skips_transaction_without_known_amount() -> None:
    with _session() as session:
        bills = BillService(session)
        bill = bills.create(_bill("Hydro", BillFrequency.monthly, date(2024, 6, 1)))
        result = bills.mark_paid(
            bill.id, MarkPaidIn(create_transaction=True), today=date(2024, 6, 1)
        )
        assert result["transaction"] is None
        assert session.scalars(select(Transaction)).all() == []

        result = bills.mark_paid(
            bill.id,
            MarkPaidIn(create_transaction=True, amount_cents=8_250),
            today=date(2024, 7, 1),
        )
        assert result["transaction"]["amount"] == 82.5


def test_delete_removes_payment_history() -> None:
    with _session() as session:
        bills = BillService(session)
        bill = bills.create(_bill("Gym", BillFrequency.weekly, date(2024, 6, 1)))
        bills.mark_paid(bill.id, MarkPaidIn(), today=date(2024, 6, 1))
        bills.delete(bill.id)
        assert session.scalars(select(BillPayment)).all() == []


def test_annual_cost_summary() -> None:
    with _session() as session:
        bills = BillService(session)
        bills.create(_bill("Netflix", BillFrequency.monthly, date(2024, 6, 1), amount_cents=1_599, bill_type=BillType.subscriptions))
        bills.create(_bill("Car insurance", BillFrequency.yearly, date(2024, 9, 1), amount_cents=120_000, bill_type=BillType.insurance))
        bills.create(_bill("Gym", BillFrequency.weekly, date(2024, 6, 3), amount_cents=1_000, bill_type=BillType.memberships))
        bills.create(_bill("Hydro", BillFrequency.monthly, date(2024, 6, 20), bill_type=BillType.utilities))
        old = bills.create(_bill("Old phone", BillFrequency.monthly, date(2024, 6, 9), amount_cents=5_000))
        bills.update(old.id, BillUpdateIn(is_active=False))

        summary = bills.annual_cost_summary()
        assert summary["total_annual_cost"] == pytest.approx(191.88 + 1200 + 520)
        assert summary["total_monthly_average"] == pytest.approx((191.88 + 1200 + 520) / 12)
        assert [b["bill_name"] for b in summary["bills"]] == [
            "Car insurance",
            "Gym",
            "Netflix",
            "Hydro",
        ]
        assert summary["by_frequency"] == [
            {"frequency": "weekly", "count": 1, "annual_cost": pytest.approx(520)},
            {"frequency": "monthly", "count": 2, "annual_cost": pytest.approx(191.88)},
            {"frequency": "yearly", "count": 1, "annual_cost": pytest.approx(1200)},
        ]
        assert [t["type"] for t in summary["by_type"]] == [
            "utilities",
            "subscriptions",
            "insurance",
            "memberships",
        ]

        everything = bills.annual_cost_summary(active_only=False)
        assert len(everything["bills"]) == 5
        assert everything["total_annual_cost"] == pytest.approx(1911.88 + 600)


def test_due_reminders_cover_overdue_today_and_soon() -> None:
    with _session() as session:
        bills = BillService(session)
        bills.create(_bill("Late", BillFrequency.monthly, date(2024, 6, 13)))
        bills.create(_bill("Today", BillFrequency.monthly, date(2024, 6, 15)))
        bills.create(_bill("Soon", BillFrequency.monthly, date(2024, 6, 18)))
        bills.create(_bill("Later", BillFrequency.monthly, date(2024, 6, 19)))
        paused = bills.create(_bill("Paused", BillFrequency.monthly, date(2024, 6, 1)))
        bills.update(paused.id, BillUpdateIn(is_active=False))

        reminders = bills.due_reminders(today=date(2024, 6, 15))
        assert [(r["name"], r["status"]) for r in reminders] == [
            ("Late", "overdue"),
            ("Today", "due-today"),
            ("Soon", "due-soon"),
        ]


def test_detect_scans_recent_expenses_and_skips_known_bills() -> None:
    with _session() as session:
        streaming = CategoryService(session).create(CategoryIn(name="Streaming"))
        txns = TransactionService(session)
        for day in (date(2024, 3, 10), date(2024, 4, 10), date(2024, 5, 10), date(2024, 6, 10)):
            txns.create(TransactionIn(date=day, amount_cents=1_099, note="Disney Plus", category_id=streaming.id))
            txns.create(TransactionIn(date=day, amount_cents=999, note="Spotify"))
        # outside the six month window
        for day in (date(2023, 1, 2), date(2023, 2, 2), date(2023, 3, 2)):
            txns.create(TransactionIn(date=day, amount_cents=2_000, note="Old gym"))
        txns.create(TransactionIn(date=date(2024, 6, 1), type=TransactionType.income, amount_cents=500_000, note="Salary"))
        BillService(session).create(_bill("Spotify", BillFrequency.monthly, date(2024, 7, 10)))

        result = BillService(session).detect(months=6, min_transactions=3, today=date(2024, 6, 15))
        assert result["analyzed_period"] == {"start_date": "2023-12-15", "end_date": "2024-06-15"}
        assert result["total_detected"] == 1
        detected = result["detected_bills"][0]
        assert detected["merchant_name"] == "Disney plus"
        assert detected["suggested_amount"] == 10.99
        assert detected["suggested_frequency"] == "monthly"
        assert detected["suggested_bill_type"] == "subscriptions"
        assert detected["category_name"] == "Streaming"
        assert detected["last_transaction_date"] == "2024-06-10"
