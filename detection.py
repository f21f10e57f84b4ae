"""Spot recurring bills hiding in expense history.

Expenses are grouped by their note, and a group is suggested as a bill when
both its amounts and the gaps between its dates are steady enough.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from rapidfuzz.distance import Levenshtein

from bills import BillFrequency, BillType, to_date

MIN_AMOUNT_CONSISTENCY = 0.7
MIN_INTERVAL_CONSISTENCY = 0.5
MIN_CONFIDENCE = 50
# Shorter names only match an existing bill exactly.
FUZZY_MATCH_MIN_LENGTH = 5

BILL_TYPE_KEYWORDS: dict[BillType, list[str]] = {
    BillType.utilities: ["hydro", "electric", "gas", "water", "utility", "energy", "power"],
    BillType.subscriptions: [
        "netflix",
        "spotify",
        "amazon prime",
        "disney",
        "hulu",
        "apple",
        "youtube",
        "adobe",
        "microsoft 365",
        "dropbox",
    ],
    BillType.insurance: ["insurance", "geico", "allstate", "progressive", "state farm", "coverage"],
    BillType.rent_mortgage: ["rent", "mortgage", "lease", "housing", "property"],
    BillType.loans: ["loan", "payment", "credit", "finance", "lending"],
    BillType.phone_internet: [
        "rogers",
        "bell",
        "telus",
        "fido",
        "koodo",
        "virgin",
        "internet",
        "mobile",
        "phone",
        "cell",
        "wireless",
    ],
    BillType.memberships: ["gym", "fitness", "membership", "club", "costco", "amazon prime"],
}

# (frequency, nominal days, lower bound, upper bound)
_FREQUENCY_WINDOWS = [
    (BillFrequency.weekly, 7, 5, 9),
    (BillFrequency.biweekly, 14, 12, 16),
    (BillFrequency.monthly, 30, 26, 35),
    (BillFrequency.yearly, 365, 350, 380),
]


@dataclass(frozen=True)
class DetectedBill:
    merchant_name: str
    suggested_amount: float
    suggested_frequency: BillFrequency
    confidence: int
    transaction_count: int
    last_transaction_date: date
    average_days_between: int
    suggested_bill_type: BillType
    category_id: Optional[int]
    category_name: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["suggested_frequency"] = self.suggested_frequency.value
        data["suggested_bill_type"] = self.suggested_bill_type.value
        data["last_transaction_date"] = self.last_transaction_date.isoformat()
        return data


def detect_bill_type(merchant_name: str, category_name: Optional[str]) -> BillType:
    search_text = f"{merchant_name} {category_name or ''}".lower()
    for bill_type, keywords in BILL_TYPE_KEYWORDS.items():
        if any(keyword in search_text for keyword in keywords):
            return bill_type
    return BillType.other


def detect_frequency(avg_days: float) -> tuple[BillFrequency, float]:
    for frequency, nominal, low, high in _FREQUENCY_WINDOWS:
        if low <= avg_days <= high:
            return frequency, 1 - abs(avg_days - nominal) / nominal
    return BillFrequency.monthly, 0.3


def _consistency(values: list[float]) -> tuple[float, float]:
    """Return (mean, 1 - population stddev / mean)."""
    mean = sum(values) / len(values)
    if mean <= 0:
        return mean, 0.0
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, 1 - math.sqrt(variance) / mean


def _matches_existing(merchant: str, existing: set[str]) -> bool:
    if merchant in existing:
        return True
    if len(merchant) < FUZZY_MATCH_MIN_LENGTH:
        return False
    return any(
        len(name) >= FUZZY_MATCH_MIN_LENGTH and Levenshtein.distance(merchant, name) <= 1
        for name in existing
    )


def detect_bills(
    transactions: Iterable[Mapping[str, Any]],
    existing_bill_names: Iterable[str] = (),
    *,
    min_transactions: int = 3,
) -> list[DetectedBill]:
    existing = {name.strip().lower() for name in existing_bill_names}

    groups: dict[str, list[Mapping[str, Any]]] = {}
    for txn in transactions:
        merchant = (txn.get("note") or "").strip().lower() or "unknown"
        groups.setdefault(merchant, []).append(txn)

    detected: list[DetectedBill] = []
    for merchant, txns in groups.items():
        if len(txns) < min_transactions:
            continue
        if _matches_existing(merchant, existing):
            continue

        avg_amount, amount_consistency = _consistency(
            [abs(float(t["amount"])) for t in txns]
        )
        if amount_consistency < MIN_AMOUNT_CONSISTENCY:
            continue

        ordered = sorted(txns, key=lambda t: to_date(t["date"]))
        dates = [to_date(t["date"]) for t in ordered]
        gaps = [float((b - a).days) for a, b in zip(dates, dates[1:])]
        if not gaps:
            continue
        avg_days, interval_consistency = _consistency(gaps)
        if interval_consistency < MIN_INTERVAL_CONSISTENCY:
            continue

        frequency, frequency_confidence = detect_frequency(avg_days)
        confidence = min(
            (
                amount_consistency * 0.3
                + interval_consistency * 0.4
                + frequency_confidence * 0.3
            )
            * 100,
            100,
        )
        if confidence < MIN_CONFIDENCE:
            continue

        last = ordered[-1]
        category_name = last.get("category_name")
        detected.append(
            DetectedBill(
                merchant_name=merchant[:1].upper() + merchant[1:],
                suggested_amount=round(avg_amount, 2),
                suggested_frequency=frequency,
                confidence=round(confidence),
                transaction_count=len(txns),
                last_transaction_date=dates[-1],
                average_days_between=round(avg_days),
                suggested_bill_type=detect_bill_type(merchant, category_name),
                category_id=last.get("category_id"),
                category_name=category_name,
            )
        )

    detected.sort(key=lambda d: d.confidence, reverse=True)
    return detected
