from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bills import BillFrequency, BillType
from models import TransactionType


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=7)


class TransactionIn(BaseModel):
    date: date
    type: TransactionType = TransactionType.expense
    amount_cents: int = Field(..., ge=0)
    category_id: Optional[int] = None
    note: Optional[str] = Field(default=None, max_length=200)


class BillIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    amount_cents: Optional[int] = Field(default=None, gt=0)
    frequency: BillFrequency
    next_due_date: date
    category_id: Optional[int] = None
    bill_type: BillType = BillType.other
    auto_pay: bool = False
    notes: Optional[str] = Field(default=None, max_length=500)


class BillUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount_cents: Optional[int] = Field(default=None, gt=0)
    frequency: Optional[BillFrequency] = None
    next_due_date: Optional[date] = None
    category_id: Optional[int] = None
    bill_type: Optional[BillType] = None
    auto_pay: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None


class MarkPaidIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payment_date: Optional[date] = None
    amount_cents: Optional[int] = Field(default=None, gt=0)
    create_transaction: bool = False
