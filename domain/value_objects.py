"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Dict, Iterable, List, Literal, Optional, TypeVar, Union

from domain.enums import ResetPeriod
from domain.exceptions import ConsistencyError


class DateRange(BaseModel):
    """Value Object for date ranges"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    class Config:
        frozen = True


# ==================== LIFECYCLE TAG ====================
class ActiveLifecycle(BaseModel):
    state: Literal["active"] = "active"

    @property
    def is_active(self) -> bool:
        return True

    class Config:
        frozen = True


class DeletedLifecycle(BaseModel):
    state: Literal["deleted"] = "deleted"
    at: datetime
    by: str

    @property
    def is_active(self) -> bool:
        return False

    class Config:
        frozen = True


Lifecycle = Annotated[Union[ActiveLifecycle, DeletedLifecycle], Field(discriminator="state")]

T = TypeVar("T")


def only_active(items: Iterable[T]) -> List[T]:
    """The one filter every aggregate goes through to drop soft-deleted entities"""
    return [item for item in items if item.lifecycle.is_active]


# ==================== NUMBERING ====================
class NumberingScope(BaseModel):
    """Where a family of sequential identifiers keeps its counters and how it prints them"""
    name: str
    prefix: Optional[str] = None
    counter_width: int = Field(ge=1)
    reset_period: ResetPeriod = ResetPeriod.MONTHLY
    collection: str

    class Config:
        frozen = True


RECEIPT_SCOPE = NumberingScope(
    name="receipt",
    prefix="PAY",
    counter_width=5,
    reset_period=ResetPeriod.MONTHLY,
    collection="receiptNumberCounters"
)

REFERENCE_SCOPE = NumberingScope(
    name="reservation_reference",
    prefix=None,
    counter_width=3,
    reset_period=ResetPeriod.MONTHLY,
    collection="referenceCounters"
)


class ParsedIdentifier(BaseModel):
    prefix: Optional[str] = None
    period: str
    counter: int

    class Config:
        frozen = True


class CounterSnapshot(BaseModel):
    period: str
    counter: int
    next_identifier: str


# ==================== RESERVATION INPUT ====================
class RoomAllocation(BaseModel):
    """One room requested when a reservation is created"""
    room_number: str = Field(min_length=1, max_length=10, pattern=r"^[A-Za-z0-9-]+$")
    room_type: str = Field(min_length=1, max_length=100)
    guest_count: int = Field(default=1, ge=1, le=20)
    tariff_per_night: Decimal = Field(gt=0, le=100000)

    class Config:
        frozen = True


# ==================== PAYMENTS ====================
class PaymentResult(BaseModel):
    payment_id: str
    receipt_number: str
    warnings: List[str] = []


class PaymentSummary(BaseModel):
    reservation_id: Optional[str] = None
    total_amount: Decimal
    total_payments: int
    payments_by_type: Dict[str, Decimal] = {}
    payments_by_method: Dict[str, Decimal] = {}
    payments_by_status: Dict[str, int] = {}
    last_payment_date: Optional[datetime] = None
    last_payment_amount: Optional[Decimal] = None
    outstanding_amount: Optional[Decimal] = None


# ==================== RECONCILIATION ====================
class ReconciliationSummary(BaseModel):
    expected_total: Decimal
    actual_paid: Decimal
    difference: Decimal
    payment_count: int


class ReconciliationReport(BaseModel):
    reservation_id: str
    is_reconciled: bool
    discrepancies: List[str] = []
    summary: ReconciliationSummary
    recommendations: List[str] = []

    def raise_for_discrepancies(self) -> None:
        """Escalate an unreconciled report for callers that want a hard failure"""
        if not self.is_reconciled:
            raise ConsistencyError(self.reservation_id, self.discrepancies)
