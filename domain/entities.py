"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import uuid4
from datetime import datetime, date, timezone
from typing import Any, ClassVar, Dict, Optional
from decimal import Decimal

from domain.enums import (
    ReservationStatus, PaymentStatus, RoomStatus, PaymentType, PaymentMethod,
    PaymentRecordStatus, AuditAction
)
from domain.value_objects import ActiveLifecycle, DeletedLifecycle, Lifecycle


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """Base for everything persisted in the document store"""

    collection: ClassVar[str] = ""

    id: str = Field(default_factory=_new_id)

    class Config:
        from_attributes = True

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump()

    @classmethod
    def from_document(cls, data: Dict[str, Any]):
        return cls.model_validate(data)


class SoftDeletable(Document):
    lifecycle: Lifecycle = Field(default_factory=ActiveLifecycle)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    created_by: str = "SYSTEM"
    updated_by: str = "SYSTEM"

    @property
    def is_active(self) -> bool:
        return self.lifecycle.is_active

    def soft_delete(self, deleted_by: str, deleted_at: datetime) -> None:
        """Mark deleted; the entity drops out of every aggregate"""
        if not self.is_active:
            raise ValueError(f"{type(self).__name__} {self.id} is already deleted")
        self.lifecycle = DeletedLifecycle(at=deleted_at, by=deleted_by)
        self.touch(deleted_by, deleted_at)

    def touch(self, actor_id: str, at: datetime) -> None:
        self.updated_at = at
        self.updated_by = actor_id


class Reservation(SoftDeletable):
    """Reservation Aggregate Root Entity"""

    collection: ClassVar[str] = "reservations"

    reference_number: str
    guest_name: str
    check_in_date: date
    check_out_date: date
    total_amount: Decimal = Field(gt=0)

    status: ReservationStatus = ReservationStatus.RESERVATION
    payment_status: PaymentStatus = PaymentStatus.PENDING
    cancellation_reason: Optional[str] = None

    def is_cancelled(self) -> bool:
        return self.status == ReservationStatus.CANCELLED


class ReservationRoom(SoftDeletable):
    """One room's occupancy record; reservation_id is a back-reference, not ownership"""

    collection: ClassVar[str] = "reservationRooms"

    reservation_id: str
    room_number: str
    room_type: str
    guest_count: int = Field(default=1, ge=1)
    tariff_per_night: Decimal = Field(gt=0)

    room_status: RoomStatus = RoomStatus.PENDING
    check_in_datetime: Optional[datetime] = None
    check_out_datetime: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    checked_out_by: Optional[str] = None
    check_in_notes: Optional[str] = None
    check_out_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None


class Payment(SoftDeletable):
    """Signed ledger entry; negative amounts are refunds"""

    collection: ClassVar[str] = "payments"

    reservation_id: Optional[str] = None
    amount: Decimal
    payment_type: PaymentType
    payment_method: PaymentMethod
    receipt_number: str
    payment_status: PaymentRecordStatus = PaymentRecordStatus.COMPLETED
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    refund_of: Optional[str] = None
    payment_date: datetime = Field(default_factory=_utcnow)

    @property
    def is_refund(self) -> bool:
        return self.amount < 0

    @property
    def is_settled(self) -> bool:
        """Money actually moved; a refunded entry is netted out by its refund entries"""
        return self.payment_status in (PaymentRecordStatus.COMPLETED, PaymentRecordStatus.REFUNDED)


class PeriodCounter(Document):
    """Per-period sequence; the collection depends on the numbering scope"""

    counter: int = Field(ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class PaymentAuditEntry(Document):

    collection: ClassVar[str] = "paymentAudits"

    payment_id: str
    action: AuditAction
    performed_by: str
    performed_at: datetime = Field(default_factory=_utcnow)
    details: Dict[str, Any] = {}
