"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from domain.enums import PaymentMethod, PaymentRecordStatus, PaymentType


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class RoomAllocationRequest(BaseModel):
    """Room allocation request DTO"""
    room_number: str
    room_type: str
    guest_count: int = Field(ge=1, le=20, default=1)
    tariff_per_night: Decimal = Field(gt=0)


class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    guest_name: str
    check_in_date: date
    check_out_date: date
    total_amount: Decimal
    rooms: List[RoomAllocationRequest]


class CancelReservationRequest(BaseModel):
    """Cancel reservation request DTO"""
    reason: Optional[str] = None


class RoomCheckInRequest(BaseModel):
    """Check-in request DTO; defaults to the current time"""
    check_in_datetime: Optional[datetime] = None
    notes: Optional[str] = None


class RoomCheckOutRequest(BaseModel):
    """Check-out request DTO; defaults to the current time"""
    check_out_datetime: Optional[datetime] = None
    notes: Optional[str] = None


class CancelRoomRequest(BaseModel):
    reason: Optional[str] = None


class NoShowRequest(BaseModel):
    notes: Optional[str] = None


class RoomResponse(BaseModel):
    """Reservation room response DTO"""
    room_id: str
    reservation_id: str
    room_number: str
    room_type: str
    guest_count: int
    tariff_per_night: Decimal
    room_status: str
    check_in_datetime: Optional[datetime] = None
    check_out_datetime: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    checked_out_by: Optional[str] = None
    check_in_notes: Optional[str] = None
    check_out_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    updated_at: datetime
    updated_by: str


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: str
    reference_number: str
    guest_name: str
    check_in_date: date
    check_out_date: date
    total_amount: Decimal
    status: str
    payment_status: str
    cancellation_reason: Optional[str] = None
    rooms: List[RoomResponse] = []
    created_at: datetime
    updated_at: datetime
    created_by: str
    updated_by: str


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class RecordPaymentRequest(BaseModel):
    """Record payment request DTO"""
    reservation_id: Optional[str] = None
    amount: Decimal
    payment_type: PaymentType
    payment_method: PaymentMethod
    payment_status: PaymentRecordStatus = PaymentRecordStatus.COMPLETED
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    payment_date: Optional[datetime] = None


class PaymentResultResponse(BaseModel):
    """Record payment response DTO"""
    payment_id: str
    receipt_number: str
    warnings: List[str] = []


class RefundRequest(BaseModel):
    """Refund request DTO"""
    refund_amount: Decimal
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None


class UpdatePaymentStatusRequest(BaseModel):
    payment_status: PaymentRecordStatus
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: str
    reservation_id: Optional[str] = None
    receipt_number: str
    amount: Decimal
    payment_type: str
    payment_method: str
    payment_status: str
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    refund_of: Optional[str] = None
    payment_date: datetime
    created_by: str
    updated_at: datetime


class PaymentAuditResponse(BaseModel):
    """Payment audit entry response DTO"""
    audit_id: str
    payment_id: str
    action: str
    performed_by: str
    performed_at: datetime
    details: Dict[str, Any] = {}


class ReservationPaymentStatusResponse(BaseModel):
    reservation_id: str
    payment_status: str
    paid_total: Decimal


# ============================================================================
# IDENTIFIER SCHEMAS
# ============================================================================

class ParsedIdentifierResponse(BaseModel):
    identifier: str
    prefix: Optional[str] = None
    period: str
    counter: int


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    disabled: bool
