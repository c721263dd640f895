"""Domain Enums"""
from enum import Enum


class ReservationStatus(str, Enum):
    RESERVATION = "reservation"
    BOOKING = "booking"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Reservation-level payment progress"""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class RoomStatus(str, Enum):
    PENDING = "pending"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PaymentType(str, Enum):
    BOOKING_ADVANCE = "booking_advance"
    FULL_PAYMENT = "full_payment"
    PARTIAL_PAYMENT = "partial_payment"
    SECURITY_DEPOSIT = "security_deposit"
    ADDITIONAL_CHARGES = "additional_charges"
    REFUND = "refund"
    CANCELLATION_FEE = "cancellation_fee"
    EXTRA_SERVICES = "extra_services"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    NET_BANKING = "net_banking"
    WALLET = "wallet"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    OTHER = "other"


class PaymentRecordStatus(str, Enum):
    """Status of a single ledger entry"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class ResetPeriod(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class AuditAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class LifecycleState(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"
