"""Payment business rules

Reference tables for payment types and methods, plus the pure validation
functions the ledger runs before anything is written. Violations are
collected and raised together as one ValidationError; softer findings come
back as warning strings.
"""
import re
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from pydantic import BaseModel

from domain.enums import PaymentMethod, PaymentRecordStatus, PaymentType
from domain.exceptions import InvalidTransitionError, RuleViolation, ValidationError

_CENT = Decimal("0.01")
_UNSAFE_TRANSACTION_CHARS = re.compile(r'[<>"/\\|?\x00-\x1f]')


class PaymentTypeInfo(BaseModel):
    display_name: str
    description: str
    is_refundable: bool
    requires_approval: bool
    default_methods: Tuple[PaymentMethod, ...]

    class Config:
        frozen = True


class PaymentMethodInfo(BaseModel):
    display_name: str
    is_instant: bool
    requires_verification: bool
    max_amount: Optional[Decimal] = None
    processing_fee_percentage: Optional[Decimal] = None

    class Config:
        frozen = True


class PaymentLimits(BaseModel):
    """Ledger-wide bounds; the application layer builds this from settings"""
    min_amount: Decimal = Decimal("1")
    max_amount: Decimal = Decimal("10000000")
    max_refund_percentage: Decimal = Decimal("100")
    future_window_hours: int = 24
    max_payment_age_days: int = 365

    class Config:
        frozen = True


_COLLECTION_METHODS = (PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.UPI, PaymentMethod.NET_BANKING)

PAYMENT_TYPE_INFO: Dict[PaymentType, PaymentTypeInfo] = {
    PaymentType.BOOKING_ADVANCE: PaymentTypeInfo(
        display_name="Booking Advance",
        description="Initial advance payment to confirm booking",
        is_refundable=True,
        requires_approval=False,
        default_methods=(PaymentMethod.CASH, PaymentMethod.UPI, PaymentMethod.CARD, PaymentMethod.NET_BANKING)
    ),
    PaymentType.FULL_PAYMENT: PaymentTypeInfo(
        display_name="Full Payment",
        description="Complete payment for the reservation",
        is_refundable=False,
        requires_approval=False,
        default_methods=_COLLECTION_METHODS
    ),
    PaymentType.PARTIAL_PAYMENT: PaymentTypeInfo(
        display_name="Partial Payment",
        description="Partial payment towards total amount",
        is_refundable=False,
        requires_approval=False,
        default_methods=_COLLECTION_METHODS
    ),
    PaymentType.SECURITY_DEPOSIT: PaymentTypeInfo(
        display_name="Security Deposit",
        description="Refundable security deposit",
        is_refundable=True,
        requires_approval=False,
        default_methods=(PaymentMethod.CASH, PaymentMethod.CARD)
    ),
    PaymentType.ADDITIONAL_CHARGES: PaymentTypeInfo(
        display_name="Additional Charges",
        description="Extra charges for services or damages",
        is_refundable=False,
        requires_approval=True,
        default_methods=(PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.UPI)
    ),
    PaymentType.REFUND: PaymentTypeInfo(
        display_name="Refund",
        description="Refund of previous payments",
        is_refundable=False,
        requires_approval=True,
        default_methods=(PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER)
    ),
    PaymentType.CANCELLATION_FEE: PaymentTypeInfo(
        display_name="Cancellation Fee",
        description="Fee charged for cancellation",
        is_refundable=False,
        requires_approval=True,
        default_methods=(PaymentMethod.CASH, PaymentMethod.CARD)
    ),
    PaymentType.EXTRA_SERVICES: PaymentTypeInfo(
        display_name="Extra Services",
        description="Payment for additional services",
        is_refundable=False,
        requires_approval=False,
        default_methods=(PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.UPI)
    ),
}

PAYMENT_METHOD_INFO: Dict[PaymentMethod, PaymentMethodInfo] = {
    PaymentMethod.CASH: PaymentMethodInfo(
        display_name="Cash", is_instant=True, requires_verification=False, max_amount=Decimal("200000")
    ),
    PaymentMethod.CARD: PaymentMethodInfo(
        display_name="Credit/Debit Card", is_instant=True, requires_verification=True,
        processing_fee_percentage=Decimal("2")
    ),
    PaymentMethod.UPI: PaymentMethodInfo(
        display_name="UPI", is_instant=True, requires_verification=True, max_amount=Decimal("100000")
    ),
    PaymentMethod.NET_BANKING: PaymentMethodInfo(
        display_name="Net Banking", is_instant=False, requires_verification=True,
        processing_fee_percentage=Decimal("1")
    ),
    PaymentMethod.WALLET: PaymentMethodInfo(
        display_name="Digital Wallet", is_instant=True, requires_verification=True, max_amount=Decimal("50000")
    ),
    PaymentMethod.BANK_TRANSFER: PaymentMethodInfo(
        display_name="Bank Transfer", is_instant=False, requires_verification=True
    ),
    PaymentMethod.CHEQUE: PaymentMethodInfo(
        display_name="Cheque", is_instant=False, requires_verification=True, max_amount=Decimal("1000000")
    ),
    PaymentMethod.OTHER: PaymentMethodInfo(
        display_name="Other", is_instant=False, requires_verification=True
    ),
}

REFUND_METHODS: FrozenSet[PaymentMethod] = frozenset({
    PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER, PaymentMethod.OTHER
})


def _plain(amount: Decimal) -> str:
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal("1")))
    return str(amount.quantize(_CENT))


def format_amount(amount: Decimal) -> str:
    """₹1000 for whole rupees, ₹1000.50 otherwise"""
    return f"₹{_plain(amount)}"


def _violation(field: str, message: str, code: str) -> RuleViolation:
    return RuleViolation(field=field, message=message, code=code)


def check_amount(amount: Union[Decimal, int, float, str, None], limits: PaymentLimits,
                 field: str = "amount") -> Optional[RuleViolation]:
    if amount is None:
        return _violation(field, "Payment amount is required", "REQUIRED_FIELD")
    try:
        amount = Decimal(str(amount))
    except InvalidOperation:
        return _violation(field, "Payment amount must be a number", "INVALID_AMOUNT")
    if not amount.is_finite():
        return _violation(field, "Payment amount must be a number", "INVALID_AMOUNT")
    if amount < limits.min_amount:
        return _violation(field, f"Payment amount must be at least {format_amount(limits.min_amount)}",
                          "AMOUNT_TOO_LOW")
    if amount > limits.max_amount:
        return _violation(field, f"Payment amount cannot exceed {format_amount(limits.max_amount)}",
                          "AMOUNT_TOO_HIGH")
    if amount != amount.quantize(_CENT):
        return _violation(field, "Payment amount cannot have more than 2 decimal places",
                          "INVALID_DECIMAL_PLACES")
    return None


def _parse_enum(enum_cls, value, field: str, label: str, code: str):
    try:
        return enum_cls(value), None
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        return None, _violation(field, f"Invalid {label}. Must be one of: {choices}", code)


def check_transaction_id(transaction_id: Optional[str]) -> Optional[RuleViolation]:
    if not transaction_id:
        return None
    if len(transaction_id) < 3 or len(transaction_id) > 100:
        return _violation("transaction_id", "Transaction ID must be between 3 and 100 characters",
                          "INVALID_TRANSACTION_ID_LENGTH")
    if _UNSAFE_TRANSACTION_CHARS.search(transaction_id):
        return _violation("transaction_id", "Transaction ID contains invalid characters",
                          "INVALID_TRANSACTION_ID_CHARS")
    return None


def check_notes(notes: Optional[str]) -> Optional[RuleViolation]:
    if notes and len(notes) > 1000:
        return _violation("notes", "Notes cannot exceed 1000 characters", "NOTES_TOO_LONG")
    return None


def check_payment_date(payment_date: Optional[datetime], now: datetime,
                       limits: PaymentLimits) -> Optional[RuleViolation]:
    if payment_date is None:
        return None
    if payment_date > now + timedelta(hours=limits.future_window_hours):
        return _violation("payment_date",
                          f"Payment date cannot be more than {limits.future_window_hours} hours in the future",
                          "PAYMENT_DATE_TOO_FUTURE")
    if payment_date < now - timedelta(days=limits.max_payment_age_days):
        return _violation("payment_date", "Payment date cannot be more than 1 year in the past",
                          "PAYMENT_DATE_TOO_PAST")
    return None


def validate_payment(
    amount,
    payment_type,
    payment_method,
    now: datetime,
    limits: PaymentLimits = PaymentLimits(),
    transaction_id: Optional[str] = None,
    notes: Optional[str] = None,
    payment_date: Optional[datetime] = None
) -> List[str]:
    """Validate a payment request; returns warnings, raises ValidationError with every violation"""
    errors: List[RuleViolation] = []
    warnings: List[str] = []

    amount_error = check_amount(amount, limits)
    type_, type_error = _parse_enum(PaymentType, payment_type, "payment_type", "payment type",
                                    "INVALID_PAYMENT_TYPE")
    method, method_error = _parse_enum(PaymentMethod, payment_method, "payment_method", "payment method",
                                       "INVALID_PAYMENT_METHOD")
    for error in (amount_error, type_error, method_error,
                  check_transaction_id(transaction_id),
                  check_notes(notes),
                  check_payment_date(payment_date, now, limits)):
        if error:
            errors.append(error)

    if method is not None:
        method_info = PAYMENT_METHOD_INFO[method]
        if amount_error is None and method_info.max_amount and Decimal(str(amount)) > method_info.max_amount:
            errors.append(_violation(
                "amount",
                f"{method_info.display_name} has a maximum limit of {format_amount(method_info.max_amount)}",
                "AMOUNT_EXCEEDS_METHOD_LIMIT"
            ))
        if method_info.requires_verification and not transaction_id:
            warnings.append(f"{method_info.display_name} payments should carry a transaction ID for verification")

    if type_ is not None and method is not None:
        type_info = PAYMENT_TYPE_INFO[type_]
        if type_ == PaymentType.REFUND and method not in REFUND_METHODS:
            errors.append(_violation(
                "payment_method",
                "Refunds can only be processed via cash, bank transfer, or other methods",
                "INVALID_REFUND_METHOD"
            ))
        elif type_ == PaymentType.CANCELLATION_FEE and method == PaymentMethod.CHEQUE:
            errors.append(_violation(
                "payment_method",
                "Cancellation fees cannot be collected via cheque",
                "INVALID_CANCELLATION_METHOD"
            ))
        elif method not in type_info.default_methods and method != PaymentMethod.OTHER:
            recommended = ", ".join(m.value for m in type_info.default_methods)
            warnings.append(
                f"{method.value} is not recommended for {type_info.display_name}. "
                f"Recommended methods: {recommended}"
            )

    if errors:
        raise ValidationError(errors)
    return warnings


def payment_warnings_for_reservation(
    amount: Decimal,
    payment_type: PaymentType,
    reservation_total: Decimal,
    existing_paid: Decimal = Decimal("0")
) -> List[str]:
    """Non-fatal checks of a payment against the reservation it pays for"""
    warnings: List[str] = []
    payment_type = PaymentType(payment_type)
    total_after = existing_paid + amount

    if total_after > reservation_total and payment_type not in (
        PaymentType.SECURITY_DEPOSIT, PaymentType.ADDITIONAL_CHARGES
    ):
        warnings.append(f"Payment would result in overpayment of {format_amount(total_after - reservation_total)}")

    if payment_type == PaymentType.BOOKING_ADVANCE and reservation_total > 0:
        percentage = amount / reservation_total * 100
        if percentage < 10:
            warnings.append(
                f"Advance amount is very low ({percentage:.1f}% of total). Consider at least 20% advance."
            )
        elif percentage > 80:
            warnings.append(
                f"Advance amount is very high ({percentage:.1f}% of total). Consider reducing to 50% or less."
            )

    if payment_type == PaymentType.FULL_PAYMENT:
        outstanding = reservation_total - existing_paid
        if abs(amount - outstanding) > 1:
            warnings.append(
                f"Full payment amount ({format_amount(amount)}) doesn't match "
                f"outstanding amount ({format_amount(outstanding)})"
            )

    if payment_type == PaymentType.PARTIAL_PAYMENT:
        remaining = reservation_total - total_after
        if 0 < remaining < 100:
            warnings.append(
                f"Very small amount ({format_amount(remaining)}) remaining after partial payment. "
                "Consider full payment."
            )

    return warnings


def validate_refund_amount(
    refund_amount,
    original_amount: Decimal,
    existing_refunds: Decimal = Decimal("0"),
    limits: PaymentLimits = PaymentLimits()
) -> Decimal:
    """Check a refund against what is left of the original payment; returns the amount as Decimal"""
    errors: List[RuleViolation] = []
    amount_error = check_amount(refund_amount, limits, field="refund_amount")
    if amount_error:
        raise ValidationError([amount_error])

    refund_amount = Decimal(str(refund_amount))
    if refund_amount > original_amount:
        errors.append(_violation("refund_amount", "Refund amount cannot exceed original payment amount",
                                 "REFUND_EXCEEDS_ORIGINAL"))

    total_refunds = existing_refunds + refund_amount
    if total_refunds > original_amount:
        errors.append(_violation(
            "refund_amount",
            f"Total refunds ({format_amount(total_refunds)}) would exceed original payment amount "
            f"({format_amount(original_amount)})",
            "TOTAL_REFUNDS_EXCEED_ORIGINAL"
        ))

    elif total_refunds > original_amount * limits.max_refund_percentage / 100:
        errors.append(_violation(
            "refund_amount",
            f"Total refunds cannot exceed {_plain(limits.max_refund_percentage)}% of original amount",
            "REFUND_PERCENTAGE_EXCEEDED"
        ))

    if errors:
        raise ValidationError(errors)
    return refund_amount


def processing_fee(amount: Decimal, payment_method: PaymentMethod) -> Decimal:
    """Fee the method's processor charges on top of the amount, rounded to paise"""
    percentage = PAYMENT_METHOD_INFO[PaymentMethod(payment_method)].processing_fee_percentage
    if not percentage:
        return Decimal("0")
    return (Decimal(amount) * percentage / 100).quantize(_CENT)


# Ledger entries only move forward; refunded is reached through record_refund
_PAYMENT_STATUS_TRANSITIONS: Dict[PaymentRecordStatus, FrozenSet[PaymentRecordStatus]] = {
    PaymentRecordStatus.PENDING: frozenset({
        PaymentRecordStatus.COMPLETED, PaymentRecordStatus.FAILED, PaymentRecordStatus.CANCELLED
    }),
    PaymentRecordStatus.FAILED: frozenset({PaymentRecordStatus.PENDING, PaymentRecordStatus.CANCELLED}),
    PaymentRecordStatus.COMPLETED: frozenset({PaymentRecordStatus.CANCELLED}),
    PaymentRecordStatus.REFUNDED: frozenset(),
    PaymentRecordStatus.CANCELLED: frozenset(),
}

RECORDABLE_STATUSES: FrozenSet[PaymentRecordStatus] = frozenset({
    PaymentRecordStatus.PENDING, PaymentRecordStatus.COMPLETED, PaymentRecordStatus.FAILED
})


def payment_status_transition(current: PaymentRecordStatus, requested: PaymentRecordStatus) -> PaymentRecordStatus:
    current = PaymentRecordStatus(current)
    requested = PaymentRecordStatus(requested)
    if requested not in _PAYMENT_STATUS_TRANSITIONS[current]:
        raise InvalidTransitionError(current, requested, entity="payment")
    return requested
