"""Pure reservation status derivation rules"""
from decimal import Decimal
from typing import Iterable

from domain.enums import ReservationStatus, RoomStatus, PaymentStatus

# Precedence order; derivation never moves a reservation to a lower rank
_RANK = {
    ReservationStatus.RESERVATION: 0,
    ReservationStatus.BOOKING: 1,
    ReservationStatus.CHECKED_IN: 2,
    ReservationStatus.CHECKED_OUT: 3,
    ReservationStatus.CANCELLED: 4,
}


def derive_reservation_status(
    current: ReservationStatus,
    room_statuses: Iterable[RoomStatus],
    has_completed_payment: bool
) -> ReservationStatus:
    """
    Compute a reservation's status from its active rooms and payments.

    Rules, first match wins:
    1. already cancelled, or any room cancelled -> cancelled
    2. every room checked out -> checked_out
    3. every room checked in -> checked_in
    4. still a plain reservation with a completed payment -> booking
    5. otherwise unchanged

    Rules 2 and 3 need at least one room. `room_statuses` must already
    exclude soft-deleted rooms.
    """
    current = ReservationStatus(current)
    statuses = [RoomStatus(status) for status in room_statuses]

    if current == ReservationStatus.CANCELLED or RoomStatus.CANCELLED in statuses:
        derived = ReservationStatus.CANCELLED
    elif statuses and all(status == RoomStatus.CHECKED_OUT for status in statuses):
        derived = ReservationStatus.CHECKED_OUT
    elif statuses and all(status == RoomStatus.CHECKED_IN for status in statuses):
        derived = ReservationStatus.CHECKED_IN
    elif current == ReservationStatus.RESERVATION and has_completed_payment:
        derived = ReservationStatus.BOOKING
    else:
        derived = current

    if _RANK[derived] < _RANK[current]:
        return current
    return derived


def net_paid(payments: Iterable) -> Decimal:
    """Sum of settled payment amounts; refund entries are negative and net out"""
    return sum((payment.amount for payment in payments if payment.is_settled), Decimal("0"))


def derive_payment_status(net_paid: Decimal, total_amount: Decimal) -> PaymentStatus:
    """pending when nothing is paid, paid once the total is covered, partial in between"""
    if net_paid <= 0:
        return PaymentStatus.PENDING
    if net_paid >= total_amount:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL
