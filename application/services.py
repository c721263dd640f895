"""Application Services - Business use cases"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from application.numbering import SequentialNumberGenerator
from domain.clock import Clock, SystemClock, coerce_utc
from domain.entities import Payment, Reservation, ReservationRoom
from domain.enums import ReservationStatus, RoomStatus
from domain.exceptions import InvalidTransitionError, NotFoundError, RuleViolation, ValidationError
from domain.payment_rules import PaymentLimits, check_amount
from domain.repositories import DocumentStore, Transaction
from domain.room_status import is_terminal, transition
from domain.status_rules import derive_payment_status, derive_reservation_status, net_paid
from domain.value_objects import REFERENCE_SCOPE, DateRange, RoomAllocation, only_active
from infrastructure.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def _load_active_reservation(txn, reservation_id: str) -> Reservation:
    data = await txn.get(Reservation.collection, reservation_id)
    if data is None:
        raise NotFoundError("Reservation", reservation_id)
    reservation = Reservation.from_document(data)
    if not reservation.is_active:
        raise NotFoundError("Reservation", reservation_id)
    return reservation


async def _load_active_rooms(txn, reservation_id: str) -> List[ReservationRoom]:
    documents = await txn.query(ReservationRoom.collection, reservation_id=reservation_id)
    return only_active(ReservationRoom.from_document(data) for data in documents)


class ReservationStatusDeriver:
    """Recomputes a reservation's status and payment status from its rooms and payments"""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    async def recompute(self, txn: Transaction, reservation_id: str, actor_id: str) -> Reservation:
        """
        Re-derive both statuses inside the caller's transaction.

        Writes only the fields whose derived value differs, so running it a
        second time without intervening changes writes nothing.
        """
        reservation = await _load_active_reservation(txn, reservation_id)
        rooms = await _load_active_rooms(txn, reservation_id)
        payments = only_active(
            Payment.from_document(data)
            for data in await txn.query(Payment.collection, reservation_id=reservation_id)
        )

        has_completed_payment = any(p.is_settled and p.amount > 0 for p in payments)
        status = derive_reservation_status(
            reservation.status,
            [room.room_status for room in rooms],
            has_completed_payment
        )
        payment_status = derive_payment_status(net_paid(payments), reservation.total_amount)

        changes = {}
        if status != reservation.status:
            changes["status"] = status
        if payment_status != reservation.payment_status:
            changes["payment_status"] = payment_status
        if not changes:
            return reservation

        now = self.clock.now()
        changes.update(updated_at=now, updated_by=actor_id)
        txn.update(Reservation.collection, reservation_id, changes)
        logger.info(
            "Reservation %s recomputed: status %s -> %s, payment %s -> %s",
            reservation_id, reservation.status.value, status.value,
            reservation.payment_status.value, payment_status.value
        )
        return reservation.model_copy(update=changes)

    async def recompute_now(self, store: DocumentStore, reservation_id: str, actor_id: str) -> Reservation:
        """Recompute in a transaction of its own"""
        async with store.transaction() as txn:
            return await self.recompute(txn, reservation_id, actor_id)


class RoomStatusMachine:
    """Applies occupancy transitions to single rooms, keeping the parent reservation in step"""

    def __init__(self,
                 store: DocumentStore,
                 deriver: Optional[ReservationStatusDeriver] = None,
                 clock: Optional[Clock] = None,
                 settings: Optional[Settings] = None):
        self.store = store
        self.clock = clock or SystemClock()
        self.deriver = deriver or ReservationStatusDeriver(self.clock)
        self.settings = settings or get_settings()

    def ensure_not_future(self, field: str, value: datetime, label: str) -> None:
        hours = self.settings.future_window_hours
        if value > self.clock.now() + timedelta(hours=hours):
            raise ValidationError.single(
                field, f"{label} time cannot be more than {hours} hours in the future",
                f"{field.upper()}_TOO_FUTURE"
            )

    def check_out_rules(self, check_out_datetime: datetime) -> Callable[[ReservationRoom], None]:
        max_stay = timedelta(days=self.settings.max_stay_days)

        def rules(room: ReservationRoom) -> None:
            if room.check_in_datetime is None:
                return
            check_in_at = coerce_utc(room.check_in_datetime)
            if check_out_datetime <= check_in_at:
                raise ValidationError.single(
                    "check_out_datetime", "Check-out time must be after check-in time", "CHECK_OUT_BEFORE_CHECK_IN"
                )
            if check_out_datetime - check_in_at > max_stay:
                raise ValidationError.single(
                    "check_out_datetime",
                    f"Stay cannot exceed {self.settings.max_stay_days} days",
                    "STAY_TOO_LONG"
                )
        return rules

    def apply(self,
              room: ReservationRoom,
              requested: RoomStatus,
              actor_id: str,
              mutate: Optional[Callable[[ReservationRoom], None]] = None) -> ReservationRoom:
        """Validate the transition and stamp the room; the caller persists it"""
        room.room_status = transition(room.room_status, requested)
        if mutate:
            mutate(room)
        room.touch(actor_id, self.clock.now())
        return room

    async def _transition(self,
                          room_id: str,
                          requested: RoomStatus,
                          actor_id: str,
                          mutate: Optional[Callable[[ReservationRoom], None]] = None) -> ReservationRoom:
        async with self.store.transaction() as txn:
            data = await txn.get(ReservationRoom.collection, room_id)
            if data is None:
                raise NotFoundError("Room", room_id)
            room = ReservationRoom.from_document(data)
            if not room.is_active:
                raise NotFoundError("Room", room_id)
            previous = room.room_status
            self.apply(room, requested, actor_id, mutate)
            txn.set(ReservationRoom.collection, room.id, room.to_document())
            await self.deriver.recompute(txn, room.reservation_id, actor_id)
        logger.info("Room %s (%s) %s -> %s by %s",
                    room.room_number, room.id, previous.value, room.room_status.value, actor_id)
        return room

    async def check_in(self, room_id: str, check_in_datetime: datetime, actor_id: str,
                       notes: Optional[str] = None) -> ReservationRoom:
        check_in_datetime = coerce_utc(check_in_datetime)
        self.ensure_not_future("check_in_datetime", check_in_datetime, "Check-in")

        def stamp(room: ReservationRoom) -> None:
            room.check_in_datetime = check_in_datetime
            room.checked_in_by = actor_id
            room.check_in_notes = notes

        return await self._transition(room_id, RoomStatus.CHECKED_IN, actor_id, stamp)

    async def check_out(self, room_id: str, check_out_datetime: datetime, actor_id: str,
                        notes: Optional[str] = None) -> ReservationRoom:
        check_out_datetime = coerce_utc(check_out_datetime)
        self.ensure_not_future("check_out_datetime", check_out_datetime, "Check-out")
        rules = self.check_out_rules(check_out_datetime)

        def stamp(room: ReservationRoom) -> None:
            rules(room)
            room.check_out_datetime = check_out_datetime
            room.checked_out_by = actor_id
            room.check_out_notes = notes

        return await self._transition(room_id, RoomStatus.CHECKED_OUT, actor_id, stamp)

    async def cancel_room(self, room_id: str, actor_id: str, reason: Optional[str] = None) -> ReservationRoom:
        def stamp(room: ReservationRoom) -> None:
            room.cancellation_reason = reason

        return await self._transition(room_id, RoomStatus.CANCELLED, actor_id, stamp)

    async def mark_no_show(self, room_id: str, actor_id: str, notes: Optional[str] = None) -> ReservationRoom:
        def stamp(room: ReservationRoom) -> None:
            room.check_in_notes = notes

        return await self._transition(room_id, RoomStatus.NO_SHOW, actor_id, stamp)


class ReservationService:
    """Service for Reservation business use cases"""

    def __init__(self,
                 store: DocumentStore,
                 numbering: Optional[SequentialNumberGenerator] = None,
                 room_machine: Optional[RoomStatusMachine] = None,
                 clock: Optional[Clock] = None,
                 settings: Optional[Settings] = None):
        self.store = store
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.numbering = numbering or SequentialNumberGenerator(store, self.clock, self.settings)
        self.room_machine = room_machine or RoomStatusMachine(store, clock=self.clock, settings=self.settings)

    def _validate_new_reservation(self, guest_name: str, check_in_date: date, check_out_date: date,
                                  total_amount: Decimal, rooms: List[RoomAllocation]) -> None:
        errors: List[RuleViolation] = []
        if not guest_name or not guest_name.strip():
            errors.append(RuleViolation(field="guest_name", message="Guest name is required", code="REQUIRED_FIELD"))
        try:
            DateRange(check_in=check_in_date, check_out=check_out_date)
        except PydanticValidationError:
            errors.append(RuleViolation(
                field="check_out_date", message="Check-out must be after check-in", code="INVALID_DATE_RANGE"
            ))
        limits = PaymentLimits(min_amount=self.settings.payment_min_amount,
                               max_amount=self.settings.payment_max_amount)
        amount_error = check_amount(total_amount, limits, field="total_amount")
        if amount_error:
            errors.append(amount_error)
        if not rooms:
            errors.append(RuleViolation(
                field="rooms", message="A reservation needs at least one room", code="NO_ROOMS"
            ))
        room_numbers = [room.room_number for room in rooms]
        if len(set(room_numbers)) != len(room_numbers):
            errors.append(RuleViolation(
                field="rooms", message="A room can only be allocated once per reservation", code="DUPLICATE_ROOM"
            ))
        if errors:
            raise ValidationError(errors)

    async def create_reservation(
        self,
        guest_name: str,
        check_in_date: date,
        check_out_date: date,
        total_amount: Decimal,
        rooms: List[RoomAllocation],
        actor_id: str = "SYSTEM"
    ) -> Reservation:
        """Create a reservation and its rooms in one batch"""
        self._validate_new_reservation(guest_name, check_in_date, check_out_date, total_amount, rooms)

        now = self.clock.now()
        reference_number = await self.numbering.generate(REFERENCE_SCOPE, now)
        reservation = Reservation(
            reference_number=reference_number,
            guest_name=guest_name.strip(),
            check_in_date=check_in_date,
            check_out_date=check_out_date,
            total_amount=Decimal(str(total_amount)),
            created_at=now,
            updated_at=now,
            created_by=actor_id,
            updated_by=actor_id
        )
        batch = self.store.batch()
        batch.set(Reservation.collection, reservation.id, reservation.to_document())
        for allocation in rooms:
            room = ReservationRoom(
                reservation_id=reservation.id,
                room_number=allocation.room_number,
                room_type=allocation.room_type,
                guest_count=allocation.guest_count,
                tariff_per_night=allocation.tariff_per_night,
                created_at=now,
                updated_at=now,
                created_by=actor_id,
                updated_by=actor_id
            )
            batch.set(ReservationRoom.collection, room.id, room.to_document())
        await batch.commit()

        logger.info("Reservation %s (%s) created with %d room(s) by %s",
                    reservation.reference_number, reservation.id, len(rooms), actor_id)
        return reservation

    async def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        """Get reservation by ID"""
        data = await self.store.get(Reservation.collection, reservation_id)
        if data is None:
            return None
        reservation = Reservation.from_document(data)
        return reservation if reservation.is_active else None

    async def get_reservation_by_reference(self, reference_number: str) -> Optional[Reservation]:
        documents = await self.store.query(Reservation.collection, reference_number=reference_number)
        matches = only_active(Reservation.from_document(data) for data in documents)
        return matches[0] if matches else None

    async def get_all_reservations(self) -> List[Reservation]:
        """Get all reservations"""
        documents = await self.store.query(Reservation.collection)
        reservations = only_active(Reservation.from_document(data) for data in documents)
        return sorted(reservations, key=lambda r: r.created_at)

    async def get_rooms(self, reservation_id: str) -> List[ReservationRoom]:
        rooms = await _load_active_rooms(self.store, reservation_id)
        return sorted(rooms, key=lambda room: room.room_number)

    async def get_room(self, room_id: str) -> Optional[ReservationRoom]:
        data = await self.store.get(ReservationRoom.collection, room_id)
        if data is None:
            return None
        room = ReservationRoom.from_document(data)
        return room if room.is_active else None

    async def cancel_reservation(self, reservation_id: str, actor_id: str,
                                 reason: Optional[str] = None) -> Reservation:
        """Cancel the reservation and every room still open, all or nothing"""
        now = self.clock.now()
        async with self.store.transaction() as txn:
            reservation = await _load_active_reservation(txn, reservation_id)
            if reservation.status in (ReservationStatus.CANCELLED, ReservationStatus.CHECKED_OUT):
                raise InvalidTransitionError(reservation.status, ReservationStatus.CANCELLED, entity="reservation")

            rooms = await _load_active_rooms(txn, reservation_id)
            cancelled_rooms = 0
            for room in rooms:
                if is_terminal(room.room_status):
                    continue
                room.room_status = transition(room.room_status, RoomStatus.CANCELLED)
                room.cancellation_reason = reason
                room.touch(actor_id, now)
                txn.set(ReservationRoom.collection, room.id, room.to_document())
                cancelled_rooms += 1

            reservation.status = ReservationStatus.CANCELLED
            reservation.cancellation_reason = reason
            reservation.touch(actor_id, now)
            txn.set(Reservation.collection, reservation.id, reservation.to_document())

        logger.info("Reservation %s cancelled by %s (%d room(s) cancelled)",
                    reservation_id, actor_id, cancelled_rooms)
        return reservation

    async def delete_reservation(self, reservation_id: str, actor_id: str) -> None:
        """Soft delete the reservation (status cancelled) and its rooms together"""
        now = self.clock.now()
        async with self.store.transaction() as txn:
            reservation = await _load_active_reservation(txn, reservation_id)
            rooms = await _load_active_rooms(txn, reservation_id)
            reservation.soft_delete(actor_id, now)
            reservation.status = ReservationStatus.CANCELLED
            txn.set(Reservation.collection, reservation.id, reservation.to_document())
            for room in rooms:
                room.soft_delete(actor_id, now)
                txn.set(ReservationRoom.collection, room.id, room.to_document())
        logger.info("Reservation %s soft-deleted by %s with %d room(s)", reservation_id, actor_id, len(rooms))

    async def hard_delete_reservation(self, reservation_id: str) -> bool:
        """Administrative: remove the reservation and its rooms outright"""
        data = await self.store.get(Reservation.collection, reservation_id)
        if data is None:
            return False
        rooms = await self.store.query(ReservationRoom.collection, reservation_id=reservation_id)
        batch = self.store.batch()
        batch.delete(Reservation.collection, reservation_id)
        for room in rooms:
            batch.delete(ReservationRoom.collection, room["id"])
        await batch.commit()
        logger.warning("Reservation %s hard-deleted with %d room(s); no audit trail kept",
                       reservation_id, len(rooms))
        return True

    async def _bulk_transition(self,
                               reservation_id: str,
                               eligible: RoomStatus,
                               requested: RoomStatus,
                               actor_id: str,
                               mutate: Callable[[ReservationRoom], None]) -> List[ReservationRoom]:
        async with self.store.transaction() as txn:
            await _load_active_reservation(txn, reservation_id)
            rooms = [room for room in await _load_active_rooms(txn, reservation_id) if room.room_status == eligible]
            if not rooms:
                raise ValidationError.single(
                    "reservation_id", f"No {eligible.value} rooms on reservation {reservation_id}",
                    "NO_ELIGIBLE_ROOMS"
                )
            for room in rooms:
                self.room_machine.apply(room, requested, actor_id, mutate)
                txn.set(ReservationRoom.collection, room.id, room.to_document())
            await self.room_machine.deriver.recompute(txn, reservation_id, actor_id)
        logger.info("Reservation %s: %d room(s) %s -> %s by %s",
                    reservation_id, len(rooms), eligible.value, requested.value, actor_id)
        return sorted(rooms, key=lambda room: room.room_number)

    async def bulk_check_in(self, reservation_id: str, check_in_datetime: datetime, actor_id: str,
                            notes: Optional[str] = None) -> List[ReservationRoom]:
        """Check in every pending room of the reservation at once"""
        check_in_datetime = coerce_utc(check_in_datetime)
        self.room_machine.ensure_not_future("check_in_datetime", check_in_datetime, "Check-in")

        def stamp(room: ReservationRoom) -> None:
            room.check_in_datetime = check_in_datetime
            room.checked_in_by = actor_id
            room.check_in_notes = notes

        return await self._bulk_transition(reservation_id, RoomStatus.PENDING, RoomStatus.CHECKED_IN, actor_id, stamp)

    async def bulk_check_out(self, reservation_id: str, check_out_datetime: datetime, actor_id: str,
                             notes: Optional[str] = None) -> List[ReservationRoom]:
        """Check out every checked-in room of the reservation at once"""
        check_out_datetime = coerce_utc(check_out_datetime)
        self.room_machine.ensure_not_future("check_out_datetime", check_out_datetime, "Check-out")
        rules = self.room_machine.check_out_rules(check_out_datetime)

        def stamp(room: ReservationRoom) -> None:
            rules(room)
            room.check_out_datetime = check_out_datetime
            room.checked_out_by = actor_id
            room.check_out_notes = notes

        return await self._bulk_transition(
            reservation_id, RoomStatus.CHECKED_IN, RoomStatus.CHECKED_OUT, actor_id, stamp
        )
