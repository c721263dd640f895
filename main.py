import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import List

from fastapi import FastAPI, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Reservation
    CreateReservationRequest, CancelReservationRequest, ReservationResponse,
    # Rooms
    RoomCheckInRequest, RoomCheckOutRequest, CancelRoomRequest, NoShowRequest, RoomResponse,
    # Payments
    RecordPaymentRequest, PaymentResultResponse, RefundRequest, UpdatePaymentStatusRequest,
    PaymentResponse, PaymentAuditResponse, ReservationPaymentStatusResponse,
    # Identifiers
    ParsedIdentifierResponse,
    # Auth
    Token, UserResponse
)

from api.dependencies import get_current_active_operator, get_operator, operator_directory
from infrastructure.security import verify_password, create_access_token
from infrastructure.config import get_settings
from domain.auth import User

from application.numbering import SequentialNumberGenerator
from application.payments import PaymentLedger, ReconciliationEngine
from application.services import ReservationService, RoomStatusMachine, ReservationStatusDeriver
from infrastructure.repositories.in_memory_repositories import InMemoryDocumentStore
from domain.clock import SystemClock
from domain.enums import (
    ReservationStatus, PaymentStatus, RoomStatus, PaymentType, PaymentMethod, PaymentRecordStatus
)
from domain.exceptions import NotFoundError
from domain.payment_rules import PAYMENT_METHOD_INFO, PAYMENT_TYPE_INFO, processing_fee
from domain.room_status import allowed_transitions
from domain.value_objects import (
    RECEIPT_SCOPE, REFERENCE_SCOPE, CounterSnapshot, PaymentSummary, ReconciliationReport, RoomAllocation
)

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    logger.info("%s %s starting", settings.app_name, settings.app_version)
    yield


app = FastAPI(
    title="Lodge Back-Office API",
    description="Reservations, room occupancy and payment ledger for a lodge back office",
    version=settings.app_version,
    lifespan=lifespan
)

# Initialize document store and collaborators
document_store = InMemoryDocumentStore()
clock = SystemClock()
numbering = SequentialNumberGenerator(document_store, clock, settings)
deriver = ReservationStatusDeriver(clock)

_IDENTIFIER_SCOPES = {"receipt": RECEIPT_SCOPE, "reference": REFERENCE_SCOPE}

# Dependency injection
def get_reservation_service() -> ReservationService:
    return ReservationService(
        document_store, numbering,
        RoomStatusMachine(document_store, deriver, clock, settings),
        clock, settings
    )

def get_room_status_machine() -> RoomStatusMachine:
    return RoomStatusMachine(document_store, deriver, clock, settings)

def get_payment_ledger() -> PaymentLedger:
    return PaymentLedger(document_store, numbering, deriver, clock, settings)

def get_reconciliation_engine() -> ReconciliationEngine:
    return ReconciliationEngine(document_store, settings)

def get_number_generator() -> SequentialNumberGenerator:
    return numbering

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Get all ReservationStatus enum values"""
    return {
        "values": [item.value for item in ReservationStatus],
        "description": "Reservation status values: reservation, booking, checked_in, checked_out, cancelled"
    }

@app.get("/api/enums/payment-status", tags=["Enum Reference"])
async def get_payment_statuses():
    """Get reservation-level and ledger-entry payment statuses"""
    return {
        "reservation": [item.value for item in PaymentStatus],
        "payment": [item.value for item in PaymentRecordStatus]
    }

@app.get("/api/enums/room-status", tags=["Enum Reference"])
async def get_room_statuses():
    """Get RoomStatus values with the transitions each allows"""
    return {
        "values": [item.value for item in RoomStatus],
        "transitions": {
            item.value: sorted(target.value for target in allowed_transitions(item)) for item in RoomStatus
        }
    }

@app.get("/api/enums/payment-types", tags=["Enum Reference"])
async def get_payment_types():
    """Get payment types with their recommended methods"""
    return {
        item.value: {
            "display_name": PAYMENT_TYPE_INFO[item].display_name,
            "description": PAYMENT_TYPE_INFO[item].description,
            "is_refundable": PAYMENT_TYPE_INFO[item].is_refundable,
            "requires_approval": PAYMENT_TYPE_INFO[item].requires_approval,
            "default_methods": [method.value for method in PAYMENT_TYPE_INFO[item].default_methods]
        }
        for item in PaymentType
    }

@app.get("/api/enums/payment-methods", tags=["Enum Reference"])
async def get_payment_methods():
    """Get payment methods with their limits and processing fees"""
    return {
        item.value: {
            "display_name": PAYMENT_METHOD_INFO[item].display_name,
            "is_instant": PAYMENT_METHOD_INFO[item].is_instant,
            "requires_verification": PAYMENT_METHOD_INFO[item].requires_verification,
            "max_amount": PAYMENT_METHOD_INFO[item].max_amount,
            "processing_fee_percentage": PAYMENT_METHOD_INFO[item].processing_fee_percentage
        }
        for item in PaymentMethod
    }

@app.get("/api/payment-methods/{payment_method}/fee", tags=["Enum Reference"])
async def get_processing_fee(payment_method: PaymentMethod, amount: Decimal):
    """Processing fee charged by the method for the given amount"""
    fee = processing_fee(amount, payment_method)
    return {"payment_method": payment_method.value, "amount": str(amount), "processing_fee": fee}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_operator(operator_directory, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(data={"sub": user.username})
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_operator)):
    return current_user

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_operator)
):
    """Create a reservation together with its rooms"""
    try:
        reservation = await service.create_reservation(
            guest_name=request.guest_name,
            check_in_date=request.check_in_date,
            check_out_date=request.check_out_date,
            total_amount=request.total_amount,
            rooms=[RoomAllocation(**room.model_dump()) for room in request.rooms],
            actor_id=current_user.actor_id
        )
        rooms = await service.get_rooms(reservation.id)
        return _reservation_to_response(reservation, rooms)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_all_reservations(
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_operator)
):
    """Get all reservations"""
    reservations = await service.get_all_reservations()
    return [_reservation_to_response(r, await service.get_rooms(r.id)) for r in reservations]

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_operator)
):
    """Get reservation by ID"""
    reservation = await service.get_reservation(reservation_id)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation, await service.get_rooms(reservation_id))

@app.get("/api/reservations/reference/{reference_number}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation_by_reference(
    reference_number: str,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_operator)
):
    """Get reservation by reference number"""
    reservation = await service.get_reservation_by_reference(reference_number)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation, await service.get_rooms(reservation.id))

@app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
async def cancel_reservation(
    reservation_id: str,
    request: CancelReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_operator)
):
    """Cancel reservation and every open room"""
    try:
        reservation = await service.cancel_reservation(reservation_id, current_user.actor_id, request.reason)
        return _reservation_to_response(reservation, await service.get_rooms(reservation_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.delete("/api/reservations/{reservation_id}", status_code=204, tags=["Reservations"])
async def delete_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_operator)
):
    """Soft delete reservation and its rooms"""
    try:
        await service.delete_reservation(reservation_id, current_user.actor_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@app.post("/api/reservations/{reservation_id}/check-in", response_model=List[RoomResponse], tags=["Reservations"])
async def bulk_check_in(
    reservation_id: str,
    request: RoomCheckInRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_operator)
):
    """Check in every pending room"""
    try:
        rooms = await service.bulk_check_in(
            reservation_id, request.check_in_datetime or clock.now(), current_user.actor_id, request.notes
        )
        return [_room_to_response(room) for room in rooms]
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/reservations/{reservation_id}/check-out", response_model=List[RoomResponse], tags=["Reservations"])
async def bulk_check_out(
    reservation_id: str,
    request: RoomCheckOutRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_operator)
):
    """Check out every checked-in room"""
    try:
        rooms = await service.bulk_check_out(
            reservation_id, request.check_out_datetime or clock.now(), current_user.actor_id, request.notes
        )
        return [_room_to_response(room) for room in rooms]
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.post("/api/rooms/{room_id}/check-in", response_model=RoomResponse, tags=["Rooms"])
async def check_in_room(
    room_id: str,
    request: RoomCheckInRequest,
    machine: RoomStatusMachine = Depends(get_room_status_machine),
    current_user: User = Depends(get_current_active_operator)
):
    """Check in a single room"""
    try:
        room = await machine.check_in(
            room_id, request.check_in_datetime or clock.now(), current_user.actor_id, request.notes
        )
        return _room_to_response(room)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/rooms/{room_id}/check-out", response_model=RoomResponse, tags=["Rooms"])
async def check_out_room(
    room_id: str,
    request: RoomCheckOutRequest,
    machine: RoomStatusMachine = Depends(get_room_status_machine),
    current_user: User = Depends(get_current_active_operator)
):
    """Check out a single room"""
    try:
        room = await machine.check_out(
            room_id, request.check_out_datetime or clock.now(), current_user.actor_id, request.notes
        )
        return _room_to_response(room)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/rooms/{room_id}/cancel", response_model=RoomResponse, tags=["Rooms"])
async def cancel_room(
    room_id: str,
    request: CancelRoomRequest,
    machine: RoomStatusMachine = Depends(get_room_status_machine),
    current_user: User = Depends(get_current_active_operator)
):
    """Cancel a single room"""
    try:
        room = await machine.cancel_room(room_id, current_user.actor_id, request.reason)
        return _room_to_response(room)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/rooms/{room_id}/no-show", response_model=RoomResponse, tags=["Rooms"])
async def mark_room_no_show(
    room_id: str,
    request: NoShowRequest,
    machine: RoomStatusMachine = Depends(get_room_status_machine),
    current_user: User = Depends(get_current_active_operator)
):
    """Mark a pending room as no-show"""
    try:
        room = await machine.mark_no_show(room_id, current_user.actor_id, request.notes)
        return _room_to_response(room)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@app.post("/api/payments", response_model=PaymentResultResponse, status_code=201, tags=["Payments"])
async def record_payment(
    request: RecordPaymentRequest,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Record a payment; non-fatal findings come back as warnings"""
    try:
        result = await ledger.record_payment(
            amount=request.amount,
            payment_type=request.payment_type,
            payment_method=request.payment_method,
            actor_id=current_user.actor_id,
            reservation_id=request.reservation_id,
            notes=request.notes,
            payment_date=request.payment_date,
            transaction_id=request.transaction_id,
            payment_status=request.payment_status
        )
        return PaymentResultResponse(**result.model_dump())
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/payments/{payment_id}", response_model=PaymentResponse, tags=["Payments"])
async def get_payment(
    payment_id: str,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Get payment by ID"""
    payment = await ledger.get_payment(payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return _payment_to_response(payment)

@app.get("/api/payments/receipt/{receipt_number}", response_model=PaymentResponse, tags=["Payments"])
async def get_payment_by_receipt(
    receipt_number: str,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Get payment by receipt number"""
    payment = await ledger.get_payment_by_receipt_number(receipt_number)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return _payment_to_response(payment)

@app.post("/api/payments/{payment_id}/refund", response_model=PaymentResponse, status_code=201, tags=["Payments"])
async def refund_payment(
    payment_id: str,
    request: RefundRequest,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Refund part or all of a completed payment"""
    try:
        refund_id = await ledger.record_refund(
            payment_id, request.refund_amount, current_user.actor_id,
            notes=request.notes, payment_method=request.payment_method
        )
        return _payment_to_response(await ledger.get_payment(refund_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.put("/api/payments/{payment_id}/status", response_model=PaymentResponse, tags=["Payments"])
async def update_payment_status(
    payment_id: str,
    request: UpdatePaymentStatusRequest,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Move a payment along its status graph"""
    try:
        payment = await ledger.update_payment_status(
            payment_id, request.payment_status, current_user.actor_id, request.notes
        )
        return _payment_to_response(payment)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.delete("/api/payments/{payment_id}", status_code=204, tags=["Payments"])
async def delete_payment(
    payment_id: str,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Soft delete a payment"""
    try:
        await ledger.soft_delete_payment(payment_id, current_user.actor_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@app.post("/api/payments/{payment_id}/restore", response_model=PaymentResponse, tags=["Payments"])
async def restore_payment(
    payment_id: str,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Restore a soft-deleted payment"""
    try:
        return _payment_to_response(await ledger.restore_payment(payment_id, current_user.actor_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/payments/{payment_id}/audit", response_model=List[PaymentAuditResponse], tags=["Payments"])
async def get_payment_audit_log(
    payment_id: str,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Audit trail of a payment"""
    entries = await ledger.get_audit_log(payment_id)
    return [
        PaymentAuditResponse(
            audit_id=entry.id,
            payment_id=entry.payment_id,
            action=entry.action.value,
            performed_by=entry.performed_by,
            performed_at=entry.performed_at,
            details=entry.details
        )
        for entry in entries
    ]

@app.get("/api/reservations/{reservation_id}/payments", response_model=List[PaymentResponse], tags=["Payments"])
async def get_reservation_payments(
    reservation_id: str,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """All active payments of a reservation, oldest first"""
    payments = await ledger.get_payments_for_reservation(reservation_id)
    return [_payment_to_response(p) for p in payments]

@app.get("/api/reservations/{reservation_id}/payments/summary", response_model=PaymentSummary, tags=["Payments"])
async def get_reservation_payment_summary(
    reservation_id: str,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Settled totals by type and method"""
    try:
        return await ledger.get_payment_summary(reservation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@app.post(
    "/api/reservations/{reservation_id}/payment-status",
    response_model=ReservationPaymentStatusResponse,
    tags=["Payments"]
)
async def recompute_payment_status(
    reservation_id: str,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    current_user: User = Depends(get_current_active_operator)
):
    """Re-derive the reservation's payment status from its ledger"""
    try:
        payment_status = await ledger.compute_payment_status(reservation_id, current_user.actor_id)
        paid_total = await ledger.compute_paid_total(reservation_id)
        return ReservationPaymentStatusResponse(
            reservation_id=reservation_id,
            payment_status=payment_status.value,
            paid_total=paid_total
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

# ============================================================================
# RECONCILIATION & IDENTIFIER ENDPOINTS
# ============================================================================

@app.get("/api/reservations/{reservation_id}/reconciliation", response_model=ReconciliationReport,
         tags=["Reconciliation"])
async def reconcile_reservation(
    reservation_id: str,
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
    current_user: User = Depends(get_current_active_operator)
):
    """Compare the reservation total with its ledger"""
    try:
        return await engine.reconcile(reservation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@app.get("/api/identifiers/{scope}/parse", response_model=ParsedIdentifierResponse, tags=["Identifiers"])
async def parse_identifier(
    scope: str,
    identifier: str,
    generator: SequentialNumberGenerator = Depends(get_number_generator),
    current_user: User = Depends(get_current_active_operator)
):
    """Split a receipt or reference number into its parts"""
    if scope not in _IDENTIFIER_SCOPES:
        raise HTTPException(status_code=404, detail=f"Unknown identifier scope {scope}")
    try:
        parsed = generator.parse(identifier, _IDENTIFIER_SCOPES[scope])
        return ParsedIdentifierResponse(identifier=identifier, **parsed.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/identifiers/{scope}/next", response_model=CounterSnapshot, tags=["Identifiers"])
async def peek_identifier(
    scope: str,
    generator: SequentialNumberGenerator = Depends(get_number_generator),
    current_user: User = Depends(get_current_active_operator)
):
    """The identifier the next payment or reservation would receive"""
    if scope not in _IDENTIFIER_SCOPES:
        raise HTTPException(status_code=404, detail=f"Unknown identifier scope {scope}")
    return await generator.peek(_IDENTIFIER_SCOPES[scope])

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _room_to_response(room) -> RoomResponse:
    """Convert ReservationRoom entity to RoomResponse"""
    return RoomResponse(
        room_id=room.id,
        reservation_id=room.reservation_id,
        room_number=room.room_number,
        room_type=room.room_type,
        guest_count=room.guest_count,
        tariff_per_night=room.tariff_per_night,
        room_status=room.room_status.value,
        check_in_datetime=room.check_in_datetime,
        check_out_datetime=room.check_out_datetime,
        checked_in_by=room.checked_in_by,
        checked_out_by=room.checked_out_by,
        check_in_notes=room.check_in_notes,
        check_out_notes=room.check_out_notes,
        cancellation_reason=room.cancellation_reason,
        updated_at=room.updated_at,
        updated_by=room.updated_by
    )

def _reservation_to_response(reservation, rooms=()) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.id,
        reference_number=reservation.reference_number,
        guest_name=reservation.guest_name,
        check_in_date=reservation.check_in_date,
        check_out_date=reservation.check_out_date,
        total_amount=reservation.total_amount,
        status=reservation.status.value,
        payment_status=reservation.payment_status.value,
        cancellation_reason=reservation.cancellation_reason,
        rooms=[_room_to_response(room) for room in rooms],
        created_at=reservation.created_at,
        updated_at=reservation.updated_at,
        created_by=reservation.created_by,
        updated_by=reservation.updated_by
    )

def _payment_to_response(payment) -> PaymentResponse:
    """Convert Payment entity to PaymentResponse"""
    return PaymentResponse(
        payment_id=payment.id,
        reservation_id=payment.reservation_id,
        receipt_number=payment.receipt_number,
        amount=payment.amount,
        payment_type=payment.payment_type.value,
        payment_method=payment.payment_method.value,
        payment_status=payment.payment_status.value,
        transaction_id=payment.transaction_id,
        notes=payment.notes,
        refund_of=payment.refund_of,
        payment_date=payment.payment_date,
        created_by=payment.created_by,
        updated_at=payment.updated_at
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
