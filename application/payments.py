"""Application Services - Payment ledger and reconciliation"""
import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from application.numbering import SequentialNumberGenerator
from application.services import ReservationStatusDeriver
from domain.clock import Clock, SystemClock, coerce_utc
from domain.entities import Payment, PaymentAuditEntry, Reservation
from domain.enums import AuditAction, PaymentMethod, PaymentRecordStatus, PaymentStatus, PaymentType
from domain.exceptions import NotFoundError, ValidationError
from domain.payment_rules import (
    RECORDABLE_STATUSES, REFUND_METHODS, PaymentLimits, check_notes, format_amount,
    payment_status_transition, payment_warnings_for_reservation,
    validate_payment, validate_refund_amount
)
from domain.repositories import DocumentStore
from domain.status_rules import net_paid
from domain.value_objects import (
    RECEIPT_SCOPE, ActiveLifecycle, PaymentResult, PaymentSummary, ReconciliationReport, ReconciliationSummary,
    only_active
)
from infrastructure.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def _active_payments(store, reservation_id: str) -> List[Payment]:
    documents = await store.query(Payment.collection, reservation_id=reservation_id)
    payments = only_active(Payment.from_document(data) for data in documents)
    return sorted(payments, key=lambda p: p.payment_date)


async def _active_reservation(store, reservation_id: str) -> Reservation:
    data = await store.get(Reservation.collection, reservation_id)
    if data is None:
        raise NotFoundError("Reservation", reservation_id)
    reservation = Reservation.from_document(data)
    if not reservation.is_active:
        raise NotFoundError("Reservation", reservation_id)
    return reservation


def _prior_refunds(original: Payment, payments: List[Payment]) -> Decimal:
    return sum(
        (abs(p.amount) for p in payments if p.refund_of == original.id and p.is_settled),
        Decimal("0")
    )


class PaymentLedger:
    """Service for recording, refunding and summarising payments"""

    def __init__(self,
                 store: DocumentStore,
                 numbering: Optional[SequentialNumberGenerator] = None,
                 deriver: Optional[ReservationStatusDeriver] = None,
                 clock: Optional[Clock] = None,
                 settings: Optional[Settings] = None):
        self.store = store
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.numbering = numbering or SequentialNumberGenerator(store, self.clock, self.settings)
        self.deriver = deriver or ReservationStatusDeriver(self.clock)

    @property
    def limits(self) -> PaymentLimits:
        return PaymentLimits(
            min_amount=self.settings.payment_min_amount,
            max_amount=self.settings.payment_max_amount,
            max_refund_percentage=self.settings.max_refund_percentage,
            future_window_hours=self.settings.future_window_hours,
            max_payment_age_days=self.settings.max_payment_age_days
        )

    async def _audit(self, payment_id: str, action: AuditAction, actor_id: str,
                     details: Optional[Dict[str, Any]] = None) -> None:
        """Best effort: an audit failure never undoes the payment it describes"""
        try:
            entry = PaymentAuditEntry(
                payment_id=payment_id,
                action=action,
                performed_by=actor_id,
                performed_at=self.clock.now(),
                details=details or {}
            )
            await self.store.set(PaymentAuditEntry.collection, entry.id, entry.to_document())
        except Exception:
            logger.exception("Failed to write %s audit entry for payment %s", action.value, payment_id)

    async def _recompute(self, reservation_id: Optional[str], actor_id: str) -> None:
        """Follow-up recompute; the ledger change it trails is already committed"""
        if not reservation_id:
            return
        try:
            await self.deriver.recompute_now(self.store, reservation_id, actor_id)
        except NotFoundError:
            logger.warning("Skipped status recompute: reservation %s is missing or deleted", reservation_id)

    async def record_payment(
        self,
        amount,
        payment_type,
        payment_method,
        actor_id: str,
        reservation_id: Optional[str] = None,
        notes: Optional[str] = None,
        payment_date: Optional[datetime] = None,
        transaction_id: Optional[str] = None,
        payment_status: PaymentRecordStatus = PaymentRecordStatus.COMPLETED
    ) -> PaymentResult:
        """
        Validate and append a payment to the ledger.

        Every rule violation is raised together before a receipt number is
        consumed. Refund-type entries are stored with a negative amount. The
        reservation's statuses are recomputed in a separate transaction after
        the payment is persisted.
        """
        now = self.clock.now()
        if payment_date is not None:
            payment_date = coerce_utc(payment_date)

        warnings = validate_payment(
            amount, payment_type, payment_method, now, self.limits,
            transaction_id=transaction_id, notes=notes, payment_date=payment_date
        )
        payment_type = PaymentType(payment_type)
        payment_method = PaymentMethod(payment_method)
        payment_status = PaymentRecordStatus(payment_status)
        if payment_status not in RECORDABLE_STATUSES:
            raise ValidationError.single(
                "payment_status", f"A new payment cannot start as {payment_status.value}", "INVALID_PAYMENT_STATUS"
            )
        amount = Decimal(str(amount))

        if reservation_id:
            reservation = await _active_reservation(self.store, reservation_id)
            existing = await _active_payments(self.store, reservation_id)
            if len(existing) >= self.settings.max_payments_per_reservation:
                raise ValidationError.single(
                    "reservation_id",
                    f"Reservation cannot have more than {self.settings.max_payments_per_reservation} payments",
                    "TOO_MANY_PAYMENTS"
                )
            if payment_type != PaymentType.REFUND:
                warnings.extend(payment_warnings_for_reservation(
                    amount, payment_type, reservation.total_amount, net_paid(existing)
                ))

        receipt_number = await self.numbering.generate(RECEIPT_SCOPE, now)
        payment = Payment(
            reservation_id=reservation_id,
            amount=-amount if payment_type == PaymentType.REFUND else amount,
            payment_type=payment_type,
            payment_method=payment_method,
            receipt_number=receipt_number,
            payment_status=payment_status,
            transaction_id=transaction_id,
            notes=notes,
            payment_date=payment_date or now,
            created_at=now,
            updated_at=now,
            created_by=actor_id,
            updated_by=actor_id
        )
        await self.store.set(Payment.collection, payment.id, payment.to_document())
        logger.info("Payment %s recorded: %s %s via %s for reservation %s by %s",
                    receipt_number, format_amount(payment.amount), payment_type.value,
                    payment_method.value, reservation_id, actor_id)

        await self._audit(payment.id, AuditAction.CREATED, actor_id, {
            "receipt_number": receipt_number,
            "amount": str(payment.amount),
            "payment_type": payment_type.value,
            "payment_method": payment_method.value,
            "payment_status": payment_status.value,
        })
        await self._recompute(reservation_id, actor_id)

        return PaymentResult(payment_id=payment.id, receipt_number=receipt_number, warnings=warnings)

    async def _refundable_payment(self, payment_id: str) -> Payment:
        payment = await self.get_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        if payment.is_refund or payment.payment_type == PaymentType.REFUND:
            raise ValidationError.single("original_payment_id", "A refund cannot itself be refunded",
                                         "REFUND_OF_REFUND")
        if payment.payment_status == PaymentRecordStatus.REFUNDED:
            raise ValidationError.single("original_payment_id", f"Payment {payment_id} is already fully refunded",
                                         "ALREADY_REFUNDED")
        if payment.payment_status != PaymentRecordStatus.COMPLETED:
            raise ValidationError.single("original_payment_id", "Only completed payments can be refunded",
                                         "PAYMENT_NOT_REFUNDABLE")
        return payment

    async def _refunds_of(self, original: Payment) -> List[Payment]:
        documents = await self.store.query(Payment.collection, refund_of=original.id)
        return only_active(Payment.from_document(data) for data in documents)

    async def record_refund(
        self,
        original_payment_id: str,
        refund_amount,
        actor_id: str,
        notes: Optional[str] = None,
        payment_method: Optional[PaymentMethod] = None
    ) -> str:
        """
        Refund part or all of a completed payment; returns the refund entry's id.

        The original flips to refunded once its refunds cover the full amount.
        """
        original = await self._refundable_payment(original_payment_id)
        if original.reservation_id:
            await _active_reservation(self.store, original.reservation_id)
        prior = _prior_refunds(original, await self._refunds_of(original))
        refund_amount = validate_refund_amount(refund_amount, original.amount, prior, self.limits)

        if payment_method is None:
            payment_method = original.payment_method
            if payment_method not in REFUND_METHODS:
                payment_method = PaymentMethod.BANK_TRANSFER
        elif PaymentMethod(payment_method) not in REFUND_METHODS:
            raise ValidationError.single(
                "payment_method", "Refunds can only be processed via cash, bank transfer, or other methods",
                "INVALID_REFUND_METHOD"
            )
        payment_method = PaymentMethod(payment_method)
        notes_error = check_notes(notes)
        if notes_error:
            raise ValidationError([notes_error])

        now = self.clock.now()
        receipt_number = await self.numbering.generate(RECEIPT_SCOPE, now)
        refund = Payment(
            reservation_id=original.reservation_id,
            amount=-refund_amount,
            payment_type=PaymentType.REFUND,
            payment_method=payment_method,
            receipt_number=receipt_number,
            payment_status=PaymentRecordStatus.COMPLETED,
            notes=notes,
            refund_of=original.id,
            payment_date=now,
            created_at=now,
            updated_at=now,
            created_by=actor_id,
            updated_by=actor_id
        )

        async with self.store.transaction() as txn:
            # re-check under the lock; another refund may have landed meanwhile
            data = await txn.get(Payment.collection, original.id)
            current = Payment.from_document(data) if data else None
            if current is None or not current.is_active or current.payment_status != PaymentRecordStatus.COMPLETED:
                raise ValidationError.single("original_payment_id", "Only completed payments can be refunded",
                                             "PAYMENT_NOT_REFUNDABLE")
            siblings = only_active(
                Payment.from_document(doc) for doc in await txn.query(Payment.collection, refund_of=original.id)
            )
            prior = _prior_refunds(current, siblings)
            validate_refund_amount(refund_amount, current.amount, prior, self.limits)

            txn.set(Payment.collection, refund.id, refund.to_document())
            fully_refunded = prior + refund_amount >= current.amount
            if fully_refunded:
                txn.update(Payment.collection, current.id, {
                    "payment_status": PaymentRecordStatus.REFUNDED,
                    "updated_at": now,
                    "updated_by": actor_id,
                })

        logger.info("Refund %s of %s recorded against payment %s by %s%s",
                    receipt_number, format_amount(refund_amount), original.receipt_number, actor_id,
                    " (fully refunded)" if fully_refunded else "")
        await self._audit(original.id, AuditAction.REFUNDED, actor_id, {
            "refund_payment_id": refund.id,
            "refund_receipt_number": receipt_number,
            "refund_amount": str(refund_amount),
            "fully_refunded": fully_refunded,
        })
        await self._recompute(original.reservation_id, actor_id)
        return refund.id

    async def compute_paid_total(self, reservation_id: str) -> Decimal:
        """Net settled amount for the reservation; refunds subtract"""
        return net_paid(await _active_payments(self.store, reservation_id))

    async def compute_payment_status(self, reservation_id: str, actor_id: str = "SYSTEM") -> PaymentStatus:
        """Re-derive and persist the reservation's payment status; no write when unchanged"""
        reservation = await self.deriver.recompute_now(self.store, reservation_id, actor_id)
        return reservation.payment_status

    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        """Get payment by ID"""
        data = await self.store.get(Payment.collection, payment_id)
        if data is None:
            return None
        payment = Payment.from_document(data)
        return payment if payment.is_active else None

    async def get_payment_by_receipt_number(self, receipt_number: str) -> Optional[Payment]:
        documents = await self.store.query(Payment.collection, receipt_number=receipt_number)
        payments = only_active(Payment.from_document(data) for data in documents)
        return payments[0] if payments else None

    async def get_payments_for_reservation(self, reservation_id: str) -> List[Payment]:
        return await _active_payments(self.store, reservation_id)

    async def get_audit_log(self, payment_id: str) -> List[PaymentAuditEntry]:
        documents = await self.store.query(PaymentAuditEntry.collection, payment_id=payment_id)
        entries = [PaymentAuditEntry.from_document(data) for data in documents]
        return sorted(entries, key=lambda entry: entry.performed_at)

    async def soft_delete_payment(self, payment_id: str, actor_id: str) -> None:
        payment = await self.get_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        payment.soft_delete(actor_id, self.clock.now())
        await self.store.set(Payment.collection, payment.id, payment.to_document())
        logger.info("Payment %s soft-deleted by %s", payment.receipt_number, actor_id)
        await self._audit(payment.id, AuditAction.DELETED, actor_id, {"receipt_number": payment.receipt_number})
        await self._recompute(payment.reservation_id, actor_id)

    async def update_payment_status(self, payment_id: str, payment_status: PaymentRecordStatus,
                                    actor_id: str, notes: Optional[str] = None) -> Payment:
        """Move a ledger entry along its status graph (e.g. a cheque clearing or bouncing)"""
        notes_error = check_notes(notes)
        if notes_error:
            raise ValidationError([notes_error])
        now = self.clock.now()
        async with self.store.transaction() as txn:
            data = await txn.get(Payment.collection, payment_id)
            payment = Payment.from_document(data) if data else None
            if payment is None or not payment.is_active:
                raise NotFoundError("Payment", payment_id)
            previous = payment.payment_status
            payment.payment_status = payment_status_transition(previous, payment_status)
            if payment.payment_status == PaymentRecordStatus.CANCELLED:
                refunds = only_active(
                    Payment.from_document(doc) for doc in await txn.query(Payment.collection, refund_of=payment.id)
                )
                if refunds:
                    raise ValidationError.single(
                        "payment_status",
                        f"Payment {payment.receipt_number} has {len(refunds)} refund(s) against it; "
                        "delete the refunds before cancelling",
                        "PAYMENT_HAS_REFUNDS"
                    )
            if notes is not None:
                payment.notes = notes
            payment.touch(actor_id, now)
            txn.set(Payment.collection, payment.id, payment.to_document())

        logger.info("Payment %s status %s -> %s by %s",
                    payment.receipt_number, previous.value, payment.payment_status.value, actor_id)
        action = AuditAction.CANCELLED if payment.payment_status == PaymentRecordStatus.CANCELLED else AuditAction.UPDATED
        await self._audit(payment.id, action, actor_id, {
            "previous_status": previous.value,
            "payment_status": payment.payment_status.value,
        })
        await self._recompute(payment.reservation_id, actor_id)
        return payment

    async def restore_payment(self, payment_id: str, actor_id: str) -> Payment:
        """Undo a soft delete"""
        data = await self.store.get(Payment.collection, payment_id)
        if data is None:
            raise NotFoundError("Payment", payment_id)
        payment = Payment.from_document(data)
        if payment.is_active:
            raise ValidationError.single("payment_id", f"Payment {payment_id} is not deleted", "PAYMENT_NOT_DELETED")
        payment.lifecycle = ActiveLifecycle()
        payment.touch(actor_id, self.clock.now())
        await self.store.set(Payment.collection, payment.id, payment.to_document())
        logger.info("Payment %s restored by %s", payment.receipt_number, actor_id)
        await self._audit(payment.id, AuditAction.UPDATED, actor_id, {"restored": True})
        await self._recompute(payment.reservation_id, actor_id)
        return payment

    async def hard_delete_payment(self, payment_id: str) -> bool:
        """Administrative: remove the entry without an audit trail"""
        data = await self.store.get(Payment.collection, payment_id)
        if data is None:
            return False
        payment = Payment.from_document(data)
        await self.store.delete(Payment.collection, payment_id)
        logger.warning("Payment %s (%s) hard-deleted; no audit entry written", payment.receipt_number, payment_id)
        await self._recompute(payment.reservation_id, "SYSTEM")
        return True

    async def get_payment_summary(self, reservation_id: str) -> PaymentSummary:
        """Totals of settled payments by type and method, entry counts by status"""
        reservation = await _active_reservation(self.store, reservation_id)
        payments = await _active_payments(self.store, reservation_id)

        by_type: Dict[str, Decimal] = defaultdict(Decimal)
        by_method: Dict[str, Decimal] = defaultdict(Decimal)
        by_status: Dict[str, int] = defaultdict(int)
        for payment in payments:
            by_status[payment.payment_status.value] += 1
            if payment.is_settled:
                by_type[payment.payment_type.value] += payment.amount
                by_method[payment.payment_method.value] += payment.amount

        total = net_paid(payments)
        last = payments[-1] if payments else None
        return PaymentSummary(
            reservation_id=reservation_id,
            total_amount=total,
            total_payments=len(payments),
            payments_by_type=dict(by_type),
            payments_by_method=dict(by_method),
            payments_by_status=dict(by_status),
            last_payment_date=last.payment_date if last else None,
            last_payment_amount=last.amount if last else None,
            outstanding_amount=max(reservation.total_amount - total, Decimal("0"))
        )


class ReconciliationEngine:
    """Read-only auditor comparing a reservation's total with its ledger"""

    def __init__(self, store: DocumentStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    async def reconcile(self, reservation_id: str) -> ReconciliationReport:
        reservation = await _active_reservation(self.store, reservation_id)
        payments = await _active_payments(self.store, reservation_id)

        discrepancies: List[str] = []
        recommendations: List[str] = []
        tolerance = self.settings.reconciliation_tolerance

        actual_paid = net_paid(payments)
        difference = reservation.total_amount - actual_paid
        if difference > tolerance:
            discrepancies.append(f"Underpayment of {format_amount(difference)}")
            recommendations.append("Collect remaining payment amount")
        elif difference < -tolerance:
            discrepancies.append(f"Overpayment of {format_amount(-difference)}")
            recommendations.append("Process refund for overpaid amount")

        failed = sum(1 for p in payments if p.payment_status == PaymentRecordStatus.FAILED)
        if failed:
            discrepancies.append(f"{failed} failed payment(s)")
            recommendations.append("Review and retry failed payments")

        pending = sum(1 for p in payments if p.payment_status == PaymentRecordStatus.PENDING)
        if pending:
            discrepancies.append(f"{pending} pending payment(s)")
            recommendations.append("Follow up on pending payments")

        settled = [p for p in payments if p.is_settled]
        advances = [p.amount for p in settled if p.payment_type == PaymentType.BOOKING_ADVANCE]
        fulls = [p.amount for p in settled if p.payment_type == PaymentType.FULL_PAYMENT]
        if advances and fulls:
            combined = sum(advances, Decimal("0")) + sum(fulls, Decimal("0"))
            if combined > reservation.total_amount + self.settings.double_payment_tolerance:
                discrepancies.append("Both advance and full payment recorded - potential double payment")
                recommendations.append("Review payment sequence for accuracy")

        report = ReconciliationReport(
            reservation_id=reservation_id,
            is_reconciled=not discrepancies,
            discrepancies=discrepancies,
            summary=ReconciliationSummary(
                expected_total=reservation.total_amount,
                actual_paid=actual_paid,
                difference=difference,
                payment_count=len(payments)
            ),
            recommendations=recommendations
        )
        if not report.is_reconciled:
            logger.info("Reservation %s not reconciled: %s", reservation_id, "; ".join(discrepancies))
        return report
