"""Domain Exceptions"""
from typing import List, Optional

from pydantic import BaseModel


class RuleViolation(BaseModel):
    """A single broken validation rule"""
    field: str
    message: str
    code: str

    class Config:
        frozen = True


class ValidationError(ValueError):
    """Malformed or out-of-range input, raised before anything is written"""

    def __init__(self, errors: List[RuleViolation]):
        self.errors = list(errors)
        super().__init__("; ".join(error.message for error in self.errors))

    @classmethod
    def single(cls, field: str, message: str, code: str) -> "ValidationError":
        return cls([RuleViolation(field=field, message=message, code=code)])

    @property
    def codes(self) -> List[str]:
        return [error.code for error in self.errors]


class InvalidTransitionError(ValueError):
    """Illegal status change"""

    def __init__(self, current, requested, entity: str = "room"):
        self.current = current
        self.requested = requested
        self.entity = entity
        super().__init__(
            f"Cannot change {entity} status from {_value(current)} to {_value(requested)}"
        )


class NotFoundError(LookupError):
    """Referenced entity is absent (or soft-deleted)"""

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        detail = f"{entity} not found"
        if entity_id:
            detail = f"{entity} {entity_id} not found"
        super().__init__(detail)


class ConsistencyError(Exception):
    """Reconciliation found discrepancies; advisory only"""

    def __init__(self, reservation_id: str, discrepancies: List[str]):
        self.reservation_id = reservation_id
        self.discrepancies = list(discrepancies)
        super().__init__(
            f"Reservation {reservation_id} is not reconciled: " + ", ".join(self.discrepancies)
        )


class TransientStorageError(Exception):
    """Contention or backend unavailability; safe to retry"""


def _value(status) -> str:
    return getattr(status, "value", str(status))
