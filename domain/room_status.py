"""Room occupancy transition graph"""
from typing import Dict, FrozenSet

from domain.enums import RoomStatus
from domain.exceptions import InvalidTransitionError

_ALLOWED_TRANSITIONS: Dict[RoomStatus, FrozenSet[RoomStatus]] = {
    RoomStatus.PENDING: frozenset({RoomStatus.CHECKED_IN, RoomStatus.CANCELLED, RoomStatus.NO_SHOW}),
    RoomStatus.CHECKED_IN: frozenset({RoomStatus.CHECKED_OUT, RoomStatus.CANCELLED}),
    RoomStatus.CHECKED_OUT: frozenset(),
    RoomStatus.CANCELLED: frozenset(),
    RoomStatus.NO_SHOW: frozenset(),
}


def allowed_transitions(current: RoomStatus) -> FrozenSet[RoomStatus]:
    return _ALLOWED_TRANSITIONS[RoomStatus(current)]


def is_terminal(status: RoomStatus) -> bool:
    return not _ALLOWED_TRANSITIONS[RoomStatus(status)]


def transition(current: RoomStatus, requested: RoomStatus) -> RoomStatus:
    """Return the requested status if the graph allows it, else raise InvalidTransitionError"""
    current = RoomStatus(current)
    requested = RoomStatus(requested)
    if requested not in _ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current, requested)
    return requested
