"""Reservation lifecycle state machine"""

import enum
import uuid
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional, Tuple

from tablebook.engine.errors import InvalidTransition, ValidationError
from tablebook.engine.timeutil import add_minutes, minutes_to_time, time_to_minutes
from tablebook.models.reservation import Reservation, ReservationStatus as S


class Action(str, enum.Enum):
    APPROVE = "approve"
    DECLINE = "decline"
    COUNTER = "counter"
    CONFIRM = "confirm"
    ARRIVE = "arrive"
    SEAT = "seat"
    COMPLETE = "complete"
    NOSHOW = "noshow"
    CANCEL = "cancel"
    EXPIRE = "expire"


# action -> (allowed source states, target state)
TRANSITIONS: Dict[Action, Tuple[FrozenSet[S], S]] = {
    Action.APPROVE: (frozenset({S.PENDING, S.COUNTER_OFFERED}), S.APPROVED),
    Action.DECLINE: (frozenset({S.PENDING, S.COUNTER_OFFERED}), S.DECLINED),
    Action.COUNTER: (frozenset({S.PENDING}), S.COUNTER_OFFERED),
    Action.CONFIRM: (frozenset({S.APPROVED}), S.CONFIRMED),
    Action.ARRIVE: (frozenset({S.APPROVED, S.CONFIRMED}), S.ARRIVED),
    Action.SEAT: (frozenset({S.ARRIVED, S.APPROVED, S.CONFIRMED}), S.SEATED),
    Action.COMPLETE: (frozenset({S.SEATED}), S.COMPLETED),
    Action.NOSHOW: (frozenset({S.APPROVED, S.CONFIRMED, S.ARRIVED}), S.NO_SHOW),
    Action.CANCEL: (
        frozenset({S.PENDING, S.COUNTER_OFFERED, S.APPROVED, S.CONFIRMED, S.ARRIVED, S.SEATED}),
        S.CANCELLED,
    ),
    Action.EXPIRE: (frozenset({S.PENDING, S.COUNTER_OFFERED}), S.EXPIRED),
}

# Transitions that void a still-pending payment in the same transaction
RELEASES_PAYMENT = frozenset({Action.COMPLETE, Action.CANCEL, Action.DECLINE, Action.EXPIRE})


def target_status(action: Action, current: str) -> S:
    """Guard check; raises InvalidTransition before anything is mutated"""
    sources, target = TRANSITIONS[action]
    if S(current) not in sources:
        raise InvalidTransition(action.value, current)
    return target


def apply_transition(
    reservation: Reservation,
    action: Action,
    now: datetime,
    counter_offer_hours: int,
    new_time: Optional[str] = None,
    table_id: Optional[uuid.UUID] = None,
) -> S:
    """Apply the field effects of an already-guarded action"""
    target = target_status(action, reservation.status)

    if action == Action.COUNTER:
        if not new_time:
            raise ValidationError("A counter-offer needs a proposed time")
        new_time = minutes_to_time(time_to_minutes(new_time))
        if reservation.original_time is None:
            reservation.original_time = reservation.time
        reservation.time = new_time
        reservation.end_time = add_minutes(new_time, reservation.duration_min)
        reservation.counter_expires_at = now + timedelta(hours=counter_offer_hours)
    elif action == Action.APPROVE:
        reservation.approved_at = now
        reservation.counter_expires_at = None
    elif action == Action.CONFIRM:
        reservation.confirmed_at = now
    elif action == Action.ARRIVE:
        reservation.arrived_at = now
    elif action == Action.SEAT:
        reservation.seated_at = now
    elif action == Action.COMPLETE:
        reservation.completed_at = now
    elif action == Action.CANCEL:
        reservation.cancelled_at = now

    if table_id is not None and action in (Action.APPROVE, Action.SEAT):
        reservation.table_id = table_id

    reservation.status = target.value
    reservation.updated_at = now
    return target
