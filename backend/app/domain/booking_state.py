"""
Lifecycle rules for an appointment and its payment.

Every status change on either record goes through ``transition`` so the
legal moves live in one table instead of being scattered across
conditional updates. ``DELETED`` stands for the appointment row being
removed by failure or timeout compensation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from app.core.exceptions import InvalidTransitionException
from app.models.appointment import AppointmentStatus
from app.models.payment import PaymentStatus

DELETED = "DELETED"

APPOINTMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    AppointmentStatus.PENDING_PAYMENT.value: frozenset(
        {AppointmentStatus.CONFIRMED.value, AppointmentStatus.CANCELLED.value, DELETED}
    ),
    AppointmentStatus.CONFIRMED.value: frozenset(
        {
            AppointmentStatus.CANCELLED.value,
            AppointmentStatus.COMPLETED.value,
            AppointmentStatus.NO_SHOW.value,
        }
    ),
    AppointmentStatus.CANCELLED.value: frozenset(),
    AppointmentStatus.COMPLETED.value: frozenset(),
    AppointmentStatus.NO_SHOW.value: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PaymentStatus.UNPAID.value: frozenset(
        {PaymentStatus.PAID.value, PaymentStatus.FAILED.value, DELETED}
    ),
    PaymentStatus.PAID.value: frozenset({PaymentStatus.REFUNDED.value}),
    PaymentStatus.FAILED.value: frozenset(),
    PaymentStatus.REFUNDED.value: frozenset(),
}

_TABLES = {"appointment": APPOINTMENT_TRANSITIONS, "payment": PAYMENT_TRANSITIONS}


def _value(status: object) -> str:
    return str(getattr(status, "value", status))


def can_transition(entity: str, current: object, target: object) -> bool:
    table = _TABLES[entity]
    return _value(target) in table.get(_value(current), frozenset())


def transition(entity: str, current: object, target: object) -> str:
    """Return the target status, or raise if the move is illegal."""
    if not can_transition(entity, current, target):
        raise InvalidTransitionException(entity, _value(current), _value(target))
    return _value(target)


def is_terminal_payment(status: object) -> bool:
    """UNPAID is the only state a callback may still move."""
    return _value(status) != PaymentStatus.UNPAID.value


@dataclass(frozen=True)
class BookingState:
    """Snapshot of one appointment/payment pair."""

    appointment: Optional[str]
    payment: Optional[str]

    @property
    def awaiting_payment(self) -> bool:
        return (
            self.appointment == AppointmentStatus.PENDING_PAYMENT.value
            and self.payment == PaymentStatus.UNPAID.value
        )

    def on_payment_succeeded(self) -> "BookingState":
        return BookingState(
            appointment=(
                transition("appointment", self.appointment, AppointmentStatus.CONFIRMED)
                if self.appointment is not None
                else None
            ),
            payment=transition("payment", self.payment, PaymentStatus.PAID),
        )

    def on_payment_failed(self) -> "BookingState":
        if self.appointment is not None:
            transition("appointment", self.appointment, DELETED)
        return BookingState(
            appointment=None,
            payment=transition("payment", self.payment, PaymentStatus.FAILED),
        )

    def on_reservation_expired(self) -> "BookingState":
        if self.appointment is not None:
            transition("appointment", self.appointment, DELETED)
        transition("payment", self.payment, DELETED)
        return BookingState(appointment=None, payment=None)

    def on_refunded(self) -> "BookingState":
        return BookingState(
            appointment=self.appointment,
            payment=transition("payment", self.payment, PaymentStatus.REFUNDED),
        )
