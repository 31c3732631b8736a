"""Allowed deal status transitions.

Both the status-update workflow and the read endpoints consult this table.
Anything not listed is rejected, including unknown source states.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from app.schemas.deals import DealStatus


def _edges(*targets: DealStatus) -> frozenset[str]:
    return frozenset(target.value for target in targets)


ALLOWED_TRANSITIONS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        DealStatus.DRAFT.value: _edges(DealStatus.ACTIVE, DealStatus.TERMINATED),
        DealStatus.ACTIVE.value: _edges(
            DealStatus.PAUSED, DealStatus.AGREED, DealStatus.TERMINATED
        ),
        DealStatus.PAUSED.value: _edges(DealStatus.ACTIVE, DealStatus.TERMINATED),
        DealStatus.AGREED.value: _edges(DealStatus.CLOSED, DealStatus.TERMINATED),
        DealStatus.CLOSED.value: frozenset(),
        DealStatus.TERMINATED.value: frozenset(),
    }
)

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def _value(status: DealStatus | str | None) -> str | None:
    if isinstance(status, DealStatus):
        return status.value
    return status


def allowed_transitions(current: DealStatus | str | None) -> frozenset[str]:
    return ALLOWED_TRANSITIONS.get(_value(current), frozenset())


def is_valid_transition(current: DealStatus | str | None, requested: DealStatus | str | None) -> bool:
    return _value(requested) in allowed_transitions(current)


def is_terminal(status: DealStatus | str | None) -> bool:
    return _value(status) in TERMINAL_STATUSES


def sorted_transitions(current: DealStatus | str | None) -> list[str]:
    """Allowed next states in enumeration order, for stable API output."""
    targets = allowed_transitions(current)
    return [status.value for status in DealStatus if status.value in targets]


def transition_error_message(current: DealStatus | str | None, requested: DealStatus | str | None) -> str:
    return f"Cannot transition from '{_value(current)}' to '{_value(requested)}'"
