"""
Approval state machine for KPI definitions and actuals.

Statuses are only changed through ``transition()``; the table below is the
complete list of legal moves.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Tuple

from django.db import models

from apps.core.exceptions import BusinessRuleException


class WorkflowStatus(models.TextChoices):
    DRAFT = 'DRAFT', 'Draft'
    WAITING_LINE_MGR = 'WAITING_LINE_MGR', 'Waiting for Line Manager'
    WAITING_MANAGER = 'WAITING_MANAGER', 'Waiting for Manager'
    APPROVED = 'APPROVED', 'Approved'
    REJECTED = 'REJECTED', 'Rejected'
    CHANGE_REQUESTED = 'CHANGE_REQUESTED', 'Change Requested'
    LOCKED_GOALS = 'LOCKED_GOALS', 'Goals Locked'


class Event(models.TextChoices):
    SUBMIT = 'SUBMIT', 'Submit'
    ESCALATE = 'ESCALATE', 'Escalate to level 2'
    FINALIZE = 'FINALIZE', 'Final approval'
    REJECT = 'REJECT', 'Reject'
    RETURN_TO_STAFF = 'RETURN_TO_STAFF', 'Return to staff'
    REQUEST_CHANGE = 'REQUEST_CHANGE', 'Request change'
    LOCK_GOALS = 'LOCK_GOALS', 'Lock goals'
    RESOLVE_CHANGE = 'RESOLVE_CHANGE', 'Resolve change request on'


KPI = 'KPI'
ACTUAL = 'ACTUAL'

S = WorkflowStatus
PENDING_STATES: FrozenSet[str] = frozenset({S.WAITING_LINE_MGR.value, S.WAITING_MANAGER.value})
EDITABLE_STATES: FrozenSet[str] = frozenset({S.DRAFT.value, S.REJECTED.value, S.CHANGE_REQUESTED.value})

_SHARED: Dict[Tuple[str, str], str] = {
    (S.DRAFT, Event.SUBMIT): S.WAITING_LINE_MGR,
    (S.REJECTED, Event.SUBMIT): S.WAITING_LINE_MGR,
    (S.WAITING_LINE_MGR, Event.ESCALATE): S.WAITING_MANAGER,
    (S.WAITING_LINE_MGR, Event.FINALIZE): S.APPROVED,
    (S.WAITING_MANAGER, Event.FINALIZE): S.APPROVED,
    (S.WAITING_LINE_MGR, Event.REJECT): S.REJECTED,
    (S.WAITING_MANAGER, Event.REJECT): S.REJECTED,
    (S.WAITING_LINE_MGR, Event.RETURN_TO_STAFF): S.DRAFT,
    (S.WAITING_MANAGER, Event.RETURN_TO_STAFF): S.DRAFT,
}


def _plain(table):
    return {(str(state.value), str(event.value)): str(target.value) for (state, event), target in table.items()}


TRANSITIONS: Dict[str, Dict[Tuple[str, str], str]] = {
    KPI: _plain({
        **_SHARED,
        (S.CHANGE_REQUESTED, Event.SUBMIT): S.WAITING_LINE_MGR,
        (S.WAITING_LINE_MGR, Event.REQUEST_CHANGE): S.CHANGE_REQUESTED,
        (S.WAITING_MANAGER, Event.REQUEST_CHANGE): S.CHANGE_REQUESTED,
        (S.APPROVED, Event.REQUEST_CHANGE): S.CHANGE_REQUESTED,
        (S.LOCKED_GOALS, Event.REQUEST_CHANGE): S.CHANGE_REQUESTED,
        (S.APPROVED, Event.LOCK_GOALS): S.LOCKED_GOALS,
        (S.CHANGE_REQUESTED, Event.RESOLVE_CHANGE): S.APPROVED,
    }),
    ACTUAL: _plain(_SHARED),
}

KPI_STATUS_CHOICES = [(s.value, s.label) for s in WorkflowStatus]
ACTUAL_STATUS_CHOICES = [
    (s.value, s.label)
    for s in (S.DRAFT, S.WAITING_LINE_MGR, S.WAITING_MANAGER, S.APPROVED, S.REJECTED)
]


class InvalidTransition(BusinessRuleException):
    def __init__(self, entity_type: str, status: str, event: str):
        super().__init__(
            f"Cannot {Event(event).label.lower()} a {entity_type.lower()} in status {status}",
            details={'entity_type': entity_type, 'status': str(status), 'event': str(event)},
        )
        self.entity_type = entity_type
        self.status = status
        self.event = event


def can_transition(entity_type: str, status: str, event: str) -> bool:
    return (str(status), str(event)) in TRANSITIONS[entity_type]


def transition(entity_type: str, status: str, event: str) -> str:
    """Return the next status or raise ``InvalidTransition``."""
    try:
        return TRANSITIONS[entity_type][(str(status), str(event))]
    except KeyError:
        raise InvalidTransition(entity_type, status, event) from None


def level_status(level: int) -> str:
    """Waiting status for a pending approval at ``level``."""
    return S.WAITING_LINE_MGR.value if level <= 1 else S.WAITING_MANAGER.value
