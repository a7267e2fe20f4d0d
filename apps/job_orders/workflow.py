"""
IT job order lifecycle.

Every status change goes through :data:`TRANSITIONS`. A rule names the
statuses it may start from, the status it lands on, the timestamp column it
stamps and who may fire it. Services ask this module whether a transition is
legal and authorised; nothing else compares status strings.

    pending_approval -> queued -> assigned -> in_progress -> resolved -> closed
           |
           +-> rejected          any non-terminal -> on_hold -> (status it was held from)
                                 any non-terminal -> cancelled

``approved`` is never a resting status: approval moves the order straight
into the queue. It stays in the enum so older records still project.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, FrozenSet, List, Optional

from apps.auth.permissions import same_department
from apps.auth.schemas import UserSession
from apps.job_orders.models import JobOrderStatus
from core.exceptions import InvalidTransition, PermissionDenied


class Transition(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN = "assign"
    START = "start"
    RESOLVE = "resolve"
    CLOSE = "close"
    CANCEL = "cancel"
    HOLD = "hold"
    RESUME = "resume"


TERMINAL_STATUSES: FrozenSet[JobOrderStatus] = frozenset({
    JobOrderStatus.CLOSED,
    JobOrderStatus.REJECTED,
    JobOrderStatus.CANCELLED,
})

NON_TERMINAL_STATUSES: FrozenSet[JobOrderStatus] = frozenset(
    s for s in JobOrderStatus if s not in TERMINAL_STATUSES
)

# Statuses shown in the requester's floating tracker
ACTIVE_STATUSES: FrozenSet[JobOrderStatus] = frozenset({
    JobOrderStatus.PENDING_APPROVAL,
    JobOrderStatus.APPROVED,
    JobOrderStatus.QUEUED,
    JobOrderStatus.ASSIGNED,
    JobOrderStatus.IN_PROGRESS,
    JobOrderStatus.ON_HOLD,
})


def _department_approver(session: UserSession, job) -> bool:
    perms = session.permissions
    return perms.is_approver and same_department(perms.approvable_dept, job.department)


def _troubleshooter(session: UserSession, job) -> bool:
    return session.permissions.is_troubleshooter


def _troubleshooter_or_requester(session: UserSession, job) -> bool:
    return session.permissions.is_troubleshooter or session.user_id == job.requester_id


@dataclass(frozen=True)
class TransitionRule:
    legal_from: FrozenSet[JobOrderStatus]
    # None means the target depends on the order (resume)
    target: Optional[JobOrderStatus]
    actor_check: Callable[[UserSession, object], bool]
    actor_label: str
    timestamp_field: Optional[str] = None


TRANSITIONS = {
    Transition.APPROVE: TransitionRule(
        legal_from=frozenset({JobOrderStatus.PENDING_APPROVAL}),
        target=JobOrderStatus.QUEUED,
        actor_check=_department_approver,
        actor_label="the department approver",
        timestamp_field="approved_at",
    ),
    Transition.REJECT: TransitionRule(
        legal_from=frozenset({JobOrderStatus.PENDING_APPROVAL}),
        target=JobOrderStatus.REJECTED,
        actor_check=_department_approver,
        actor_label="the department approver",
    ),
    Transition.ASSIGN: TransitionRule(
        legal_from=frozenset({JobOrderStatus.QUEUED}),
        target=JobOrderStatus.ASSIGNED,
        actor_check=_troubleshooter,
        actor_label="IT staff",
        timestamp_field="assigned_at",
    ),
    Transition.START: TransitionRule(
        legal_from=frozenset({JobOrderStatus.ASSIGNED}),
        target=JobOrderStatus.IN_PROGRESS,
        actor_check=_troubleshooter,
        actor_label="IT staff",
        timestamp_field="started_at",
    ),
    Transition.RESOLVE: TransitionRule(
        legal_from=frozenset({JobOrderStatus.IN_PROGRESS}),
        target=JobOrderStatus.RESOLVED,
        actor_check=_troubleshooter,
        actor_label="IT staff",
        timestamp_field="resolved_at",
    ),
    Transition.CLOSE: TransitionRule(
        legal_from=frozenset({JobOrderStatus.RESOLVED}),
        target=JobOrderStatus.CLOSED,
        actor_check=_troubleshooter_or_requester,
        actor_label="IT staff or the requester",
        timestamp_field="closed_at",
    ),
    Transition.CANCEL: TransitionRule(
        legal_from=NON_TERMINAL_STATUSES,
        target=JobOrderStatus.CANCELLED,
        actor_check=_troubleshooter_or_requester,
        actor_label="IT staff or the requester",
    ),
    Transition.HOLD: TransitionRule(
        legal_from=NON_TERMINAL_STATUSES - {JobOrderStatus.ON_HOLD},
        target=JobOrderStatus.ON_HOLD,
        actor_check=_troubleshooter,
        actor_label="IT staff",
    ),
    Transition.RESUME: TransitionRule(
        legal_from=frozenset({JobOrderStatus.ON_HOLD}),
        target=None,
        actor_check=_troubleshooter,
        actor_label="IT staff",
    ),
}


def coerce_status(value) -> Optional[JobOrderStatus]:
    try:
        return JobOrderStatus(value)
    except ValueError:
        return None


def is_terminal(status) -> bool:
    return coerce_status(status) in TERMINAL_STATUSES


def can_transition(status, transition: Transition) -> bool:
    return coerce_status(status) in TRANSITIONS[transition].legal_from


def check_transition(status, transition: Transition) -> TransitionRule:
    """Return the rule for ``transition`` or raise if ``status`` is not a legal source."""
    rule = TRANSITIONS[transition]
    current = coerce_status(status)
    if current not in rule.legal_from:
        label = current.value if current else status
        raise InvalidTransition(f"Cannot {transition.value}. Current status: {label}")
    return rule


def authorize(transition: Transition, session: UserSession, job) -> None:
    rule = TRANSITIONS[transition]
    if not rule.actor_check(session, job):
        raise PermissionDenied(f"Only {rule.actor_label} can {transition.value} this job order")


def resume_target(job) -> JobOrderStatus:
    """Status an on-hold order returns to."""
    held_from = coerce_status(job.held_from_status)
    if held_from is not None and held_from not in TERMINAL_STATUSES and held_from != JobOrderStatus.ON_HOLD:
        return held_from
    return JobOrderStatus.ASSIGNED if job.tech_id else JobOrderStatus.QUEUED


def target_status(transition: Transition, job) -> JobOrderStatus:
    rule = TRANSITIONS[transition]
    return rule.target if rule.target is not None else resume_target(job)


def available_transitions(session: UserSession, job) -> List[Transition]:
    """Transitions ``session`` may fire on ``job`` right now, for UI gating."""
    return [
        transition
        for transition, rule in TRANSITIONS.items()
        if coerce_status(job.status) in rule.legal_from and rule.actor_check(session, job)
    ]
