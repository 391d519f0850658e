"""
Application lifecycle state machine.

submitted -> under_review -> {eligible | not_eligible} -> interview_scheduled
          -> {selected | waitlisted | rejected} -> fee_submitted -> enrolled

Every move is an event looked up in TRANSITIONS; there is no other state.
not_eligible and rejected are terminal except for an explicit reopen_review
with a reason.
"""

from enum import Enum

from ..schemas.admission import ApplicationStatus, MeritOutcome
from ..utils.error_handlers import InvalidTransitionError, ValidationError

S = ApplicationStatus


class LifecycleEvent(str, Enum):
    REQUEST_REVIEW = "request_review"
    ELIGIBILITY_PASSED = "eligibility_passed"
    ELIGIBILITY_FAILED = "eligibility_failed"
    SCHEDULE_INTERVIEW = "schedule_interview"
    ALLOCATE_SELECTED = "allocate_selected"
    ALLOCATE_WAITLISTED = "allocate_waitlisted"
    ALLOCATE_REJECTED = "allocate_rejected"
    REJECT = "reject"
    CONFIRM_FEE = "confirm_fee"
    CONFIRM_ENROLLMENT = "confirm_enrollment"
    REOPEN_REVIEW = "reopen_review"


E = LifecycleEvent

# Statuses a merit-list generation may assign over (superseding the previous version).
_ALLOCATION_SOURCES = frozenset(
    {S.ELIGIBLE, S.INTERVIEW_SCHEDULED, S.SELECTED, S.WAITLISTED, S.REJECTED}
)

# event -> (allowed source statuses, target status)
TRANSITIONS: dict[LifecycleEvent, tuple[frozenset, ApplicationStatus]] = {
    E.REQUEST_REVIEW: (frozenset({S.SUBMITTED}), S.UNDER_REVIEW),
    E.ELIGIBILITY_PASSED: (frozenset({S.UNDER_REVIEW}), S.ELIGIBLE),
    E.ELIGIBILITY_FAILED: (frozenset({S.UNDER_REVIEW}), S.NOT_ELIGIBLE),
    E.SCHEDULE_INTERVIEW: (frozenset({S.ELIGIBLE}), S.INTERVIEW_SCHEDULED),
    E.ALLOCATE_SELECTED: (_ALLOCATION_SOURCES, S.SELECTED),
    E.ALLOCATE_WAITLISTED: (_ALLOCATION_SOURCES, S.WAITLISTED),
    E.ALLOCATE_REJECTED: (_ALLOCATION_SOURCES, S.REJECTED),
    E.REJECT: (frozenset({S.ELIGIBLE, S.INTERVIEW_SCHEDULED, S.WAITLISTED}), S.REJECTED),
    E.CONFIRM_FEE: (frozenset({S.SELECTED}), S.FEE_SUBMITTED),
    E.CONFIRM_ENROLLMENT: (frozenset({S.FEE_SUBMITTED}), S.ENROLLED),
    E.REOPEN_REVIEW: (frozenset({S.NOT_ELIGIBLE, S.REJECTED}), S.UNDER_REVIEW),
}

# Events a reviewer may trigger directly. Allocation events belong to merit-list generation.
MANUAL_EVENTS = (
    E.REQUEST_REVIEW,
    E.ELIGIBILITY_PASSED,
    E.ELIGIBILITY_FAILED,
    E.SCHEDULE_INTERVIEW,
    E.REJECT,
    E.CONFIRM_FEE,
    E.CONFIRM_ENROLLMENT,
    E.REOPEN_REVIEW,
)

# Events that must carry a reason for the audit log.
REASON_REQUIRED = frozenset({E.REOPEN_REVIEW})

ALLOCATION_EVENTS = {
    MeritOutcome.SELECTED: E.ALLOCATE_SELECTED,
    MeritOutcome.WAITLISTED: E.ALLOCATE_WAITLISTED,
    MeritOutcome.REJECTED: E.ALLOCATE_REJECTED,
}


def parse_status(value) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown application status: {value}")


def allowed_events(current) -> list[LifecycleEvent]:
    cur = parse_status(current)
    return [ev for ev, (sources, _) in TRANSITIONS.items() if cur in sources]


def next_status(current, event: LifecycleEvent) -> ApplicationStatus:
    """(current status, event) -> next status, or InvalidTransitionError."""
    cur = parse_status(current)
    sources, target = TRANSITIONS[LifecycleEvent(event)]
    if cur not in sources:
        raise InvalidTransitionError(
            cur.value,
            target.value,
            {TRANSITIONS[ev][1].value for ev in allowed_events(cur)},
        )
    return target


def manual_targets(current) -> set[str]:
    cur = parse_status(current)
    return {TRANSITIONS[ev][1].value for ev in MANUAL_EVENTS if cur in TRANSITIONS[ev][0]}


def resolve_manual_event(current, target) -> LifecycleEvent:
    """
    Find the reviewer event that moves `current` to `target`.

    Raises InvalidTransitionError listing the reviewer-reachable targets when
    there is none (including submitted -> enrolled and any allocation outcome).
    """
    cur = parse_status(current)
    tgt = parse_status(target)
    for ev in MANUAL_EVENTS:
        sources, ev_target = TRANSITIONS[ev]
        if ev_target == tgt and cur in sources:
            return ev
    raise InvalidTransitionError(cur.value, tgt.value, manual_targets(cur))


def allocation_event(outcome) -> LifecycleEvent:
    return ALLOCATION_EVENTS[MeritOutcome(outcome)]
