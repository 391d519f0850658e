"""
Merit list generation.

Orchestrates one generation run for a (program, batch, semester):

1. Validate inputs and require active criteria (nothing is written on failure)
2. Snapshot the candidate pool in a single query
3. Score, rank and allocate (pure, see merit_score / ranking / allocation)
4. Persist a new list version
5. Write each outcome back through the lifecycle, guarded on the snapshot status

Per-applicant problems become warnings on the result instead of aborting the run.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import ValidationError as PydanticValidationError

from ..config import MERIT_WAITLIST_FACTOR, SYSTEM_ACTOR_ID
from ..models.merit_list import MeritList, MeritListEntry
from ..repositories.admission_repository import AdmissionRepository
from ..schemas.admission import (
    ApplicationStatus,
    MeritEntryOut,
    MeritListOut,
    MeritListResult,
    MeritWeights,
    RankCandidate,
    SkippedApplication,
    SubScores,
)
from ..utils.error_handlers import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    get_error_message,
)
from ..utils.validation import validate_integer_field, validate_number_field, validate_string_field
from . import lifecycle
from .allocation import allocate
from .key_locks import key_lock
from .merit_score import compute_score, validate_weights
from .ranking import rank

logger = logging.getLogger(__name__)

# Statuses that enter a first generation.
POOL_STATUSES = (ApplicationStatus.ELIGIBLE, ApplicationStatus.INTERVIEW_SCHEDULED)

# Applicants past selection keep their seat; a new version only fills what is left.
SEAT_HOLDING_STATUSES = (ApplicationStatus.FEE_SUBMITTED, ApplicationStatus.ENROLLED)


@dataclass(frozen=True)
class _Snapshot:
    application_id: int
    application_number: str
    application_date: datetime
    applicant_name: str | None
    status: str
    sub_scores: dict


def _snapshot(app) -> _Snapshot:
    # Copy the ORM row: commits during write-back expire it.
    return _Snapshot(
        application_id=int(app.id),
        application_number=str(app.application_number),
        application_date=app.application_date,
        applicant_name=app.applicant_name,
        status=str(app.status),
        sub_scores={
            "academic": app.academic_score,
            "entry_test": app.entry_test_score,
            "interview": app.interview_score,
            "experience": app.experience_score,
        },
    )


def merit_list_out(ml: MeritList) -> MeritListOut:
    try:
        weights = MeritWeights.model_validate(json.loads(ml.weights_json or "{}"))
    except (ValueError, PydanticValidationError):
        weights = MeritWeights()
    return MeritListOut(
        id=ml.id,
        program_id=ml.program_id,
        batch=ml.batch,
        semester=ml.semester,
        version=ml.version,
        total_seats=ml.total_seats,
        held_seats=ml.held_seats or 0,
        waitlist_factor=ml.waitlist_factor,
        weights=weights,
        generated_by=ml.generated_by,
        published_at=ml.published_at,
        entries=[MeritEntryOut.model_validate(e) for e in ml.entries],
    )


class MeritListService:
    def __init__(self, repo: AdmissionRepository):
        self.repo = repo

    def _pool(self, program_id: str, batch: str, semester: str) -> tuple[list[_Snapshot], int, int]:
        """
        Returns (pool, latest version, seats already held).

        The pool is every application in eligible / interview_scheduled, plus those
        still holding the outcome the latest list gave them; the new version
        supersedes those outcomes.
        """
        latest = self.repo.find_latest_merit_list(program_id, batch, semester)
        prior_outcome: dict[int, str] = {}
        if latest is not None:
            prior_outcome = {int(e.application_id): str(e.outcome) for e in latest.entries}

        rows = self.repo.find_applications_by_program_batch_semester(program_id, batch, semester)
        pool_statuses = {s.value for s in POOL_STATUSES}
        pool = []
        for app in rows:
            status = str(app.status)
            if status in pool_statuses or prior_outcome.get(int(app.id)) == status:
                pool.append(_snapshot(app))
        held_statuses = {s.value for s in SEAT_HOLDING_STATUSES}
        held = sum(1 for app in rows if str(app.status) in held_statuses)
        return pool, (int(latest.version) if latest is not None else 0), held

    def generate(
        self,
        program_id: str,
        batch: str,
        semester: str,
        total_seats: int,
        weights: MeritWeights,
        *,
        waitlist_factor: float | None = None,
        actor_id: str | None = None,
    ) -> MeritListResult:
        """
        Generate a new merit list version and apply its outcomes.

        Raises ValidationError / NotFoundError before any write when the run as a
        whole cannot proceed. Calling it again with the same inputs and an
        unchanged pool reproduces the same ranks and outcomes under version + 1.
        """
        program_id = validate_string_field(program_id, "Program", max_length=64)
        batch = validate_string_field(batch, "Batch", max_length=32)
        semester = validate_string_field(semester, "Semester", max_length=32)
        seats = validate_integer_field(total_seats, "Total seats", min_value=1)
        factor = validate_number_field(
            MERIT_WAITLIST_FACTOR if waitlist_factor is None else waitlist_factor,
            "Waitlist factor",
            min_value=0.0,
        )
        clean_weights = validate_weights(weights)
        actor = actor_id or SYSTEM_ACTOR_ID

        if self.repo.find_active_criteria(program_id) is None:
            raise NotFoundError(get_error_message("criteria_not_found"), details={"program_id": program_id})

        with key_lock(program_id=program_id, batch=batch, semester=semester):
            pool, latest_version, held = self._pool(program_id, batch, semester)
            open_seats = seats - held
            if open_seats <= 0:
                raise ValidationError(
                    "No seats remain: every seat is held by an applicant past selection",
                    details={"total_seats": seats, "held_seats": held},
                )
            logger.info(
                "Generating merit list program=%s batch=%s semester=%s seats=%s held=%s pool=%s",
                program_id, batch, semester, seats, held, len(pool),
            )

            warnings: list[SkippedApplication] = []
            candidates: list[RankCandidate] = []
            by_id: dict[int, _Snapshot] = {}
            for snap in pool:
                try:
                    score = compute_score(SubScores(**snap.sub_scores), weights)
                except (ValidationError, PydanticValidationError) as e:
                    reason = e.message if isinstance(e, ValidationError) else "Invalid sub-scores"
                    logger.warning("Skipping application %s: %s", snap.application_number, reason)
                    warnings.append(
                        SkippedApplication(
                            application_id=snap.application_id,
                            application_number=snap.application_number,
                            reason=reason,
                        )
                    )
                    continue
                by_id[snap.application_id] = snap
                candidates.append(
                    RankCandidate(
                        application_id=snap.application_id,
                        application_number=snap.application_number,
                        application_date=snap.application_date,
                        score=score,
                        applicant_name=snap.applicant_name,
                    )
                )

            allocations = allocate(rank(candidates), open_seats, factor)

            version = latest_version + 1
            ml = MeritList(
                program_id=program_id,
                batch=batch,
                semester=semester,
                version=version,
                total_seats=seats,
                held_seats=held,
                waitlist_factor=factor,
                weights_json=json.dumps(clean_weights),
                generated_by=actor,
                published_at=datetime.now(timezone.utc),
                entries=[
                    MeritListEntry(
                        application_id=a.application_id,
                        application_number=a.application_number,
                        applicant_name=a.applicant_name,
                        merit_score=a.score,
                        rank=a.rank,
                        outcome=a.outcome.value,
                    )
                    for a in allocations
                ],
            )
            ml = self.repo.save_merit_list(ml)
            result_list = merit_list_out(ml)

            for a in allocations:
                snap = by_id[a.application_id]
                event = lifecycle.allocation_event(a.outcome)
                try:
                    target = lifecycle.next_status(snap.status, event)
                    self.repo.update_application_status(
                        a.application_id,
                        target.value,
                        {"merit_rank": a.rank},
                        expected_status=snap.status,
                        event=event.value,
                        actor_id=actor,
                        reason=f"Merit list v{version}",
                    )
                except (ConflictError, InvalidTransitionError, NotFoundError) as e:
                    logger.warning(
                        "Write-back skipped for application %s: %s", snap.application_number, e.message
                    )
                    warnings.append(
                        SkippedApplication(
                            application_id=snap.application_id,
                            application_number=snap.application_number,
                            reason=e.message,
                        )
                    )

        logger.info(
            "Merit list v%s saved for %s/%s/%s: %s entries, %s warnings",
            version, program_id, batch, semester, len(allocations), len(warnings),
        )
        return MeritListResult(merit_list=result_list, warnings=warnings)
