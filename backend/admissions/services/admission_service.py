import logging
import random
from datetime import date, datetime, timezone

from ..config import APPLICATION_NUMBER_PREFIX
from ..models.application import AdmissionApplication
from ..models.criteria import EligibilityCriteria
from ..models.merit_list import MeritList
from ..models.transition import StatusTransition
from ..repositories.admission_repository import AdmissionRepository, encode_subjects
from ..schemas.admission import (
    AcademicHistoryEntry,
    ApplicationStatus,
    EligibilityResult,
    EligibilityVerdict,
    TestScores,
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
from .eligibility import evaluate
from .lifecycle import LifecycleEvent

logger = logging.getLogger(__name__)

_NUMBER_ATTEMPTS = 20

# Before allocation; later edits would disagree with the published merit list.
SCORE_EDITABLE_STATUSES = frozenset(
    {
        ApplicationStatus.SUBMITTED.value,
        ApplicationStatus.UNDER_REVIEW.value,
        ApplicationStatus.ELIGIBLE.value,
        ApplicationStatus.INTERVIEW_SCHEDULED.value,
    }
)


def generate_application_number(year: int | None = None) -> str:
    """APP-YYYY-NNNNN with a random five-digit suffix; uniqueness is checked by the caller."""
    y = int(year or datetime.now(timezone.utc).year)
    return f"{APPLICATION_NUMBER_PREFIX}-{y}-{random.randint(0, 99999):05d}"


class AdmissionService:
    """Triggering interface for the application lifecycle."""

    def __init__(self, repo: AdmissionRepository):
        self.repo = repo

    # -------------------- reads --------------------

    def get_application(self, application_id: int) -> AdmissionApplication:
        app = self.repo.find_application(application_id)
        if not app:
            raise NotFoundError(get_error_message("application_not_found"), details={"application_id": application_id})
        return app

    def list_applications(
        self,
        *,
        applicant_id: str | None = None,
        program_id: str | None = None,
        batch: str | None = None,
        semester: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AdmissionApplication]:
        if status:
            lifecycle.parse_status(status)
        limit = validate_integer_field(limit, "Limit", min_value=1, max_value=200)
        offset = validate_integer_field(offset, "Offset", min_value=0)
        return self.repo.list_applications(
            applicant_id=applicant_id,
            program_id=program_id,
            batch=batch,
            semester=semester,
            status=status,
            limit=limit,
            offset=offset,
        )

    def get_history(self, application_id: int) -> list[StatusTransition]:
        self.get_application(application_id)
        return self.repo.list_transitions(application_id)

    def get_active_criteria(self, program_id: str) -> EligibilityCriteria:
        criteria = self.repo.find_active_criteria(program_id)
        if not criteria:
            raise NotFoundError(get_error_message("criteria_not_found"), details={"program_id": program_id})
        return criteria

    def get_latest_merit_list(self, program_id: str, batch: str, semester: str) -> MeritList:
        ml = self.repo.find_latest_merit_list(program_id, batch, semester)
        if not ml:
            raise NotFoundError(
                get_error_message("merit_list_not_found"),
                details={"program_id": program_id, "batch": batch, "semester": semester},
            )
        return ml

    # -------------------- writes --------------------

    def submit_application(
        self,
        *,
        applicant_id: str,
        program_id: str,
        batch: str,
        semester: str,
        applicant_name: str | None = None,
        actor_id: str | None = None,
    ) -> AdmissionApplication:
        applicant_id = validate_string_field(applicant_id, "Applicant", max_length=64)
        program_id = validate_string_field(program_id, "Program", max_length=64)
        batch = validate_string_field(batch, "Batch", max_length=32)
        semester = validate_string_field(semester, "Semester", max_length=32)
        applicant_name = validate_string_field(applicant_name, "Applicant name", max_length=255, required=False)

        if self.repo.find_application_for_applicant(applicant_id, program_id):
            raise ConflictError(
                get_error_message("already_applied"),
                details={"applicant_id": applicant_id, "program_id": program_id},
            )

        now = datetime.now(timezone.utc)
        number = None
        for _ in range(_NUMBER_ATTEMPTS):
            candidate = generate_application_number(now.year)
            if not self.repo.application_number_exists(candidate):
                number = candidate
                break
        if number is None:
            raise ConflictError("Could not allocate an application number. Please try again.")

        app = self.repo.create_application(
            AdmissionApplication(
                applicant_id=applicant_id,
                applicant_name=applicant_name,
                program_id=program_id,
                batch=batch,
                semester=semester,
                application_number=number,
                application_date=now,
                status=ApplicationStatus.SUBMITTED.value,
                submitted_by=actor_id or applicant_id,
            )
        )
        logger.info("Application %s submitted by %s for %s", app.application_number, applicant_id, program_id)
        return app

    def publish_criteria(
        self,
        *,
        program_id: str,
        minimum_marks: float | None = None,
        minimum_cgpa: float | None = None,
        required_subjects: list[str] | None = None,
        age_limit: int | None = None,
        requires_interview: bool = False,
        other_requirements: str | None = None,
        actor_id: str | None = None,
    ) -> EligibilityCriteria:
        program_id = validate_string_field(program_id, "Program", max_length=64)
        criteria = EligibilityCriteria(
            program_id=program_id,
            minimum_marks=validate_number_field(minimum_marks, "Minimum marks", 0, 100, required=False),
            minimum_cgpa=validate_number_field(minimum_cgpa, "Minimum CGPA", 0, 10, required=False),
            required_subjects=encode_subjects(required_subjects),
            age_limit=validate_integer_field(age_limit, "Age limit", min_value=1, max_value=120, required=False),
            requires_interview=bool(requires_interview),
            other_requirements=validate_string_field(
                other_requirements, "Other requirements", max_length=5000, required=False
            ),
            is_active=True,
            created_by=actor_id,
        )
        saved = self.repo.save_criteria(criteria)
        logger.info("Criteria %s published for program %s", saved.id, program_id)
        return saved

    def _apply(
        self,
        app: AdmissionApplication,
        event: LifecycleEvent,
        *,
        actor_id: str,
        reason: str | None = None,
        metadata: dict | None = None,
        at: datetime | None = None,
    ) -> AdmissionApplication:
        current = str(app.status)
        target = lifecycle.next_status(current, event)
        updated = self.repo.update_application_status(
            app.id,
            target.value,
            metadata,
            expected_status=current,
            event=event.value,
            actor_id=actor_id,
            reason=reason,
            at=at,
        )
        logger.info("Application %s: %s -> %s (%s by %s)", app.id, current, target.value, event.value, actor_id)
        return updated

    def transition(
        self,
        application_id: int,
        target_status: str,
        actor_id: str,
        reason: str | None = None,
        *,
        at: datetime | None = None,
    ) -> AdmissionApplication:
        """Reviewer-driven move to `target_status`. Allocation outcomes are not reachable here."""
        actor_id = validate_string_field(actor_id, "Actor", max_length=64)
        app = self.get_application(application_id)
        event = lifecycle.resolve_manual_event(app.status, target_status)
        reason = validate_string_field(reason, "Reason", max_length=2000, required=False)
        if event in lifecycle.REASON_REQUIRED and not reason:
            raise ValidationError(f"A reason is required for {event.value}")
        if event == LifecycleEvent.SCHEDULE_INTERVIEW:
            raise ValidationError("Use the interview endpoint to schedule an interview")
        return self._apply(app, event, actor_id=actor_id, reason=reason, at=at)

    def check_eligibility(
        self,
        application_id: int,
        academic_history: list[AcademicHistoryEntry] | None,
        test_scores: TestScores | None = None,
        *,
        actor_id: str,
        date_of_birth: date | None = None,
        admission_date: date | None = None,
    ) -> tuple[AdmissionApplication, EligibilityResult]:
        """
        Evaluate an application against its program's active criteria.

        Moves submitted -> under_review, stores the verdict and sub-scores, then
        applies eligibility_passed / eligibility_failed. A pending verdict leaves
        the application under review.
        """
        actor_id = validate_string_field(actor_id, "Actor", max_length=64)
        app = self.get_application(application_id)
        status = str(app.status)
        if status not in (ApplicationStatus.SUBMITTED.value, ApplicationStatus.UNDER_REVIEW.value):
            raise InvalidTransitionError(
                status,
                ApplicationStatus.UNDER_REVIEW.value,
                lifecycle.manual_targets(status),
            )

        criteria = self.repo.find_active_criteria(app.program_id)
        result = evaluate(
            academic_history,
            criteria,
            test_scores,
            date_of_birth=date_of_birth,
            admission_date=admission_date,
        )

        if status == ApplicationStatus.SUBMITTED.value:
            app = self._apply(app, LifecycleEvent.REQUEST_REVIEW, actor_id=actor_id)

        scores = test_scores or TestScores()
        app = self.repo.update_application(
            app.id,
            {
                "eligibility_status": result.verdict.value,
                "eligibility_score": result.score,
                "academic_score": result.score,
                "entry_test_score": scores.entry_test,
                "interview_score": scores.interview,
                "experience_score": scores.experience,
            },
        )

        reason = "; ".join(result.reasons) or None
        if result.verdict == EligibilityVerdict.ELIGIBLE:
            app = self._apply(app, LifecycleEvent.ELIGIBILITY_PASSED, actor_id=actor_id)
        elif result.verdict == EligibilityVerdict.NOT_ELIGIBLE:
            app = self._apply(app, LifecycleEvent.ELIGIBILITY_FAILED, actor_id=actor_id, reason=reason)
        else:
            logger.info("Application %s eligibility pending: %s", app.id, ", ".join(result.unverified))
        return app, result

    def schedule_interview(
        self,
        application_id: int,
        *,
        interview_date: date,
        interview_time: str,
        interview_location: str | None = None,
        actor_id: str,
    ) -> AdmissionApplication:
        actor_id = validate_string_field(actor_id, "Actor", max_length=64)
        interview_time = validate_string_field(interview_time, "Interview time", max_length=8)
        interview_location = validate_string_field(
            interview_location, "Interview location", max_length=200, required=False
        )
        app = self.get_application(application_id)

        criteria = self.repo.find_active_criteria(app.program_id)
        if not criteria or not criteria.requires_interview:
            raise ValidationError(
                get_error_message("interview_not_required"),
                details={"program_id": app.program_id},
            )

        return self._apply(
            app,
            LifecycleEvent.SCHEDULE_INTERVIEW,
            actor_id=actor_id,
            metadata={
                "interview_date": interview_date.isoformat(),
                "interview_time": interview_time,
                "interview_location": interview_location,
            },
        )

    def update_application(
        self,
        application_id: int,
        *,
        interview_score: float | None = None,
        entry_test_score: float | None = None,
        experience_score: float | None = None,
        remarks: str | None = None,
        actor_id: str,
    ) -> AdmissionApplication:
        """
        Record reviewer input on an application without changing its status.

        Omitted values are left as they are. Sub-scores feed the next merit list,
        so they can only change while the application has not been allocated yet.
        Remarks can be edited at any status.
        """
        actor_id = validate_string_field(actor_id, "Actor", max_length=64)
        scores = {
            "interview_score": validate_number_field(interview_score, "Interview score", 0, 100, required=False),
            "entry_test_score": validate_number_field(entry_test_score, "Entry test score", 0, 100, required=False),
            "experience_score": validate_number_field(experience_score, "Experience score", 0, 100, required=False),
        }
        fields = {k: v for k, v in scores.items() if v is not None}
        if remarks is not None:
            fields["remarks"] = validate_string_field(remarks, "Remarks", max_length=5000, required=False)
        if not fields:
            raise ValidationError("Nothing to update")

        app = self.get_application(application_id)
        status = str(app.status)
        if set(fields) & set(scores) and status not in SCORE_EDITABLE_STATUSES:
            raise ValidationError(
                "Scores can no longer be changed for this application",
                details={"status": status, "editable_statuses": sorted(SCORE_EDITABLE_STATUSES)},
            )

        fields.update({"reviewed_by": actor_id, "reviewed_at": datetime.now(timezone.utc)})
        updated = self.repo.update_application(app.id, fields)
        logger.info("Application %s updated by %s: %s", app.id, actor_id, ", ".join(sorted(fields)))
        return updated
