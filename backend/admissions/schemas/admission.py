import json
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def decode_subjects(raw: str | None) -> list[str]:
    """Parse a JSON string list column; tolerate empty or malformed values."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError:
        return []
    if not isinstance(data, list):
        return []
    return [str(s) for s in data if s is not None and str(s).strip()]


class ApplicationStatus(str, Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ELIGIBLE = "eligible"
    NOT_ELIGIBLE = "not_eligible"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    SELECTED = "selected"
    WAITLISTED = "waitlisted"
    REJECTED = "rejected"
    FEE_SUBMITTED = "fee_submitted"
    ENROLLED = "enrolled"


class EligibilityVerdict(str, Enum):
    ELIGIBLE = "eligible"
    NOT_ELIGIBLE = "not_eligible"
    PENDING = "pending"


class MeritOutcome(str, Enum):
    SELECTED = "selected"
    WAITLISTED = "waitlisted"
    REJECTED = "rejected"


# -------------------- Engine inputs --------------------

class AcademicHistoryEntry(BaseModel):
    degree: str = Field(..., min_length=1, max_length=120)
    marks: float = Field(..., ge=0, le=100)  # percentage
    cgpa: float | None = Field(default=None, ge=0, le=10)
    year: int = Field(..., ge=1900, le=2100)
    subjects: list[str] = Field(default_factory=list)

    def labels(self) -> set[str]:
        """Case-folded degree and subject labels used for required-subject matching."""
        out = {self.degree.strip().casefold()}
        out.update(s.strip().casefold() for s in self.subjects if s and s.strip())
        return out


class TestScores(BaseModel):
    # Not a pytest test class, despite the name.
    __test__ = False

    entry_test: float | None = Field(default=None, ge=0, le=100)
    interview: float | None = Field(default=None, ge=0, le=100)
    experience: float | None = Field(default=None, ge=0, le=100)


class CriteriaRules(BaseModel):
    """Plain-data view of an EligibilityCriteria record, as the evaluator sees it."""

    program_id: str | None = None
    minimum_marks: float | None = None
    minimum_cgpa: float | None = None
    required_subjects: list[str] = Field(default_factory=list)
    age_limit: int | None = None
    requires_interview: bool = False
    other_requirements: str | None = None
    is_active: bool = True

    @field_validator("required_subjects", mode="before")
    @classmethod
    def _parse_subjects(cls, v):
        # Stored as a JSON string list on the ORM row.
        if isinstance(v, str):
            return decode_subjects(v)
        return v or []


class EligibilityResult(BaseModel):
    verdict: EligibilityVerdict
    score: float = 0.0
    reasons: list[str] = Field(default_factory=list)
    unverified: list[str] = Field(default_factory=list)


class SubScores(BaseModel):
    academic: float | None = Field(default=None, ge=0, le=100)
    entry_test: float | None = Field(default=None, ge=0, le=100)
    interview: float | None = Field(default=None, ge=0, le=100)
    experience: float | None = Field(default=None, ge=0, le=100)


class MeritWeights(BaseModel):
    """Relative weights per sub-score; they need not sum to 1."""

    academic: float | None = None
    entry_test: float | None = None
    interview: float | None = None
    experience: float | None = None


class RankCandidate(BaseModel):
    application_id: int
    application_number: str
    application_date: datetime
    score: float
    applicant_name: str | None = None


class RankedApplicant(RankCandidate):
    rank: int


class Allocation(RankedApplicant):
    outcome: MeritOutcome


# -------------------- Request bodies --------------------

class ApplicationSubmitIn(BaseModel):
    applicant_id: str = Field(..., min_length=1, max_length=64)
    applicant_name: str | None = Field(default=None, max_length=255)
    program_id: str = Field(..., min_length=1, max_length=64)
    batch: str = Field(..., min_length=1, max_length=32)
    semester: str = Field(..., min_length=1, max_length=32)
    actor_id: str | None = None


class CriteriaIn(BaseModel):
    program_id: str = Field(..., min_length=1, max_length=64)
    minimum_marks: float | None = Field(default=None, ge=0, le=100)
    minimum_cgpa: float | None = Field(default=None, ge=0, le=10)
    required_subjects: list[str] = Field(default_factory=list)
    age_limit: int | None = Field(default=None, ge=1, le=120)
    requires_interview: bool = False
    other_requirements: str | None = None
    actor_id: str | None = None


class EligibilityCheckIn(BaseModel):
    application_id: int = Field(..., ge=1)
    academic_history: list[AcademicHistoryEntry] = Field(default_factory=list)
    test_scores: TestScores | None = None
    date_of_birth: date | None = None
    admission_date: date | None = None
    actor_id: str = Field(..., min_length=1)


class MeritListGenerateIn(BaseModel):
    program_id: str = Field(..., min_length=1)
    batch: str = Field(..., min_length=1)
    semester: str = Field(..., min_length=1)
    total_seats: int
    weights: MeritWeights
    waitlist_factor: float | None = None
    actor_id: str | None = None


class TransitionIn(BaseModel):
    target_status: ApplicationStatus
    actor_id: str = Field(..., min_length=1)
    reason: str | None = None
    at: datetime | None = None


class InterviewScheduleIn(BaseModel):
    interview_date: date
    interview_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    interview_location: str | None = Field(default=None, max_length=200)
    actor_id: str = Field(..., min_length=1)


class ApplicationUpdateIn(BaseModel):
    interview_score: float | None = Field(default=None, ge=0, le=100)
    entry_test_score: float | None = Field(default=None, ge=0, le=100)
    experience_score: float | None = Field(default=None, ge=0, le=100)
    remarks: str | None = Field(default=None, max_length=5000)
    actor_id: str = Field(..., min_length=1)


# -------------------- Outputs --------------------

class ApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    applicant_id: str
    applicant_name: str | None = None
    program_id: str
    batch: str
    semester: str
    application_number: str
    application_date: datetime
    status: ApplicationStatus
    eligibility_status: EligibilityVerdict | None = None
    eligibility_score: float | None = None
    academic_score: float | None = None
    entry_test_score: float | None = None
    interview_score: float | None = None
    experience_score: float | None = None
    merit_rank: int | None = None
    interview_date: str | None = None
    interview_time: str | None = None
    interview_location: str | None = None
    remarks: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None


class CriteriaOut(CriteriaRules):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime | None = None


class TransitionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: str
    to_status: str
    event: str
    actor_id: str
    reason: str | None = None
    occurred_at: datetime


class EligibilityCheckOut(BaseModel):
    application: ApplicationOut
    verdict: EligibilityVerdict
    score: float
    reasons: list[str] = Field(default_factory=list)
    unverified: list[str] = Field(default_factory=list)


class MeritEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    application_id: int
    application_number: str
    applicant_name: str | None = None
    merit_score: float
    rank: int
    outcome: MeritOutcome


class SkippedApplication(BaseModel):
    application_id: int
    application_number: str | None = None
    reason: str


class MeritListOut(BaseModel):
    id: int
    program_id: str
    batch: str
    semester: str
    version: int
    total_seats: int
    held_seats: int = 0
    waitlist_factor: float
    weights: MeritWeights
    generated_by: str | None = None
    published_at: datetime
    entries: list[MeritEntryOut] = Field(default_factory=list)


class MeritListResult(BaseModel):
    merit_list: MeritListOut
    warnings: list[SkippedApplication] = Field(default_factory=list)
