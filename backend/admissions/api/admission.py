import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.application import AdmissionApplication
from ..repositories.admission_repository import SqlAlchemyAdmissionRepository
from ..schemas.admission import (
    ApplicationOut,
    ApplicationStatus,
    ApplicationSubmitIn,
    ApplicationUpdateIn,
    CriteriaIn,
    CriteriaOut,
    EligibilityCheckIn,
    EligibilityCheckOut,
    InterviewScheduleIn,
    MeritListGenerateIn,
    TransitionIn,
    TransitionOut,
)
from ..services.admission_service import AdmissionService
from ..services.merit_list import MeritListService, merit_list_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admissions", tags=["Admissions"])


def get_admission_service(db: Session = Depends(get_db)) -> AdmissionService:
    return AdmissionService(SqlAlchemyAdmissionRepository(db))


def get_merit_list_service(db: Session = Depends(get_db)) -> MeritListService:
    return MeritListService(SqlAlchemyAdmissionRepository(db))


def _application_to_public(app: AdmissionApplication) -> dict:
    return ApplicationOut.model_validate(app).model_dump(mode="json")


# -------------------- Applications --------------------

@router.post("/applications", status_code=201)
def submit_application(
    payload: ApplicationSubmitIn,
    service: AdmissionService = Depends(get_admission_service),
):
    app = service.submit_application(
        applicant_id=payload.applicant_id,
        applicant_name=payload.applicant_name,
        program_id=payload.program_id,
        batch=payload.batch,
        semester=payload.semester,
        actor_id=payload.actor_id,
    )
    return {"success": True, "application": _application_to_public(app)}


@router.get("/applications")
def list_applications(
    applicant_id: str | None = Query(default=None),
    program_id: str | None = Query(default=None),
    batch: str | None = Query(default=None),
    semester: str | None = Query(default=None),
    status: ApplicationStatus | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    service: AdmissionService = Depends(get_admission_service),
):
    items = service.list_applications(
        applicant_id=applicant_id,
        program_id=program_id,
        batch=batch,
        semester=semester,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )
    return {"success": True, "applications": [_application_to_public(a) for a in items]}


@router.get("/applications/{application_id:int}")
def get_application(
    application_id: int,
    service: AdmissionService = Depends(get_admission_service),
):
    return {"success": True, "application": _application_to_public(service.get_application(application_id))}


@router.put("/applications/{application_id:int}")
def update_application(
    application_id: int,
    payload: ApplicationUpdateIn,
    service: AdmissionService = Depends(get_admission_service),
):
    app = service.update_application(
        application_id,
        interview_score=payload.interview_score,
        entry_test_score=payload.entry_test_score,
        experience_score=payload.experience_score,
        remarks=payload.remarks,
        actor_id=payload.actor_id,
    )
    return {"success": True, "application": _application_to_public(app)}


@router.get("/applications/{application_id:int}/history")
def get_application_history(
    application_id: int,
    service: AdmissionService = Depends(get_admission_service),
):
    rows = service.get_history(application_id)
    return {
        "success": True,
        "application_id": application_id,
        "history": [TransitionOut.model_validate(t).model_dump(mode="json") for t in rows],
    }


@router.post("/applications/{application_id:int}/transition")
def transition_application(
    application_id: int,
    payload: TransitionIn,
    service: AdmissionService = Depends(get_admission_service),
):
    app = service.transition(
        application_id,
        payload.target_status.value,
        payload.actor_id,
        payload.reason,
        at=payload.at,
    )
    return {"success": True, "application": _application_to_public(app)}


@router.post("/applications/{application_id:int}/interview")
def schedule_interview(
    application_id: int,
    payload: InterviewScheduleIn,
    service: AdmissionService = Depends(get_admission_service),
):
    app = service.schedule_interview(
        application_id,
        interview_date=payload.interview_date,
        interview_time=payload.interview_time,
        interview_location=payload.interview_location,
        actor_id=payload.actor_id,
    )
    return {"success": True, "application": _application_to_public(app)}


# -------------------- Criteria / eligibility --------------------

@router.post("/criteria", status_code=201)
def publish_criteria(
    payload: CriteriaIn,
    service: AdmissionService = Depends(get_admission_service),
):
    criteria = service.publish_criteria(**payload.model_dump())
    return {"success": True, "criteria": CriteriaOut.model_validate(criteria).model_dump(mode="json")}


@router.get("/programs/{program_id}/criteria")
def get_active_criteria(
    program_id: str,
    service: AdmissionService = Depends(get_admission_service),
):
    criteria = service.get_active_criteria(program_id)
    return {"success": True, "criteria": CriteriaOut.model_validate(criteria).model_dump(mode="json")}


@router.post("/eligibility-check")
def check_eligibility(
    payload: EligibilityCheckIn,
    service: AdmissionService = Depends(get_admission_service),
):
    app, result = service.check_eligibility(
        payload.application_id,
        payload.academic_history,
        payload.test_scores,
        actor_id=payload.actor_id,
        date_of_birth=payload.date_of_birth,
        admission_date=payload.admission_date,
    )
    out = EligibilityCheckOut(
        application=ApplicationOut.model_validate(app),
        verdict=result.verdict,
        score=result.score,
        reasons=result.reasons,
        unverified=result.unverified,
    )
    return {"success": True, **out.model_dump(mode="json")}


# -------------------- Merit lists --------------------

@router.post("/merit-lists", status_code=201)
def generate_merit_list(
    payload: MeritListGenerateIn,
    service: MeritListService = Depends(get_merit_list_service),
):
    result = service.generate(
        payload.program_id,
        payload.batch,
        payload.semester,
        payload.total_seats,
        payload.weights,
        waitlist_factor=payload.waitlist_factor,
        actor_id=payload.actor_id,
    )
    return {"success": True, **result.model_dump(mode="json")}


@router.get("/merit-lists/latest")
def get_latest_merit_list(
    program_id: str = Query(..., min_length=1),
    batch: str = Query(..., min_length=1),
    semester: str = Query(..., min_length=1),
    service: AdmissionService = Depends(get_admission_service),
):
    ml = service.get_latest_merit_list(program_id, batch, semester)
    return {"success": True, "merit_list": merit_list_out(ml).model_dump(mode="json")}
