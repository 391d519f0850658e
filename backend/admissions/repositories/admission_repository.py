"""
Admission repository.

`AdmissionRepository` is the storage contract the services depend on;
`SqlAlchemyAdmissionRepository` implements it on a SQLAlchemy session.
Services never import the ORM session directly, so scoring/ranking code stays
free of I/O and the service layer can be exercised against any implementation.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.application import AdmissionApplication
from ..models.criteria import EligibilityCriteria
from ..models.merit_list import MeritList
from ..models.transition import StatusTransition
from ..utils.error_handlers import ConflictError, NotFoundError, ValidationError, get_error_message

logger = logging.getLogger(__name__)

# Columns update_application / status metadata may touch.
_UPDATABLE_FIELDS = {
    "applicant_name",
    "eligibility_status",
    "eligibility_score",
    "academic_score",
    "entry_test_score",
    "interview_score",
    "experience_score",
    "merit_rank",
    "interview_date",
    "interview_time",
    "interview_location",
    "remarks",
    "reviewed_by",
    "reviewed_at",
}


class AdmissionRepository(Protocol):
    def find_application(self, application_id: int) -> AdmissionApplication | None: ...

    def find_application_for_applicant(self, applicant_id: str, program_id: str) -> AdmissionApplication | None: ...

    def application_number_exists(self, application_number: str) -> bool: ...

    def find_applications_by_program_batch_semester(
        self,
        program_id: str,
        batch: str,
        semester: str,
        statuses: list[str] | None = None,
    ) -> list[AdmissionApplication]: ...

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
    ) -> list[AdmissionApplication]: ...

    def create_application(self, application: AdmissionApplication) -> AdmissionApplication: ...

    def update_application(self, application_id: int, fields: dict[str, Any]) -> AdmissionApplication: ...

    def update_application_status(
        self,
        application_id: int,
        status: str,
        metadata: dict[str, Any] | None = None,
        *,
        expected_status: str | None,
        event: str,
        actor_id: str,
        reason: str | None = None,
        at: datetime | None = None,
    ) -> AdmissionApplication: ...

    def list_transitions(self, application_id: int) -> list[StatusTransition]: ...

    def find_active_criteria(self, program_id: str) -> EligibilityCriteria | None: ...

    def save_criteria(self, criteria: EligibilityCriteria) -> EligibilityCriteria: ...

    def save_merit_list(self, merit_list: MeritList) -> MeritList: ...

    def find_latest_merit_list(self, program_id: str, batch: str, semester: str) -> MeritList | None: ...


def encode_subjects(subjects: list[str] | None) -> str:
    cleaned = [s.strip() for s in subjects or [] if s and s.strip()]
    return json.dumps(cleaned, ensure_ascii=False)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(fields or {}) - _UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError("Unknown application fields", details={"fields": unknown})
    return dict(fields or {})


class SqlAlchemyAdmissionRepository:
    def __init__(self, db: Session):
        self.db = db

    # -------------------- applications --------------------

    def find_application(self, application_id: int) -> AdmissionApplication | None:
        return (
            self.db.query(AdmissionApplication)
            .filter(AdmissionApplication.id == int(application_id))
            .first()
        )

    def find_application_for_applicant(self, applicant_id: str, program_id: str) -> AdmissionApplication | None:
        return (
            self.db.query(AdmissionApplication)
            .filter(
                AdmissionApplication.applicant_id == applicant_id,
                AdmissionApplication.program_id == program_id,
            )
            .first()
        )

    def application_number_exists(self, application_number: str) -> bool:
        return (
            self.db.query(AdmissionApplication.id)
            .filter(AdmissionApplication.application_number == application_number)
            .first()
            is not None
        )

    def find_applications_by_program_batch_semester(
        self,
        program_id: str,
        batch: str,
        semester: str,
        statuses: list[str] | None = None,
    ) -> list[AdmissionApplication]:
        # One SELECT: the whole pool is read at a single point.
        q = self.db.query(AdmissionApplication).filter(
            AdmissionApplication.program_id == program_id,
            AdmissionApplication.batch == batch,
            AdmissionApplication.semester == semester,
        )
        if statuses:
            q = q.filter(AdmissionApplication.status.in_([str(s) for s in statuses]))
        return q.order_by(AdmissionApplication.id.asc()).all()

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
        q = self.db.query(AdmissionApplication)
        if applicant_id:
            q = q.filter(AdmissionApplication.applicant_id == applicant_id)
        if program_id:
            q = q.filter(AdmissionApplication.program_id == program_id)
        if batch:
            q = q.filter(AdmissionApplication.batch == batch)
        if semester:
            q = q.filter(AdmissionApplication.semester == semester)
        if status:
            q = q.filter(AdmissionApplication.status == status)
        return (
            q.order_by(AdmissionApplication.application_date.desc(), AdmissionApplication.id.desc())
            .offset(int(offset))
            .limit(int(limit))
            .all()
        )

    def create_application(self, application: AdmissionApplication) -> AdmissionApplication:
        try:
            self.db.add(application)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Duplicate application rejected: %s", e)
            raise ConflictError(get_error_message("already_applied"))
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error creating application")
            raise
        self.db.refresh(application)
        return application

    def update_application(self, application_id: int, fields: dict[str, Any]) -> AdmissionApplication:
        values = _check_fields(fields)
        application = self.find_application(application_id)
        if not application:
            raise NotFoundError(get_error_message("application_not_found"), details={"application_id": application_id})
        try:
            for key, value in values.items():
                setattr(application, key, value)
            application.updated_at = _now()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error updating application %s", application_id)
            raise
        self.db.refresh(application)
        return application

    def update_application_status(
        self,
        application_id: int,
        status: str,
        metadata: dict[str, Any] | None = None,
        *,
        expected_status: str | None,
        event: str,
        actor_id: str,
        reason: str | None = None,
        at: datetime | None = None,
    ) -> AdmissionApplication:
        """
        Conditional status write plus its audit row, committed together.

        A compare-and-set on `expected_status`: if the row's status changed since
        it was read, nothing is written and ConflictError is raised. Without an
        expected status the current one is read first, so the audit row always
        records where the application came from.
        """
        values = _check_fields(metadata or {})
        when = at or _now()
        values.update(
            {
                "status": str(status),
                "reviewed_by": actor_id,
                "reviewed_at": when,
                "updated_at": when,
            }
        )

        if expected_status is None:
            existing = self.find_application(application_id)
            if existing is None:
                raise NotFoundError(
                    get_error_message("application_not_found"),
                    details={"application_id": application_id},
                )
            expected_status = existing.status

        q = self.db.query(AdmissionApplication).filter(
            AdmissionApplication.id == int(application_id),
            AdmissionApplication.status == str(expected_status),
        )

        try:
            matched = q.update(values, synchronize_session=False)
            if not matched:
                self.db.rollback()
                current = self.find_application(application_id)
                if current is None:
                    raise NotFoundError(
                        get_error_message("application_not_found"),
                        details={"application_id": application_id},
                    )
                raise ConflictError(
                    get_error_message("application_changed"),
                    details={
                        "application_id": application_id,
                        "expected": str(expected_status),
                        "current": current.status,
                    },
                )
            self.db.add(
                StatusTransition(
                    application_id=int(application_id),
                    from_status=str(expected_status),
                    to_status=str(status),
                    event=str(event),
                    actor_id=actor_id,
                    reason=reason,
                    occurred_at=when,
                )
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error updating status of application %s", application_id)
            raise

        # commit() expired the identity map, so this reloads the written row.
        return self.find_application(application_id)

    def list_transitions(self, application_id: int) -> list[StatusTransition]:
        return (
            self.db.query(StatusTransition)
            .filter(StatusTransition.application_id == int(application_id))
            .order_by(StatusTransition.id.asc())
            .all()
        )

    # -------------------- criteria --------------------

    def find_active_criteria(self, program_id: str) -> EligibilityCriteria | None:
        return (
            self.db.query(EligibilityCriteria)
            .filter(EligibilityCriteria.program_id == program_id, EligibilityCriteria.is_active.is_(True))
            .order_by(EligibilityCriteria.id.desc())
            .first()
        )

    def save_criteria(self, criteria: EligibilityCriteria) -> EligibilityCriteria:
        """Insert `criteria` as the active record, deactivating the previous one in the same commit."""
        try:
            (
                self.db.query(EligibilityCriteria)
                .filter(
                    EligibilityCriteria.program_id == criteria.program_id,
                    EligibilityCriteria.is_active.is_(True),
                )
                .update({"is_active": False, "updated_at": _now()}, synchronize_session=False)
            )
            criteria.is_active = True
            self.db.add(criteria)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error saving criteria for program %s", criteria.program_id)
            raise
        self.db.refresh(criteria)
        return criteria

    # -------------------- merit lists --------------------

    def save_merit_list(self, merit_list: MeritList) -> MeritList:
        try:
            self.db.add(merit_list)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Merit list version clash for %s/%s/%s: %s",
                           merit_list.program_id, merit_list.batch, merit_list.semester, e)
            raise ConflictError(
                "A merit list with this version already exists",
                details={"version": merit_list.version},
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error saving merit list")
            raise
        self.db.refresh(merit_list)
        return merit_list

    def find_latest_merit_list(self, program_id: str, batch: str, semester: str) -> MeritList | None:
        return (
            self.db.query(MeritList)
            .filter(
                MeritList.program_id == program_id,
                MeritList.batch == batch,
                MeritList.semester == semester,
            )
            .order_by(MeritList.version.desc())
            .first()
        )
