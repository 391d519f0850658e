from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from backend.admissions.models.application import AdmissionApplication
from backend.admissions.models.criteria import EligibilityCriteria
from backend.admissions.models.merit_list import MeritList, MeritListEntry
from backend.admissions.models.transition import StatusTransition

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _application(**kw):
    data = dict(
        applicant_id="stu-1",
        applicant_name="Ayesha Khan",
        program_id="BSCS",
        batch="2026",
        semester="Fall",
        application_number="APP-2026-00001",
        application_date=NOW,
        status="submitted",
    )
    data.update(kw)
    return AdmissionApplication(**data)


def test_db_crud_operations_and_relationships(db_session):
    app = _application()
    db_session.add(app)
    db_session.commit()
    db_session.refresh(app)
    assert app.id is not None
    assert app.created_at is not None

    db_session.add(
        StatusTransition(
            application_id=app.id,
            from_status="submitted",
            to_status="under_review",
            event="request_review",
            actor_id="reviewer-1",
            occurred_at=NOW,
        )
    )
    db_session.commit()
    db_session.refresh(app)
    assert [t.to_status for t in app.transitions] == ["under_review"]
    assert app.transitions[0].application.id == app.id

    ml = MeritList(
        program_id="BSCS",
        batch="2026",
        semester="Fall",
        version=1,
        total_seats=1,
        waitlist_factor=0.2,
        weights_json='{"academic": 1.0}',
        published_at=NOW,
        entries=[
            MeritListEntry(
                application_id=app.id,
                application_number=app.application_number,
                merit_score=88.5,
                rank=1,
                outcome="selected",
            )
        ],
    )
    db_session.add(ml)
    db_session.commit()
    db_session.refresh(ml)
    assert ml.entries[0].merit_list.id == ml.id


def test_one_application_per_applicant_and_program(db_session):
    db_session.add(_application())
    db_session.commit()

    db_session.add(_application(application_number="APP-2026-00002"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_repository_create_maps_duplicate_to_conflict(repo):
    from backend.admissions.utils.error_handlers import ConflictError

    repo.create_application(_application())
    with pytest.raises(ConflictError):
        repo.create_application(_application(application_number="APP-2026-00002"))
    assert repo.application_number_exists("APP-2026-00001")
    assert not repo.application_number_exists("APP-2026-00002")


def test_merit_list_version_is_unique_per_key(repo):
    from backend.admissions.utils.error_handlers import ConflictError

    def _list(version):
        return MeritList(
            program_id="BSCS", batch="2026", semester="Fall", version=version,
            total_seats=1, waitlist_factor=0.2, weights_json="{}", published_at=NOW,
        )

    repo.save_merit_list(_list(1))
    repo.save_merit_list(_list(2))
    with pytest.raises(ConflictError):
        repo.save_merit_list(_list(2))
    assert repo.find_latest_merit_list("BSCS", "2026", "Fall").version == 2
    assert repo.find_latest_merit_list("BSCS", "2026", "Spring") is None


def test_save_criteria_keeps_one_active_record(repo, db_session):
    first = repo.save_criteria(EligibilityCriteria(program_id="BSCS", minimum_marks=60))
    second = repo.save_criteria(EligibilityCriteria(program_id="BSCS", minimum_marks=65))
    repo.save_criteria(EligibilityCriteria(program_id="BBA", minimum_marks=50))

    active = db_session.query(EligibilityCriteria).filter_by(program_id="BSCS", is_active=True).all()
    assert [c.id for c in active] == [second.id]
    assert repo.find_active_criteria("BSCS").minimum_marks == 65
    db_session.refresh(first)
    assert first.is_active is False
    assert repo.find_active_criteria("BBA").minimum_marks == 50
    assert repo.find_active_criteria("MBA") is None


def test_conditional_status_update(repo):
    from backend.admissions.utils.error_handlers import ConflictError, NotFoundError, ValidationError

    app = repo.create_application(_application())

    updated = repo.update_application_status(
        app.id,
        "under_review",
        expected_status="submitted",
        event="request_review",
        actor_id="reviewer-1",
        at=NOW,
    )
    assert updated.status == "under_review"
    assert updated.reviewed_by == "reviewer-1"

    with pytest.raises(ConflictError) as exc:
        repo.update_application_status(
            app.id, "eligible", expected_status="submitted", event="eligibility_passed", actor_id="reviewer-2"
        )
    assert exc.value.details["current"] == "under_review"
    assert repo.find_application(app.id).status == "under_review"
    assert len(repo.list_transitions(app.id)) == 1

    with pytest.raises(NotFoundError):
        repo.update_application_status(
            9999, "eligible", expected_status="under_review", event="eligibility_passed", actor_id="x"
        )

    with pytest.raises(ValidationError):
        repo.update_application_status(
            app.id, "eligible", {"status": "enrolled"}, expected_status="under_review",
            event="eligibility_passed", actor_id="x",
        )


def test_list_applications_filters(repo):
    repo.create_application(_application())
    repo.create_application(_application(applicant_id="stu-2", application_number="APP-2026-00002", status="eligible"))
    repo.create_application(
        _application(applicant_id="stu-3", application_number="APP-2026-00003", program_id="BBA")
    )

    assert len(repo.list_applications()) == 3
    assert [a.applicant_id for a in repo.list_applications(program_id="BSCS", status="eligible")] == ["stu-2"]
    assert len(repo.list_applications(limit=1)) == 1
    assert [a.applicant_id for a in repo.list_applications(applicant_id="stu-3")] == ["stu-3"]
    assert repo.list_applications(applicant_id="stu-3", program_id="BSCS") == []
    pool = repo.find_applications_by_program_batch_semester("BSCS", "2026", "Fall", statuses=["submitted"])
    assert [a.applicant_id for a in pool] == ["stu-1"]


def test_status_update_without_expected_status_records_the_prior_status(repo):
    from backend.admissions.utils.error_handlers import NotFoundError

    app = repo.create_application(_application())

    updated = repo.update_application_status(
        app.id, "under_review", expected_status=None, event="request_review", actor_id="reviewer-1"
    )
    assert updated.status == "under_review"
    (row,) = repo.list_transitions(app.id)
    assert row.from_status == "submitted"
    assert row.to_status == "under_review"

    with pytest.raises(NotFoundError):
        repo.update_application_status(
            9999, "under_review", expected_status=None, event="request_review", actor_id="reviewer-1"
        )
