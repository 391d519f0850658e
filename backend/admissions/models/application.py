from sqlalchemy import Column, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class AdmissionApplication(Base):
    __tablename__ = "admission_applications"
    __table_args__ = (
        UniqueConstraint("applicant_id", "program_id", name="uq_admission_applications_applicant_program"),
    )

    id = Column(Integer, primary_key=True, index=True)
    applicant_id = Column(String(64), nullable=False, index=True)
    applicant_name = Column(String(255), nullable=True)  # denormalized for merit list display
    program_id = Column(String(64), nullable=False, index=True)
    batch = Column(String(32), nullable=False)
    semester = Column(String(32), nullable=False)
    application_number = Column(String(50), unique=True, nullable=False)
    application_date = Column(DateTime(timezone=True), nullable=False)

    # submitted | under_review | eligible | not_eligible | interview_scheduled
    # | selected | waitlisted | rejected | fee_submitted | enrolled
    status = Column(String(32), nullable=False, default="submitted", index=True)

    # Written only by an eligibility check.
    eligibility_status = Column(String(20), nullable=True)  # eligible | not_eligible | pending
    eligibility_score = Column(Float, nullable=True)

    # Sub-scores on a 0-100 scale, consumed by merit-list generation.
    academic_score = Column(Float, nullable=True)
    entry_test_score = Column(Float, nullable=True)
    interview_score = Column(Float, nullable=True)
    experience_score = Column(Float, nullable=True)

    # Written only by merit-list write-back.
    merit_rank = Column(Integer, nullable=True)

    interview_date = Column(String(10), nullable=True)  # YYYY-MM-DD
    interview_time = Column(String(8), nullable=True)  # HH:MM
    interview_location = Column(String(200), nullable=True)

    remarks = Column(Text, nullable=True)
    submitted_by = Column(String(64), nullable=True)
    reviewed_by = Column(String(64), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    transitions = relationship(
        "StatusTransition",
        back_populates="application",
        order_by="StatusTransition.id",
    )
