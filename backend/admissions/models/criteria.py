from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.sql import func

from ..database import Base


class EligibilityCriteria(Base):
    __tablename__ = "eligibility_criteria"

    id = Column(Integer, primary_key=True, index=True)
    program_id = Column(String(64), nullable=False, index=True)
    minimum_marks = Column(Float, nullable=True)
    minimum_cgpa = Column(Float, nullable=True)
    required_subjects = Column(Text, nullable=True)  # JSON string list
    age_limit = Column(Integer, nullable=True)
    requires_interview = Column(Boolean, nullable=False, default=False)
    other_requirements = Column(Text, nullable=True)
    # At most one active record per program; publishing a new one deactivates the old.
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
