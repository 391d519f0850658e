from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class MeritList(Base):
    __tablename__ = "merit_lists"
    __table_args__ = (
        UniqueConstraint("program_id", "batch", "semester", "version", name="uq_merit_lists_key_version"),
    )

    id = Column(Integer, primary_key=True, index=True)
    program_id = Column(String(64), nullable=False, index=True)
    batch = Column(String(32), nullable=False)
    semester = Column(String(32), nullable=False)
    # Monotonic per (program_id, batch, semester); older versions are kept for audit.
    version = Column(Integer, nullable=False)
    total_seats = Column(Integer, nullable=False)
    # Seats already taken by fee_submitted / enrolled applicants when this version ran.
    held_seats = Column(Integer, nullable=False, default=0, server_default="0")
    waitlist_factor = Column(Float, nullable=False)
    weights_json = Column(Text, nullable=False)
    generated_by = Column(String(64), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    entries = relationship(
        "MeritListEntry",
        back_populates="merit_list",
        cascade="all, delete-orphan",
        order_by="MeritListEntry.rank",
    )


class MeritListEntry(Base):
    __tablename__ = "merit_list_entries"
    __table_args__ = (
        UniqueConstraint("merit_list_id", "rank", name="uq_merit_list_entries_rank"),
    )

    id = Column(Integer, primary_key=True, index=True)
    merit_list_id = Column(Integer, ForeignKey("merit_lists.id"), nullable=False)
    application_id = Column(Integer, ForeignKey("admission_applications.id"), nullable=False)
    application_number = Column(String(50), nullable=False)
    applicant_name = Column(String(255), nullable=True)
    merit_score = Column(Float, nullable=False)
    rank = Column(Integer, nullable=False)
    outcome = Column(String(20), nullable=False)  # selected | waitlisted | rejected

    merit_list = relationship("MeritList", back_populates="entries")
