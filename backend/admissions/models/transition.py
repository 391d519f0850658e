from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base


class StatusTransition(Base):
    """Audit row written for every lifecycle transition."""

    __tablename__ = "application_status_transitions"

    id = Column(Integer, primary_key=True, index=True)
    application_id = Column(Integer, ForeignKey("admission_applications.id"), nullable=False, index=True)
    from_status = Column(String(32), nullable=False)
    to_status = Column(String(32), nullable=False)
    event = Column(String(40), nullable=False)
    actor_id = Column(String(64), nullable=False)
    reason = Column(Text, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False)

    application = relationship("AdmissionApplication", back_populates="transitions")
