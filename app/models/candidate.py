"""
Candidate database model.

One screening record per (job, phone identity). The phone number is only
stored encrypted; ``phone_hash`` is the lookup key.
"""

import enum
import uuid
from sqlalchemy import (
    Column, String, ForeignKey, Enum, Text, DateTime, Float, Boolean, Index, Uuid, func, false
)
from sqlalchemy.orm import relationship
from app.core.database import Base, JSONType


class CandidateStatus(str, enum.Enum):
    """
    Candidate lifecycle:

    IN_PROGRESS -> COMPLETED -> ACCEPTED | REJECTED

    ACCEPTED/REJECTED are set by recruiters in the dashboard, never by the engine.
    """
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id = Column(Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)

    # Contact identity (encrypted value + deterministic lookup hash)
    phone_number = Column(String, nullable=False)
    phone_hash = Column(String(64), nullable=False, index=True)

    # Filled in progressively during the interview
    name = Column(String, nullable=True)
    email = Column(String, nullable=True)

    # Résumé
    resume_data = Column(JSONType, nullable=True)  # Structured extraction, null until CV step succeeds
    cv_url = Column(String, nullable=True)  # Archive location, null when archival failed/skipped

    # Scoring results (null until finalized)
    score = Column(Float, nullable=True, index=True)
    score_details = Column(JSONType, nullable=True)
    summary = Column(Text, nullable=True)
    recommendation = Column(String, nullable=True)

    status = Column(
        Enum(CandidateStatus),
        default=CandidateStatus.IN_PROGRESS,
        nullable=False,
        index=True
    )

    # Soft delete
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=false())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    job = relationship("Job", back_populates="candidates")
    conversation = relationship("Conversation", back_populates="candidate", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Candidate(id={self.id}, job_id={self.job_id}, status={self.status})>"


# Exactly one live candidate per (job, phone). Also the conflict target of the
# find-or-create upsert in app.crud.candidate.
ACTIVE_CANDIDATE_PREDICATE = Candidate.is_deleted == false()

Index(
    "uq_candidates_job_phone_hash_active",
    Candidate.job_id,
    Candidate.phone_hash,
    unique=True,
    postgresql_where=ACTIVE_CANDIDATE_PREDICATE,
    sqlite_where=ACTIVE_CANDIDATE_PREDICATE,
)
