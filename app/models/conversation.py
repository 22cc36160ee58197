"""
Conversation database model.

Holds the append-only transcript and the interview step of one candidate.
Transcript entries are ``{"role": "candidate" | "agent", "content", "timestamp"}``.
"""

import enum
import uuid
from sqlalchemy import Column, String, ForeignKey, DateTime, Uuid, func
from sqlalchemy.orm import relationship
from app.core.database import Base, JSONType


class ConversationStep(str, enum.Enum):
    """Interview state machine, in flow order."""
    INTRO = "intro"
    NAME = "name"
    EMAIL = "email"
    CV = "cv"
    QUESTIONS = "questions"
    WRAPUP = "wrapup"
    COMPLETED = "completed"


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    candidate_id = Column(Uuid, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    messages = Column(JSONType, nullable=False, default=list)
    current_step = Column(String, nullable=False, default=ConversationStep.INTRO.value)

    # Set exactly once; guards finalization against duplicate delivery
    completed_at = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    candidate = relationship("Candidate", back_populates="conversation")

    def __repr__(self):
        return f"<Conversation(candidate_id={self.candidate_id}, step={self.current_step})>"
