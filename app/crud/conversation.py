"""
CRUD operations for Conversation model.

The transcript is append-only. JSON columns are replaced with a new list on
every append so SQLAlchemy sees the change.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from app.core.database import dialect_insert
from app.models.conversation import Conversation, ConversationStep


def transcript_entry(role: str, content: str) -> Dict[str, str]:
    """Build one transcript entry stamped with the current UTC time."""
    return {
        "role": role,
        "content": content,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def get_by_candidate(db: Session, candidate_id) -> Optional[Conversation]:
    return db.query(Conversation).filter(Conversation.candidate_id == candidate_id).first()


def get_or_create(db: Session, candidate_id) -> Conversation:
    """Atomically create the conversation of a candidate if it does not exist yet."""
    insert = dialect_insert(db)
    stmt = (
        insert(Conversation)
        .values(
            id=uuid.uuid4(),
            candidate_id=candidate_id,
            messages=[],
            current_step=ConversationStep.INTRO.value,
        )
        .on_conflict_do_nothing(index_elements=["candidate_id"])
    )
    db.execute(stmt)
    db.commit()
    return get_by_candidate(db, candidate_id)


def append_entries(
    db: Session,
    conversation: Conversation,
    entries: List[Dict[str, str]],
    step: Optional[str] = None,
) -> Conversation:
    """
    Append transcript entries (in order) and optionally move to a new step.

    Args:
        db: Database session
        conversation: Conversation to update
        entries: Entries built with transcript_entry()
        step: New current step, unchanged if None

    Returns:
        The refreshed conversation
    """
    conversation.messages = [*(conversation.messages or []), *entries]
    if step is not None:
        conversation.current_step = step
    db.commit()
    db.refresh(conversation)
    return conversation


def mark_completed(db: Session, conversation: Conversation, commit: bool = True) -> bool:
    """
    Compare-and-set the completion timestamp.

    Args:
        db: Database session
        conversation: Conversation to close
        commit: Commit immediately; pass False to commit together with the score

    Returns:
        True only for the caller that flipped completed_at from NULL; duplicate
        deliveries get False and must not finalize again.
    """
    updated = (
        db.query(Conversation)
        .filter(Conversation.id == conversation.id, Conversation.completed_at.is_(None))
        .update(
            {
                Conversation.completed_at: datetime.now(timezone.utc),
                Conversation.current_step: ConversationStep.COMPLETED.value,
            },
            synchronize_session=False,
        )
    )
    if commit:
        db.commit()
        db.refresh(conversation)
    return updated == 1
