"""
CRUD operations for Candidate model.

Find-or-create is a single INSERT ... ON CONFLICT DO NOTHING against the
partial unique index on (job_id, phone_hash), so concurrent first contacts
from the same sender can never create two live candidates.
"""

import logging
import uuid
from typing import Optional, Tuple
from sqlalchemy.orm import Session
from app.core.database import dialect_insert
from app.models.candidate import Candidate, CandidateStatus, ACTIVE_CANDIDATE_PREDICATE
from app.models.conversation import Conversation
from app.schemas.scoring import ScoreResult

logger = logging.getLogger(__name__)


def find_by_job_and_phone_hash(db: Session, job_id, phone_hash: str) -> Optional[Candidate]:
    """Return the live candidate of a job for a phone hash, if any."""
    return (
        db.query(Candidate)
        .filter(
            Candidate.job_id == job_id,
            Candidate.phone_hash == phone_hash,
            ACTIVE_CANDIDATE_PREDICATE,
        )
        .first()
    )


def find_open_by_phone_hash(db: Session, phone_hash: str) -> Optional[Candidate]:
    """
    Most recent live candidate for a phone hash whose interview is still open.

    Used to route follow-up messages, which no longer carry the job code.
    """
    return (
        db.query(Candidate)
        .join(Conversation, Conversation.candidate_id == Candidate.id)
        .filter(
            Candidate.phone_hash == phone_hash,
            ACTIVE_CANDIDATE_PREDICATE,
            Conversation.completed_at.is_(None),
        )
        .order_by(Candidate.created_at.desc())
        .first()
    )


def upsert_for_job_and_phone(
    db: Session,
    job_id,
    phone_hash: str,
    encrypted_phone: str,
) -> Tuple[Candidate, bool]:
    """
    Atomically find or create the candidate for (job, phone hash).

    Args:
        db: Database session
        job_id: Job the candidate applies to
        phone_hash: Vault hash of the sender's number
        encrypted_phone: Vault ciphertext of the sender's number (only used on insert)

    Returns:
        Tuple of (candidate, created)
    """
    insert = dialect_insert(db)
    stmt = (
        insert(Candidate)
        .values(
            id=uuid.uuid4(),
            job_id=job_id,
            phone_number=encrypted_phone,
            phone_hash=phone_hash,
            status=CandidateStatus.IN_PROGRESS,
            is_deleted=False,
        )
        .on_conflict_do_nothing(
            index_elements=["job_id", "phone_hash"],
            index_where=ACTIVE_CANDIDATE_PREDICATE,
        )
    )
    result = db.execute(stmt)
    db.commit()

    created = result.rowcount == 1
    candidate = find_by_job_and_phone_hash(db, job_id, phone_hash)
    if created:
        logger.info(f"Created candidate {candidate.id} for job {job_id}")
    return candidate, created


def update_fields(db: Session, candidate: Candidate, **fields) -> Candidate:
    """
    Set the given attributes on a candidate and commit.

    Returns:
        The refreshed candidate
    """
    for key, value in fields.items():
        setattr(candidate, key, value)
    db.commit()
    db.refresh(candidate)
    return candidate


def save_score(
    db: Session,
    candidate: Candidate,
    result: ScoreResult,
    summary: str,
    commit: bool = True,
) -> Candidate:
    """
    Persist a finalization result and mark the candidate COMPLETED.

    With commit=False the changes stay in the session's transaction so the
    caller can commit them together with the conversation's completion.
    """
    candidate.score = result.total_score
    candidate.score_details = [detail.model_dump(mode="json") for detail in result.details]
    candidate.recommendation = result.recommendation
    candidate.summary = summary
    candidate.status = CandidateStatus.COMPLETED
    if commit:
        db.commit()
        db.refresh(candidate)
    return candidate
