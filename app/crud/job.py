"""
CRUD operations for Job model.

Jobs are created and edited by the dashboard; the screening engine only reads them.
"""

import uuid
from typing import Optional
from sqlalchemy.orm import Session, joinedload
from app.models.job import Job


def get_by_id(db: Session, job_id) -> Optional[Job]:
    """
    Retrieve a job by its ID, with its organization loaded.

    Args:
        db: Database session
        job_id: Job ID (UUID or its string form)

    Returns:
        Job instance if found, None otherwise
    """
    try:
        job_uuid = job_id if isinstance(job_id, uuid.UUID) else uuid.UUID(str(job_id))
    except ValueError:
        return None

    return (
        db.query(Job)
        .options(joinedload(Job.organization))
        .filter(Job.id == job_uuid)
        .first()
    )
