"""
Database models package.
"""

from app.models.organization import Organization, OrganizationApiConfig
from app.models.job import Job
from app.models.candidate import Candidate, CandidateStatus
from app.models.conversation import Conversation, ConversationStep

__all__ = [
    "Organization",
    "OrganizationApiConfig",
    "Job",
    "Candidate",
    "CandidateStatus",
    "Conversation",
    "ConversationStep",
]
