"""
Pydantic schemas for short-code links of jobs.
"""

import uuid
from pydantic import BaseModel


class WhatsAppLinkResponse(BaseModel):
    """Short code issued for a job and the click-to-chat link embedding it."""
    job_id: uuid.UUID
    short_code: str
    link: str
