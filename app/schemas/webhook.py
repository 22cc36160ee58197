"""
Inbound chat message as delivered by the messaging provider webhook.
"""

from typing import Optional
from pydantic import BaseModel, Field


class InboundMessage(BaseModel):
    """Provider-neutral view of one inbound webhook event."""
    sender: str = Field(..., description="Provider sender id, e.g. 'whatsapp:+33612345678'")
    body: str = Field("", description="Message text (may be empty when only media is sent)")
    media_url: Optional[str] = None
    media_content_type: Optional[str] = None
    message_id: Optional[str] = Field(None, description="Provider message id, used for de-duplication")

    @property
    def has_media(self) -> bool:
        return bool(self.media_url)
