"""
Drop redelivered webhook events by provider message id.
"""

import logging
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


class InboundDeduplicator:
    """First delivery of a message id claims it with ``SET NX EX``; later ones are refused."""

    def __init__(self, client, ttl_seconds: int = settings.WEBHOOK_DEDUP_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def claim(self, message_id: Optional[str]) -> bool:
        """
        Returns:
            True if the event should be processed. Events without an id are
            always processed.
        """
        if not message_id:
            return True
        claimed = self.client.set(f"webhook:msg:{message_id}", "1", nx=True, ex=self.ttl_seconds)
        if not claimed:
            logger.info(f"Duplicate delivery of message {message_id}, skipping")
        return bool(claimed)

