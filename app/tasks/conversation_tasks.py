"""
Background processing of inbound chat messages.

The webhook acknowledges the provider immediately and hands the event to
``process_inbound_message_task``. Each event is one unit of work:
de-duplicated by provider message id, then run through the conversation
orchestrator. Failures are logged and reported in the returned status, never
re-raised, so the broker does not redeliver them.
"""

import logging

from redis.exceptions import RedisError

from app.core.celery_app import celery_app
from app.core.database import SessionLocal
from app.core.encryption import DecryptionFormatError, get_phone_vault
from app.core.locks import CandidateLockTimeout, get_candidate_locks
from app.core.logging_config import mask_phone
from app.core.redis_client import get_redis
from app.schemas.webhook import InboundMessage
from app.services.conversation_service import ConversationOrchestrator
from app.services.credentials import CredentialResolver, ProviderCredentials
from app.services.dedup import InboundDeduplicator
from app.services.dialogue_agent import DialogueError
from app.services.job_router import ShortCodeStore

logger = logging.getLogger(__name__)


def build_orchestrator(db) -> ConversationOrchestrator:
    """Wire the orchestrator with the process-wide collaborators."""
    vault = get_phone_vault()
    return ConversationOrchestrator(
        db,
        short_codes=ShortCodeStore(get_redis()),
        resolver=CredentialResolver(ProviderCredentials.from_settings(), vault=vault),
        vault=vault,
        locks=get_candidate_locks(),
    )


@celery_app.task(name="app.tasks.conversation_tasks.process_inbound_message_task", bind=True)
def process_inbound_message_task(self, payload: dict):
    """
    Process one inbound webhook event.

    Args:
        self: Celery task instance (when bind=True)
        payload: ``InboundMessage`` fields as a JSON-serializable dict

    Returns:
        dict: status ("success", "duplicate", "dropped" or "error") and outcome
    """
    event = InboundMessage.model_validate(payload)
    logger.info(
        f"[Task {self.request.id}] Inbound message {event.message_id} from {mask_phone(event.sender)}"
        f"{' with media' if event.has_media else ''}"
    )

    try:
        claimed = InboundDeduplicator(get_redis()).claim(event.message_id)
    except RedisError as e:
        # Completion is idempotent, so a redelivery processed twice is tolerated
        logger.warning(f"[Task {self.request.id}] De-duplication unavailable, processing anyway: {e}")
        claimed = True
    if not claimed:
        return {"status": "duplicate", "message_id": event.message_id}

    db = SessionLocal()
    try:
        outcome = build_orchestrator(db).handle(event)
        logger.info(f"[Task {self.request.id}] Message {event.message_id} processed: {outcome}")
        return {"status": "success", "message_id": event.message_id, "outcome": outcome}

    except DialogueError as e:
        # No reply sent; the candidate retries by writing again
        logger.error(f"[Task {self.request.id}] Dialogue failure, event dropped: {e}", exc_info=True)
        return {"status": "dropped", "message_id": event.message_id, "message": str(e)}

    except CandidateLockTimeout as e:
        logger.error(f"[Task {self.request.id}] {e}, event dropped")
        return {"status": "dropped", "message_id": event.message_id, "message": str(e)}

    except DecryptionFormatError as e:
        logger.critical(f"[Task {self.request.id}] Corrupted encrypted data: {e}", exc_info=True)
        return {"status": "error", "message_id": event.message_id, "message": str(e)}

    except Exception as e:
        logger.error(f"[Task {self.request.id}] Unexpected error processing message: {e}", exc_info=True)
        db.rollback()
        return {"status": "error", "message_id": event.message_id, "message": str(e)}

    finally:
        db.close()
