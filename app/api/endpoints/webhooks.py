"""
Messaging provider webhook.

The provider expects an immediate 200 acknowledgment. Processing happens in a
Celery worker; nothing that goes wrong here or downstream changes the response,
otherwise the provider would retry the delivery.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Form
from fastapi.responses import PlainTextResponse

from app.core.celery_utils import queue_task_safely
from app.core.logging_config import mask_phone
from app.schemas.webhook import InboundMessage
from app.tasks.conversation_tasks import process_inbound_message_task

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger(__name__)

ACK_BODY = "Message reçu"


@router.post("/whatsapp", response_class=PlainTextResponse)
def whatsapp_webhook(
    From: str = Form(""),
    Body: str = Form(""),
    MediaUrl0: Optional[str] = Form(None),
    MediaContentType0: Optional[str] = Form(None),
    MessageSid: Optional[str] = Form(None),
):
    """
    Receive an inbound WhatsApp message (Twilio form payload).

    Form fields:
    - From: sender id, e.g. ``whatsapp:+33612345678``
    - Body: message text
    - MediaUrl0 / MediaContentType0: first attachment, if any
    - MessageSid: provider message id, used for de-duplication
    """
    if not From:
        logger.warning(f"Webhook message {MessageSid} without sender, ignored")
        return PlainTextResponse(ACK_BODY, status_code=200)

    event = InboundMessage(
        sender=From,
        body=Body or "",
        media_url=MediaUrl0 or None,
        media_content_type=MediaContentType0 or None,
        message_id=MessageSid,
    )
    logger.info(f"Webhook message {MessageSid} from {mask_phone(From)}")

    if not queue_task_safely(process_inbound_message_task, event.model_dump()):
        logger.error(f"Message {MessageSid} could not be queued and is lost")

    return PlainTextResponse(ACK_BODY, status_code=200)
