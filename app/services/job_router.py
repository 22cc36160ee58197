"""
Job routing for inbound chat messages.

A message is attached to a job either through the short code embedded in the
candidate's first message (``CODE-AB12CD``), or, for follow-up messages, through
the open interview of the sender's phone hash.
"""

import logging
import re
import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.encryption import PhoneVault
from app.crud import candidate as candidate_crud

logger = logging.getLogger(__name__)

SHORT_CODE_LENGTH = 6
_CODE_RE = re.compile(
    rf"{re.escape(settings.SHORT_CODE_PREFIX)}-([A-Z0-9]{{{SHORT_CODE_LENGTH}}})\b",
    re.IGNORECASE,
)


def extract_code(message: str) -> Optional[str]:
    """Return the uppercased short code found in a message, if any."""
    match = _CODE_RE.search(message or "")
    return match.group(1).upper() if match else None


def strip_code(message: str) -> str:
    """Remove the routing code token so it is not mistaken for a reply."""
    return _CODE_RE.sub("", message or "").strip()


def generate_short_code() -> str:
    return secrets.token_hex(3).upper()


class ShortCodeStore:
    """
    Ephemeral ``job:<CODE> -> job_id`` mapping in Redis.

    Codes are routing hints only: reading one never invalidates it, and a job
    can be re-coded any number of times.
    """

    def __init__(self, client, ttl_seconds: int = settings.SHORT_CODE_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(code: str) -> str:
        return f"job:{code.upper()}"

    def create_mapping(self, job_id) -> str:
        """Issue a new code for a job and return it."""
        code = generate_short_code()
        self.client.setex(self._key(code), self.ttl_seconds, str(job_id))
        logger.info(f"Issued short code {code} for job {job_id}")
        return code

    def get_job_id(self, code: str) -> Optional[str]:
        return self.client.get(self._key(code))


def build_whatsapp_link(store: ShortCodeStore, job_id, whatsapp_number: str):
    """
    Issue a code for a job and build the click-to-chat link carrying it.

    Returns:
        Tuple of (link, short_code)
    """
    code = store.create_mapping(job_id)
    number = whatsapp_number.replace("whatsapp:", "").replace("+", "").strip()
    text = quote(f"{settings.SHORT_CODE_PREFIX}-{code}")
    return f"https://wa.me/{number}?text={text}", code


@dataclass
class RouteResult:
    job_id: Optional[str]
    via: Optional[str]  # "code" | "phone" | None
    reply_text: str  # message text with the routing code removed

    @property
    def resolved(self) -> bool:
        return self.job_id is not None


class JobRouter:
    def __init__(self, db: Session, short_codes: ShortCodeStore, vault: PhoneVault):
        self.db = db
        self.short_codes = short_codes
        self.vault = vault

    def resolve(self, body: str, phone: str) -> RouteResult:
        """
        Resolve the job an inbound message belongs to.

        Tries the short code first, then the sender's open interview, most
        recent first. An unresolved result means no candidate may be created.
        """
        reply_text = strip_code(body)

        code = extract_code(body)
        if code:
            job_id = self.short_codes.get_job_id(code)
            if job_id:
                logger.info(f"Routed message to job {job_id} via code {code}")
                return RouteResult(job_id=job_id, via="code", reply_text=reply_text)
            logger.info(f"Short code {code} is unknown or expired, trying phone lookup")

        open_candidate = candidate_crud.find_open_by_phone_hash(self.db, self.vault.hash_phone(phone))
        if open_candidate:
            logger.info(f"Routed message to job {open_candidate.job_id} via open conversation")
            return RouteResult(job_id=str(open_candidate.job_id), via="phone", reply_text=reply_text)

        return RouteResult(job_id=None, via=None, reply_text=reply_text)
