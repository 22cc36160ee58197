import logging
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.encryption import DecryptionFormatError
from app.core.redis_client import get_redis
from app.crud import job as job_crud
from app.schemas.job import WhatsAppLinkResponse
from app.services.credentials import CredentialResolver, ProviderCredentials
from app.services.job_router import ShortCodeStore, build_whatsapp_link

router = APIRouter(prefix="/jobs", tags=["Jobs"])
logger = logging.getLogger(__name__)


def get_short_code_store() -> ShortCodeStore:
    return ShortCodeStore(get_redis())


def get_credential_resolver() -> CredentialResolver:
    return CredentialResolver(ProviderCredentials.from_settings())


@router.post("/{job_id}/whatsapp-link", status_code=201, response_model=WhatsAppLinkResponse)
def create_whatsapp_link(
    job_id: str,
    db: Session = Depends(get_db),
    short_codes: ShortCodeStore = Depends(get_short_code_store),
    resolver: CredentialResolver = Depends(get_credential_resolver),
):
    """
    Issue a short code for a job and return the click-to-chat link carrying it.

    The link opens WhatsApp on the organization's sending number with the text
    ``CODE-XXXXXX`` pre-filled. Every call issues a new code; earlier codes keep
    working until they expire.
    """
    job = job_crud.get_by_id(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    try:
        credentials = resolver.for_job(db, job)
    except DecryptionFormatError as e:
        logger.error(f"Corrupted credentials for job {job.id}: {e}")
        raise HTTPException(status_code=500, detail="Organization credentials are corrupted")

    if not credentials.twilio_whatsapp_number:
        raise HTTPException(status_code=409, detail="No WhatsApp sending number configured")

    link, code = build_whatsapp_link(short_codes, job.id, credentials.twilio_whatsapp_number)
    logger.info(f"WhatsApp link issued for job {job.id}")

    return WhatsAppLinkResponse(job_id=job.id, short_code=code, link=link)
