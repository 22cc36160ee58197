"""
Per-organization provider credentials.

Each job owner's organization may store its own model, messaging and storage
keys. ``CredentialResolver`` returns those (decrypted), falling back field by
field to a default set injected at construction time.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.encryption import PhoneVault, get_phone_vault
from app.models.organization import OrganizationApiConfig

logger = logging.getLogger(__name__)

_ENCRYPTED_FIELDS = (
    "openai_api_key",
    "twilio_account_sid",
    "twilio_auth_token",
    "aws_access_key_id",
    "aws_secret_access_key",
)
_PLAIN_FIELDS = (
    "twilio_whatsapp_number",
    "aws_s3_bucket",
    "aws_region",
)


@dataclass(frozen=True)
class ProviderCredentials:
    openai_api_key: str = ""
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_whatsapp_number: str = ""
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_s3_bucket: Optional[str] = None
    aws_region: Optional[str] = None

    @classmethod
    def from_settings(cls) -> "ProviderCredentials":
        """Process-wide defaults from the environment."""
        return cls(
            openai_api_key=settings.OPENAI_API_KEY,
            twilio_account_sid=settings.TWILIO_ACCOUNT_SID,
            twilio_auth_token=settings.TWILIO_AUTH_TOKEN,
            twilio_whatsapp_number=settings.TWILIO_WHATSAPP_NUMBER,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            aws_s3_bucket=settings.AWS_S3_BUCKET,
            aws_region=settings.AWS_REGION,
        )


class CredentialResolver:
    """Resolve the credentials a job's conversations run under."""

    def __init__(self, defaults: ProviderCredentials, vault: Optional[PhoneVault] = None):
        self._defaults = defaults
        self._vault = vault

    @property
    def vault(self) -> PhoneVault:
        if self._vault is None:
            self._vault = get_phone_vault()
        return self._vault

    def default(self) -> ProviderCredentials:
        """Credentials for messages that belong to no job (e.g. routing guidance)."""
        return self._defaults

    def for_organization(self, db: Session, organization_id) -> ProviderCredentials:
        """
        Organization credentials, each missing field taken from the defaults.

        Raises:
            DecryptionFormatError: a stored secret is corrupted
        """
        if organization_id is None:
            return self._defaults

        config = (
            db.query(OrganizationApiConfig)
            .filter(OrganizationApiConfig.organization_id == organization_id)
            .first()
        )
        if not config:
            return self._defaults

        overrides = {}
        for field in _ENCRYPTED_FIELDS:
            value = getattr(config, field)
            if value:
                overrides[field] = self.vault.decrypt(value)
        for field in _PLAIN_FIELDS:
            value = getattr(config, field)
            if value:
                overrides[field] = value

        logger.debug(f"Resolved {len(overrides)} organization credential fields for {organization_id}")
        return replace(self._defaults, **overrides)

    def for_job(self, db: Session, job) -> ProviderCredentials:
        return self.for_organization(db, job.organization_id)
