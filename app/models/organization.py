"""
Organization and per-organization provider credentials.

Organizations are managed by the dashboard; the screening engine only reads
them to resolve which API keys a job owner's conversations run under.
"""

import uuid
from sqlalchemy import Column, String, ForeignKey, DateTime, Uuid, func
from sqlalchemy.orm import relationship
from app.core.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    jobs = relationship("Job", back_populates="organization")
    api_config = relationship("OrganizationApiConfig", back_populates="organization", uselist=False)

    def __repr__(self):
        return f"<Organization(id={self.id}, name='{self.name}')>"


class OrganizationApiConfig(Base):
    """
    Provider and model credentials of one organization.

    Secret columns hold vault ciphertext (``<iv>:<ciphertext>``); the sending
    number, bucket and region are stored in clear. Any column left null falls
    back to the process-wide default.
    """
    __tablename__ = "organization_api_configs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    openai_api_key = Column(String, nullable=True)
    twilio_account_sid = Column(String, nullable=True)
    twilio_auth_token = Column(String, nullable=True)
    twilio_whatsapp_number = Column(String, nullable=True)
    aws_access_key_id = Column(String, nullable=True)
    aws_secret_access_key = Column(String, nullable=True)
    aws_s3_bucket = Column(String, nullable=True)
    aws_region = Column(String, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization", back_populates="api_config")
