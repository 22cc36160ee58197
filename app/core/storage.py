"""
Résumé archive storage supporting AWS S3 and the local filesystem.

Archival is best-effort: callers treat any exception from ``upload_bytes`` as a
logged, non-fatal event.
"""

import os
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings


class StorageError(Exception):
    """Upload to the archive backend failed."""
    pass


class StorageBackend:
    """Abstract base class for storage backends"""

    def upload_bytes(self, data: bytes, key: str, content_type: Optional[str] = None) -> str:
        """Store bytes under key and return the resulting URL/path"""
        raise NotImplementedError


class LocalStorage(StorageBackend):
    """Local filesystem storage backend (development)"""

    def __init__(self, base_dir: str = "uploads"):
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)

    def upload_bytes(self, data: bytes, key: str, content_type: Optional[str] = None) -> str:
        file_path = os.path.join(self.base_dir, *key.split("/"))
        os.makedirs(os.path.dirname(file_path), exist_ok=True)

        with open(file_path, "wb") as buffer:
            buffer.write(data)

        return file_path


class S3Storage(StorageBackend):
    """AWS S3 storage backend"""

    def __init__(self, bucket: str, region: str, access_key_id: str, secret_access_key: str):
        self.bucket_name = bucket
        self.region = region
        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region
        )

    def upload_bytes(self, data: bytes, key: str, content_type: Optional[str] = None) -> str:
        """Upload bytes to S3 and return the object URL"""
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type or 'application/octet-stream',
                ServerSideEncryption='AES256'  # Enable encryption at rest
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to upload file to S3: {e}") from e

        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"


def get_storage(credentials) -> Optional[StorageBackend]:
    """
    Pick the archive backend for a credential set.

    S3 when the credentials carry a full AWS configuration, the local directory
    when LOCAL_ARCHIVE_DIR is set, otherwise None (archival skipped).
    """
    if credentials.aws_access_key_id and credentials.aws_secret_access_key and credentials.aws_s3_bucket:
        return S3Storage(
            bucket=credentials.aws_s3_bucket,
            region=credentials.aws_region or settings.AWS_REGION,
            access_key_id=credentials.aws_access_key_id,
            secret_access_key=credentials.aws_secret_access_key,
        )
    if settings.LOCAL_ARCHIVE_DIR:
        return LocalStorage(settings.LOCAL_ARCHIVE_DIR)
    return None
