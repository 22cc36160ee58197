"""
Résumé ingestion from a chat attachment.

Pipeline:
1. Download the attachment from the messaging provider (httpx, basic auth)
2. Extract raw text (pdfplumber for PDF, docx2txt for DOCX)
3. Structured extraction with the language model into ``ResumeData``
4. Archive the original file (best-effort, never fails the pipeline)

Only steps 1-3 decide success. Every failure raises an ``IngestionError``
subclass whose message is safe to show (truncated) to the candidate.
"""

import logging
import time
from dataclasses import dataclass
from io import BytesIO
from typing import Callable, Optional

import docx2txt
import httpx
import pdfplumber
from openai import OpenAIError
from pydantic import ValidationError

from app.core.config import settings
from app.core.llm import LLMClient, LLMResponseError
from app.core.storage import StorageBackend
from app.schemas.resume import ResumeData

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 50


class IngestionError(Exception):
    """Base class for résumé ingestion failures."""
    pass


class MediaFetchError(IngestionError):
    """The attachment could not be downloaded (non-2xx, network error, empty or oversized)."""
    pass


class UnsupportedFormatError(IngestionError):
    """No text extractor exists for this file type, or the file could not be read."""
    pass


class EmptyDocumentError(IngestionError):
    """The document yielded (almost) no text, e.g. a scanned image."""
    pass


class ResumeExtractionError(IngestionError):
    """The structured extraction step failed."""
    pass


def extension_for_content_type(content_type: Optional[str]) -> str:
    """
    Map a provider content type to a file extension.

    PDF is assumed when the provider sends no content type.
    """
    if not content_type:
        return ".pdf"
    content_type = content_type.lower()
    if "pdf" in content_type:
        return ".pdf"
    if "word" in content_type or "msword" in content_type or "document" in content_type:
        return ".docx"
    if "/" in content_type:
        return "." + content_type.rsplit("/", 1)[1].split(";")[0].strip()
    return ".bin"


def download_media(
    media_url: str,
    credentials,
    timeout: float = settings.MEDIA_DOWNLOAD_TIMEOUT_SECONDS,
    transport: Optional[httpx.BaseTransport] = None,
) -> bytes:
    """
    Download an attachment with the provider account credentials.

    The body is streamed and the download aborted as soon as it exceeds
    MEDIA_MAX_BYTES.

    Raises:
        MediaFetchError: non-2xx status, network error, empty or oversized payload
    """
    max_bytes = settings.MEDIA_MAX_BYTES
    chunks = []
    size = 0
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True, transport=transport) as client:
            with client.stream(
                "GET",
                media_url,
                auth=(credentials.twilio_account_sid, credentials.twilio_auth_token),
            ) as response:
                if not response.is_success:
                    raise MediaFetchError(f"Download failed: HTTP {response.status_code}")

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > max_bytes:
                    raise MediaFetchError(f"File too large ({declared} bytes)")

                for chunk in response.iter_bytes():
                    size += len(chunk)
                    if size > max_bytes:
                        raise MediaFetchError(f"File too large (over {max_bytes} bytes)")
                    chunks.append(chunk)
    except httpx.HTTPError as e:
        raise MediaFetchError(f"Download failed: {e}") from e

    if not size:
        raise MediaFetchError("Downloaded file is empty")

    logger.info(f"Downloaded media: {size} bytes")
    return b"".join(chunks)


def extract_text(data: bytes, extension: str) -> str:
    """
    Extract raw text from a document.

    Raises:
        UnsupportedFormatError: no extractor for the extension, or unreadable file
        EmptyDocumentError: fewer than MIN_TEXT_LENGTH non-blank characters
    """
    extension = extension.lower()

    if extension == ".pdf":
        try:
            pages = []
            with pdfplumber.open(BytesIO(data)) as pdf:
                for page in pdf.pages:
                    text = page.extract_text()
                    if text:
                        pages.append(text)
            extracted = "\n".join(pages)
        except Exception as e:
            # pdfminer raises a wide range of parser exceptions on corrupt files
            raise UnsupportedFormatError(f"Unreadable PDF: {e}") from e

    elif extension == ".docx":
        try:
            extracted = docx2txt.process(BytesIO(data)) or ""
        except Exception as e:
            raise UnsupportedFormatError(f"Unreadable DOCX: {e}") from e

    elif extension == ".doc":
        raise UnsupportedFormatError("Legacy .doc format is not supported, please send a PDF or DOCX")

    else:
        raise UnsupportedFormatError(f"Unsupported file format: {extension}")

    if len(extracted.strip()) < MIN_TEXT_LENGTH:
        raise EmptyDocumentError("The document seems empty or is a scanned image")

    logger.debug(f"Extracted {len(extracted)} chars from {extension.upper()}")
    return extracted


def _extraction_prompt(text: str) -> str:
    limit = settings.RESUME_TEXT_LIMIT
    excerpt = text[:limit] + (" ..." if len(text) > limit else "")
    return f"""Analyze this CV and extract the following information.

CV:
{excerpt}

Return ONLY a valid JSON object with exactly these keys:
{{
  "name": "Full name or null",
  "email": "Email or null",
  "phone": "Phone number or null",
  "years_of_experience": total years of professional experience (number) or null,
  "current_position": "Current job title or null",
  "current_company": "Current employer or null",
  "skills": ["Technical and professional skills"],
  "languages": ["Spoken languages with level"],
  "education": ["Degrees and diplomas"],
  "experience": [
    {{
      "title": "Job title",
      "company": "Employer",
      "duration": "Period, e.g. 2020-2023",
      "description": "Short description of the role"
    }}
  ]
}}

Use null for missing values and an empty list for missing collections. Never omit a key."""


def parse_resume(text: str, llm: LLMClient) -> ResumeData:
    """
    Structured extraction of a résumé.

    Raises:
        ResumeExtractionError: model call failed, invalid JSON or schema mismatch
    """
    try:
        raw = llm.complete_json(
            [
                {"role": "system", "content": "You are an expert CV analyst. You answer only with valid JSON."},
                {"role": "user", "content": _extraction_prompt(text)},
            ],
            temperature=settings.EXTRACTION_TEMPERATURE,
        )
        return ResumeData.model_validate(raw)
    except (OpenAIError, LLMResponseError, ValidationError) as e:
        logger.error(f"Structured CV extraction failed: {e}")
        raise ResumeExtractionError("Could not analyze the CV, please check the file") from e


@dataclass
class IngestionResult:
    resume: ResumeData
    cv_url: Optional[str]
    extension: str


class MediaIngestionPipeline:
    """Download, parse and archive a candidate's CV attachment."""

    def __init__(
        self,
        llm: LLMClient,
        storage: Optional[StorageBackend] = None,
        downloader: Callable[..., bytes] = download_media,
    ):
        self.llm = llm
        self.storage = storage
        self.downloader = downloader

    def ingest(self, media_url: str, content_type: Optional[str], credentials, candidate_id) -> IngestionResult:
        """
        Run the pipeline for one attachment.

        Raises:
            IngestionError: any mandatory step failed
        """
        extension = extension_for_content_type(content_type)
        logger.info(f"Ingesting CV for candidate {candidate_id} ({content_type or 'no content type'} -> {extension})")

        data = self.downloader(media_url, credentials)
        text = extract_text(data, extension)
        resume = parse_resume(text, self.llm)
        logger.info(
            f"CV parsed for candidate {candidate_id}: "
            f"{len(resume.skills)} skills, {len(resume.experience)} roles"
        )

        cv_url = self._archive(data, extension, content_type, candidate_id)
        return IngestionResult(resume=resume, cv_url=cv_url, extension=extension)

    def _archive(self, data: bytes, extension: str, content_type: Optional[str], candidate_id) -> Optional[str]:
        if self.storage is None:
            logger.info("No archive storage configured, skipping CV upload")
            return None

        key = f"cvs/{candidate_id}/{int(time.time() * 1000)}{extension}"
        try:
            url = self.storage.upload_bytes(data, key, content_type)
        except Exception as e:
            logger.warning(f"CV archival failed for candidate {candidate_id} (ignored): {e}")
            return None

        logger.info(f"CV archived for candidate {candidate_id}: {key}")
        return url

