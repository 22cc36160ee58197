"""
Conversation orchestrator: the per-event state machine of a screening interview.

For every inbound event:
1. Resolve the job (short code, then open interview of the sender)
2. Atomically find-or-create the candidate for (job, phone hash)
3. Under the candidate lock: route to CV ingestion or to the dialogue agent,
   persist transcript and step, and finalize on completion
4. Send exactly one outbound message

Persisted state is the source of truth: outbound delivery failures are logged
and never roll anything back.
"""

import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.encryption import PhoneVault, normalize_phone
from app.core.llm import LLMClient
from app.core.logging_config import mask_phone
from app.core.storage import get_storage
from app.crud import candidate as candidate_crud
from app.crud import conversation as conversation_crud
from app.crud import job as job_crud
from app.models.candidate import Candidate
from app.models.conversation import Conversation, ConversationStep
from app.models.job import Job
from app.schemas.webhook import InboundMessage
from app.services.credentials import CredentialResolver, ProviderCredentials
from app.services.dialogue_agent import (
    CV_RECEIVED_INSTRUCTION,
    AgentContext,
    DialogueAgent,
    is_name_reply,
    looks_like_email,
)
from app.services.job_router import JobRouter, ShortCodeStore
from app.services.media_ingestion import IngestionError, MediaIngestionPipeline, download_media
from app.services.scoring_engine import ScoringEngine, generate_summary
from app.services.whatsapp_service import MessageDeliveryError, WhatsAppClient

logger = logging.getLogger(__name__)

NO_JOB_MESSAGE = (
    "Bonjour ! Pour postuler, veuillez utiliser le lien WhatsApp fourni dans "
    "l'offre d'emploi. Merci."
)
JOB_NOT_FOUND_MESSAGE = "Offre d'emploi non trouvée. Veuillez contacter le recruteur."
ALREADY_SUBMITTED_MESSAGE = (
    "Votre candidature a déjà été transmise au recruteur. "
    "Il reviendra vers vous prochainement. Merci !"
)
CV_ACK_MESSAGE = (
    "Merci ! J'ai bien reçu votre CV. Je vais maintenant vous poser quelques "
    "questions pour mieux comprendre votre profil."
)
CV_ERROR_TEMPLATE = (
    "Désolé, je n'ai pas pu traiter votre CV ({error}). Veuillez réessayer avec "
    "un fichier PDF valide (moins de 10MB)."
)
CV_PLACEHOLDER = "[CV envoyé]"
ERROR_HINT_LENGTH = 80

ROLE_CANDIDATE = "candidate"
ROLE_AGENT = "agent"


class Outcome:
    """Result labels reported back to the background task."""
    NO_JOB = "no_job"
    JOB_NOT_FOUND = "job_not_found"
    ALREADY_COMPLETED = "already_completed"
    CV_INGESTED = "cv_ingested"
    CV_REJECTED = "cv_rejected"
    REPLIED = "replied"
    COMPLETED = "completed"


def candidate_replies(messages: List[dict]) -> List[str]:
    """Candidate turns of a transcript, in order, without CV placeholders."""
    return [
        entry.get("content", "")
        for entry in messages or []
        if entry.get("role") == ROLE_CANDIDATE and entry.get("content") != CV_PLACEHOLDER
    ]


class ConversationOrchestrator:
    """
    Drive one inbound event through routing, dialogue or ingestion, and scoring.

    Collaborators are injected so tests and workers can swap in their own:
    ``llm_factory(api_key)``, ``messenger_factory(credentials)`` and
    ``storage_factory(credentials)`` build per-organization clients.
    """

    def __init__(
        self,
        db: Session,
        short_codes: ShortCodeStore,
        resolver: CredentialResolver,
        vault: PhoneVault,
        locks,
        llm_factory: Callable[[str], LLMClient] = LLMClient,
        messenger_factory: Callable[[ProviderCredentials], WhatsAppClient] = WhatsAppClient,
        storage_factory: Callable = get_storage,
        downloader: Callable[..., bytes] = download_media,
    ):
        self.db = db
        self.short_codes = short_codes
        self.resolver = resolver
        self.vault = vault
        self.locks = locks
        self.llm_factory = llm_factory
        self.messenger_factory = messenger_factory
        self.storage_factory = storage_factory
        self.downloader = downloader

    def handle(self, event: InboundMessage) -> str:
        """
        Process one inbound event.

        Returns:
            One of the ``Outcome`` labels

        Raises:
            DialogueError: the dialogue model failed; nothing was sent
            CandidateLockTimeout: another event for the candidate held the lock too long
            DecryptionFormatError: stored organization credentials are corrupted
        """
        phone = normalize_phone(event.sender)
        route = JobRouter(self.db, self.short_codes, self.vault).resolve(event.body, phone)

        if not route.resolved:
            logger.info(f"No job for message from {mask_phone(phone)}, sending guidance")
            self._send(self.resolver.default(), phone, NO_JOB_MESSAGE)
            return Outcome.NO_JOB

        job = job_crud.get_by_id(self.db, route.job_id)
        if not job:
            logger.warning(f"Job {route.job_id} resolved via {route.via} no longer exists")
            self._send(self.resolver.default(), phone, JOB_NOT_FOUND_MESSAGE)
            return Outcome.JOB_NOT_FOUND

        credentials = self.resolver.for_job(self.db, job)
        candidate, created = candidate_crud.upsert_for_job_and_phone(
            self.db,
            job_id=job.id,
            phone_hash=self.vault.hash_phone(phone),
            encrypted_phone=self.vault.encrypt_phone(phone),
        )
        if created:
            logger.info(f"New candidate {candidate.id} for job {job.id} from {mask_phone(phone)}")

        with self.locks.hold(candidate.id):
            self.db.refresh(candidate)
            conversation = conversation_crud.get_or_create(self.db, candidate.id)

            if conversation.completed_at is not None:
                logger.info(f"Candidate {candidate.id} already completed, not re-entering the interview")
                self._send(credentials, phone, ALREADY_SUBMITTED_MESSAGE)
                return Outcome.ALREADY_COMPLETED

            llm = self.llm_factory(credentials.openai_api_key)

            if conversation.current_step == ConversationStep.COMPLETED.value:
                # Closing turn was persisted but scoring never committed
                logger.warning(f"Candidate {candidate.id} reached completed without a score, finalizing now")
                self._finalize(candidate, conversation, job, llm)
                self._send(credentials, phone, ALREADY_SUBMITTED_MESSAGE)
                return Outcome.COMPLETED

            if event.has_media and not candidate.resume_data:
                reply, outcome = self._handle_media(event, candidate, conversation, job, credentials, llm)
                self._send(credentials, phone, reply)
                return outcome

            reply, finished = self._handle_text(event, route.reply_text, candidate, conversation, job, llm)
            try:
                self._send(credentials, phone, reply)
            finally:
                if finished:
                    self._finalize(candidate, conversation, job, llm)
            return Outcome.COMPLETED if finished else Outcome.REPLIED

    def _agent_context(self, candidate: Candidate, conversation: Conversation, job: Job, step: str) -> AgentContext:
        return AgentContext(
            job_title=job.title,
            job_description=job.description,
            essential_criteria=job.essential_criteria or [],
            nice_to_have_criteria=job.nice_to_have_criteria or [],
            company_name=job.organization.name if job.organization else None,
            transcript=list(conversation.messages or []),
            current_step=step,
            candidate_name=candidate.name,
            candidate_email=candidate.email,
            cv_received=candidate.resume_data is not None,
        )

    def _handle_media(
        self,
        event: InboundMessage,
        candidate: Candidate,
        conversation: Conversation,
        job: Job,
        credentials: ProviderCredentials,
        llm: LLMClient,
    ) -> Tuple[str, str]:
        pipeline = MediaIngestionPipeline(
            llm,
            storage=self._storage_for(credentials),
            downloader=self.downloader,
        )
        try:
            result = pipeline.ingest(event.media_url, event.media_content_type, credentials, candidate.id)
        except IngestionError as e:
            logger.warning(f"CV rejected for candidate {candidate.id}: {e}")
            hint = str(e)[:ERROR_HINT_LENGTH]
            return CV_ERROR_TEMPLATE.format(error=hint), Outcome.CV_REJECTED

        fields = {
            "resume_data": result.resume.model_dump(mode="json"),
            "cv_url": result.cv_url,
        }
        if result.resume.name:
            fields["name"] = result.resume.name
        if result.resume.email:
            fields["email"] = result.resume.email
        candidate = candidate_crud.update_fields(self.db, candidate, **fields)

        # The first question is generated from an instruction, not a candidate turn
        context = self._agent_context(candidate, conversation, job, ConversationStep.QUESTIONS.value)
        agent_reply = DialogueAgent(llm).reply(CV_RECEIVED_INSTRUCTION, context)

        conversation_crud.append_entries(
            self.db,
            conversation,
            [
                conversation_crud.transcript_entry(ROLE_CANDIDATE, CV_PLACEHOLDER),
                conversation_crud.transcript_entry(ROLE_AGENT, agent_reply.utterance),
            ],
            step=ConversationStep.QUESTIONS.value,
        )
        logger.info(f"CV ingested for candidate {candidate.id}, moving to questions")
        return f"{CV_ACK_MESSAGE}\n\n{agent_reply.utterance}", Outcome.CV_INGESTED

    def _handle_text(
        self,
        event: InboundMessage,
        reply_text: str,
        candidate: Candidate,
        conversation: Conversation,
        job: Job,
        llm: LLMClient,
    ) -> Tuple[str, bool]:
        step = conversation.current_step
        body = event.body or (CV_PLACEHOLDER if event.has_media else "")

        captured = self._capture_fields(candidate, step, reply_text)
        if captured:
            candidate = candidate_crud.update_fields(self.db, candidate, **captured)

        context = self._agent_context(candidate, conversation, job, step)
        agent_reply = DialogueAgent(llm).reply(body, context, reply_text=reply_text)

        conversation_crud.append_entries(
            self.db,
            conversation,
            [
                conversation_crud.transcript_entry(ROLE_CANDIDATE, body),
                conversation_crud.transcript_entry(ROLE_AGENT, agent_reply.utterance),
            ],
            step=agent_reply.next_step,
        )
        logger.info(f"Candidate {candidate.id}: step {step} -> {agent_reply.next_step}")

        finished = agent_reply.next_step == ConversationStep.COMPLETED.value
        return agent_reply.utterance, finished

    @staticmethod
    def _capture_fields(candidate: Candidate, step: str, text: str) -> dict:
        """Best-effort name/email capture; never affects the step transition."""
        text = text.strip()
        if step == ConversationStep.INTRO.value and not candidate.name and is_name_reply(text):
            return {"name": text}
        if step == ConversationStep.NAME.value and not candidate.email and looks_like_email(text):
            return {"email": text}
        return {}

    def _storage_for(self, credentials: ProviderCredentials):
        """Archive backend for the CV, or None when it cannot be built (archival is optional)."""
        try:
            return self.storage_factory(credentials)
        except Exception as e:
            logger.warning(f"CV archive storage unavailable, skipping upload: {e}")
            return None

    def _finalize(self, candidate: Candidate, conversation: Conversation, job: Job, llm: LLMClient) -> bool:
        """
        Score the candidate and record completion in a single commit.

        Runs under the candidate lock. A conversation that already carries
        completed_at is never scored again; until the commit succeeds the
        conversation stays open, so the next message retries finalization.

        Returns:
            True if this call finalized the candidate
        """
        if conversation.completed_at is not None:
            logger.info(f"Candidate {candidate.id} already finalized, skipping scoring")
            return False

        if not candidate.resume_data:
            logger.warning(f"Finalizing candidate {candidate.id} without a CV on file")

        replies = candidate_replies(conversation.messages)
        result = ScoringEngine(llm).score(
            candidate.resume_data,
            replies,
            job.essential_criteria or [],
            job.nice_to_have_criteria or [],
        )
        summary = generate_summary(
            llm,
            {"name": candidate.name, "email": candidate.email},
            candidate.resume_data,
            replies,
            result,
        )

        try:
            if not conversation_crud.mark_completed(self.db, conversation, commit=False):
                self.db.rollback()
                logger.info(f"Candidate {candidate.id} finalized concurrently, discarding score")
                return False
            candidate_crud.save_score(self.db, candidate, result, summary, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(candidate)
        self.db.refresh(conversation)
        logger.info(f"Candidate {candidate.id} scored {result.total_score}/100: {result.recommendation}")
        return True

    def _send(self, credentials: ProviderCredentials, phone: str, body: str) -> Optional[str]:
        try:
            return self.messenger_factory(credentials).send_message(phone, body)
        except MessageDeliveryError as e:
            logger.error(f"Outbound message to {mask_phone(phone)} failed (state kept): {e}")
            return None
