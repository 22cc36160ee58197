"""
Dialogue agent driving the screening interview.

The language model writes the next utterance; the step the conversation moves
to is decided in code. Precedence, highest first:

1. The completion marker in the model output: always moves to ``completed``.
2. The deterministic transition table (``determine_next_step``).
3. A ``[[STEP:<name>]]`` hint in the model output, honored only where the
   table leaves the transition open (``questions -> wrapup``, or leaving an
   unknown step).

Both markers are stripped before the utterance is stored or sent.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from openai import OpenAIError

from app.core.config import settings
from app.core.llm import LLMClient
from app.models.conversation import ConversationStep

logger = logging.getLogger(__name__)

COMPLETION_MARKER = "CONVERSATION_COMPLETE"
CV_RECEIVED_INSTRUCTION = "[CV reçu, commencer les questions]"
DEFAULT_CLOSING = "Merci beaucoup pour vos réponses ! Le recruteur reviendra vers vous prochainement."

_STEP_HINT_RE = re.compile(r"\[\[\s*STEP\s*:\s*([a-z_]+)\s*\]\]", re.IGNORECASE)
_GREETINGS = ("bonjour", "salut")
_KNOWN_STEPS = {step.value for step in ConversationStep}
_HINTABLE_TRANSITIONS = {
    ConversationStep.QUESTIONS.value: {ConversationStep.WRAPUP.value},
}


class DialogueError(Exception):
    """The model call failed; the inbound event is dropped without a reply."""
    pass


def is_greeting(text: str) -> bool:
    lowered = text.lower()
    return any(greeting in lowered for greeting in _GREETINGS)


def is_name_reply(text: str) -> bool:
    """Heuristic: anything longer than 2 characters that is not a greeting."""
    text = text.strip()
    return len(text) > 2 and not is_greeting(text)


def looks_like_email(text: str) -> bool:
    return "@" in text


def determine_next_step(
    current_step: str,
    is_complete: bool,
    reply: str,
    hint: Optional[str] = None,
) -> str:
    """
    Deterministic interview transitions.

    | current   | next      | condition                               |
    |-----------|-----------|-----------------------------------------|
    | intro     | name      | reply > 2 chars and not a greeting      |
    | name      | email     | reply contains '@'                      |
    | email     | cv        | unconditional                           |
    | cv        | questions | unconditional                           |
    | questions | questions | until completion (hint may give wrapup) |
    | wrapup    | completed | unconditional                           |
    """
    if is_complete:
        return ConversationStep.COMPLETED.value

    if current_step == ConversationStep.INTRO.value:
        return ConversationStep.NAME.value if is_name_reply(reply) else current_step
    if current_step == ConversationStep.NAME.value:
        return ConversationStep.EMAIL.value if looks_like_email(reply) else current_step
    if current_step == ConversationStep.EMAIL.value:
        return ConversationStep.CV.value
    if current_step == ConversationStep.CV.value:
        return ConversationStep.QUESTIONS.value
    if current_step == ConversationStep.WRAPUP.value:
        return ConversationStep.COMPLETED.value

    if hint:
        if current_step not in _KNOWN_STEPS and hint in _KNOWN_STEPS:
            return hint
        if hint in _HINTABLE_TRANSITIONS.get(current_step, set()):
            return hint
    return current_step


@dataclass
class AgentContext:
    job_title: str
    job_description: str
    essential_criteria: List[Dict] = field(default_factory=list)
    nice_to_have_criteria: List[Dict] = field(default_factory=list)
    company_name: Optional[str] = None
    transcript: List[Dict] = field(default_factory=list)
    current_step: str = ConversationStep.INTRO.value
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    cv_received: bool = False


@dataclass
class AgentReply:
    utterance: str
    next_step: str
    is_complete: bool


def _format_criteria(criteria: List[Dict]) -> str:
    lines = [
        f"{i}. {c.get('name', '')}: {c.get('value', '')}"
        for i, c in enumerate(criteria or [], 1)
    ]
    return "\n".join(lines) or "None"


def build_system_prompt(context: AgentContext) -> str:
    known = []
    if context.candidate_name:
        known.append(f"Candidate name: {context.candidate_name}")
    if context.candidate_email:
        known.append(f"Candidate email: {context.candidate_email}")
    if context.cv_received:
        known.append("CV received")

    company = f"Company: {context.company_name}\n" if context.company_name else ""

    return f"""You are a warm and professional recruiting assistant running a pre-screening interview over WhatsApp.
Write in French unless the candidate writes in another language.

JOB:
Title: {context.job_title}
{company}Description: {context.job_description}

ESSENTIAL CRITERIA (mandatory):
{_format_criteria(context.essential_criteria)}

NICE-TO-HAVE CRITERIA:
{_format_criteria(context.nice_to_have_criteria)}

GOALS:
1. Welcome the candidate
2. Collect their full name and professional email
3. Ask for their CV (PDF or Word file)
4. Ask 3 to 5 targeted questions that assess the job criteria
5. Answer the candidate's questions about the job
6. Close professionally and explain the next steps

RULES:
- Ask ONE question at a time
- Keep messages short (3-4 sentences max)
- Adapt questions to previous answers
- Politely steer off-topic candidates back
- NEVER promise an outcome, stay neutral
- Use emojis sparingly (1-2 per message max)

MANDATORY FLOW:
Step intro: welcome, ask for the name
Step name: confirm name, ask for the email
Step email: confirm email, ask for the CV file
Step cv: confirm CV reception, start targeted questions
Step questions: continue questions based on answers
Step wrapup: ask whether the candidate has questions
Step completed: conclude and thank the candidate

CURRENT STEP: {context.current_step}
{chr(10).join(known)}

INSTRUCTIONS:
- When you have asked enough questions and move to wrap up, append [[STEP:wrapup]]
- When the conversation is over, end your message with {COMPLETION_MARKER}
- Reply ONLY with your next message to the candidate, no meta commentary."""


def _history_messages(transcript: List[Dict]) -> List[Dict[str, str]]:
    return [
        {
            "role": "user" if entry.get("role") == "candidate" else "assistant",
            "content": entry.get("content", ""),
        }
        for entry in transcript
    ]


def parse_model_output(raw: str):
    """
    Split raw model output into (utterance, is_complete, step_hint).
    """
    is_complete = COMPLETION_MARKER in raw
    text = raw.replace(COMPLETION_MARKER, "")

    hint = None
    match = _STEP_HINT_RE.search(text)
    if match:
        hint = match.group(1).lower()
    text = _STEP_HINT_RE.sub("", text)

    return text.strip(), is_complete, hint


class DialogueAgent:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    def reply(self, message: str, context: AgentContext, reply_text: Optional[str] = None) -> AgentReply:
        """
        Produce the next agent utterance and step.

        Args:
            message: Text sent to the model as the candidate's latest turn
            context: Job, transcript so far, step and known candidate fields
            reply_text: Text the step heuristics judge, defaults to message

        Raises:
            DialogueError: model call failed or returned nothing usable
        """
        messages = [
            {"role": "system", "content": build_system_prompt(context)},
            *_history_messages(context.transcript),
            {"role": "user", "content": message},
        ]

        try:
            raw = self.llm.complete(
                messages,
                temperature=settings.DIALOGUE_TEMPERATURE,
                max_tokens=settings.DIALOGUE_MAX_TOKENS,
            )
        except OpenAIError as e:
            logger.error(f"Dialogue model call failed: {e}")
            raise DialogueError("Could not generate the agent reply") from e

        utterance, is_complete, hint = parse_model_output(raw)
        if not utterance:
            if not is_complete:
                raise DialogueError("Empty reply from the dialogue model")
            utterance = DEFAULT_CLOSING

        next_step = determine_next_step(
            context.current_step,
            is_complete,
            message if reply_text is None else reply_text,
            hint,
        )
        logger.debug(f"Dialogue step {context.current_step} -> {next_step} (complete={is_complete}, hint={hint})")
        return AgentReply(utterance=utterance, next_step=next_step, is_complete=is_complete)
