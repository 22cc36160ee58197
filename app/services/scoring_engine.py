"""
Candidate scoring: model judgment per criterion, Python math for the total.

- Model: grades each criterion independently (excellent/good/partial/insufficient)
  against the structured résumé and the candidate's replies
- Python: converts statuses into points with fixed pools and multipliers

Weighting:
- Essential criteria share 70 points evenly
  (excellent 1.0, good 0.7, partial 0.4, insufficient 0 of the share)
- Nice-to-have criteria share 30 points evenly, and only excellent/good earn
  their share; partial earns nothing
- The total is capped at 100

Per-criterion evaluations run concurrently on a bounded thread pool. A failed
evaluation degrades to ``insufficient`` and never aborts the run.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from openai import OpenAIError
from pydantic import ValidationError

from app.core.config import settings
from app.core.llm import LLMClient, LLMResponseError
from app.schemas.scoring import (
    CriterionEvaluation,
    CriterionKind,
    CriterionStatus,
    ScoreDetail,
    ScoreResult,
)

logger = logging.getLogger(__name__)

ESSENTIAL_POOL = 70.0
NICE_TO_HAVE_POOL = 30.0
MAX_SCORE = 100.0

ESSENTIAL_MULTIPLIERS = {
    CriterionStatus.EXCELLENT: 1.0,
    CriterionStatus.GOOD: 0.7,
    CriterionStatus.PARTIAL: 0.4,
    CriterionStatus.INSUFFICIENT: 0.0,
}
NICE_TO_HAVE_EARNING = {CriterionStatus.EXCELLENT, CriterionStatus.GOOD}

MARKERS = {
    CriterionStatus.EXCELLENT: "✅",
    CriterionStatus.GOOD: "✅",
    CriterionStatus.PARTIAL: "🔶",
    CriterionStatus.INSUFFICIENT: "❌",
}

# (threshold, label), checked top-down
RECOMMENDATION_TIERS = [
    (80, "PRIORITÉ HAUTE - Profil excellent, à interviewer rapidement"),
    (60, "PRIORITÉ MOYENNE - Profil intéressant, à considérer"),
    (40, "PRIORITÉ BASSE - Profil à revoir selon le pool de candidats"),
]
NOT_RECOMMENDED = "NON RECOMMANDÉ - Critères essentiels non remplis"

EVALUATION_FAILED = CriterionEvaluation(
    status=CriterionStatus.INSUFFICIENT,
    evidence="Erreur lors de l'évaluation",
    explanation="Impossible d'évaluer ce critère",
)
SUMMARY_UNAVAILABLE = "Impossible de générer le résumé"
REPLY_EXCERPT_LENGTH = 200


def recommendation_for(score: float) -> str:
    for threshold, label in RECOMMENDATION_TIERS:
        if score >= threshold:
            return label
    return NOT_RECOMMENDED


def criterion_points(kind: CriterionKind, status: CriterionStatus, share: float) -> float:
    """Unrounded points one criterion earns out of its share of the pool."""
    if kind == CriterionKind.ESSENTIAL:
        return share * ESSENTIAL_MULTIPLIERS[status]
    return share if status in NICE_TO_HAVE_EARNING else 0.0


def _dump(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _evaluation_prompt(criterion: Dict, resume: Optional[Dict], replies: List[str]) -> str:
    return f"""Evaluate whether this candidate meets the following job criterion.

CRITERION:
- Name: {criterion.get('name', '')}
- Type: {criterion.get('type', '')}
- Required: {criterion.get('value', '')}

CANDIDATE DATA:
- Parsed CV: {_dump(resume or {})}
- Interview replies: {_dump(replies)}

Answer ONLY with a valid JSON object:
{{
  "status": "excellent" | "good" | "partial" | "insufficient",
  "evidence": "Quote or concrete evidence from the CV or the replies",
  "explanation": "One short sentence"
}}

Status guide:
- "excellent": the criterion is fully met with strong evidence
- "good": the criterion is met with evidence
- "partial": the criterion is partly met
- "insufficient": the criterion is not met"""


def evaluate_criterion(
    llm: LLMClient,
    criterion: Dict,
    resume: Optional[Dict],
    replies: List[str],
) -> CriterionEvaluation:
    """
    Judge a single criterion. Never raises: failures degrade to insufficient.
    """
    try:
        raw = llm.complete_json(
            [
                {"role": "system", "content": "You are a recruiting expert. You answer only with valid JSON."},
                {"role": "user", "content": _evaluation_prompt(criterion, resume, replies)},
            ],
            temperature=settings.EXTRACTION_TEMPERATURE,
        )
        return CriterionEvaluation.model_validate(raw)
    except (OpenAIError, LLMResponseError, ValidationError) as e:
        logger.warning(f"Evaluation of criterion '{criterion.get('name')}' failed, scoring as insufficient: {e}")
        return EVALUATION_FAILED


def format_reply_highlights(replies: List[str]) -> str:
    """Number the candidate's replies, each cut to its first 200 characters."""
    return "\n".join(
        f"Q{i}: {reply[:REPLY_EXCERPT_LENGTH]}" for i, reply in enumerate(replies, 1)
    ) or "(no replies)"


def _summary_prompt(candidate: Dict, resume: Optional[Dict], replies: List[str], result: ScoreResult) -> str:
    details = [detail.model_dump(mode="json") for detail in result.details]
    return f"""Write a professional summary of this application for a recruiter.

CANDIDATE:
Name: {candidate.get('name') or 'Unknown'}
Email: {candidate.get('email') or 'Unknown'}

PARSED CV:
{_dump(resume or {})}

INTERVIEW (relevant excerpts):
{format_reply_highlights(replies)}

SCORE:
{result.total_score}%

SCORING DETAILS:
{_dump(details)}

Write the summary in 4 parts:

1. PROFILE (2-3 sentences)
- Current position, years of experience
- Main skills

2. STRENGTHS (3-4 bullet points)
- What matches the job well
- Concrete quotes or evidence from the interview or CV

3. CONCERNS (2-3 bullet points)
- Criteria not met or partly met
- Topics to dig into during an interview

4. FINAL RECOMMENDATION (1 sentence)
- Should the candidate be interviewed, and with which priority?

Style: factual, concise, objective, no jargon. Write in French."""


def generate_summary(
    llm: LLMClient,
    candidate: Dict,
    resume: Optional[Dict],
    replies: List[str],
    result: ScoreResult,
) -> str:
    """Recruiter-facing narrative. Degrades to a fixed string on failure."""
    try:
        summary = llm.complete(
            [
                {"role": "system", "content": "You are a recruiting expert who writes application summaries."},
                {"role": "user", "content": _summary_prompt(candidate, resume, replies, result)},
            ],
            temperature=settings.SUMMARY_TEMPERATURE,
            max_tokens=settings.SUMMARY_MAX_TOKENS,
        )
    except OpenAIError as e:
        logger.warning(f"Summary generation failed: {e}")
        return SUMMARY_UNAVAILABLE
    return summary.strip() or SUMMARY_UNAVAILABLE


class ScoringEngine:
    def __init__(self, llm: LLMClient, max_concurrency: int = settings.SCORING_MAX_CONCURRENCY):
        self.llm = llm
        self.max_concurrency = max(1, max_concurrency)

    def _evaluate_all(
        self,
        criteria: List[Tuple[CriterionKind, Dict]],
        resume: Optional[Dict],
        replies: List[str],
    ) -> List[CriterionEvaluation]:
        if not criteria:
            return []
        workers = min(self.max_concurrency, len(criteria))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="criterion-eval") as executor:
            # map() keeps the criteria order
            return list(executor.map(
                lambda item: evaluate_criterion(self.llm, item[1], resume, replies),
                criteria,
            ))

    def score(
        self,
        resume: Optional[Dict],
        replies: List[str],
        essential: List[Dict],
        nice_to_have: List[Dict],
    ) -> ScoreResult:
        """
        Score a candidate against a job's criteria.

        Args:
            resume: Structured résumé (None when no CV was received)
            replies: Candidate transcript replies, in order
            essential: Essential criteria ({name, type, value})
            nice_to_have: Nice-to-have criteria ({name, type, value})

        Returns:
            ScoreResult with per-criterion details in criteria order
        """
        criteria = (
            [(CriterionKind.ESSENTIAL, c) for c in essential or []]
            + [(CriterionKind.NICE_TO_HAVE, c) for c in nice_to_have or []]
        )
        shares = {
            CriterionKind.ESSENTIAL: ESSENTIAL_POOL / len(essential) if essential else 0.0,
            CriterionKind.NICE_TO_HAVE: NICE_TO_HAVE_POOL / len(nice_to_have) if nice_to_have else 0.0,
        }

        evaluations = self._evaluate_all(criteria, resume, replies)

        total = 0.0
        details = []
        for (kind, criterion), evaluation in zip(criteria, evaluations):
            points = criterion_points(kind, evaluation.status, shares[kind])
            total += points
            if kind == CriterionKind.NICE_TO_HAVE and evaluation.status not in NICE_TO_HAVE_EARNING:
                marker = MARKERS[CriterionStatus.INSUFFICIENT]
            else:
                marker = MARKERS[evaluation.status]
            details.append(ScoreDetail(
                criterion=criterion.get("name", ""),
                kind=kind,
                status=evaluation.status,
                evidence=evaluation.evidence,
                points=round(points, 1),
                marker=marker,
            ))

        total = round(min(total, MAX_SCORE), 1)
        logger.info(f"Scored {len(details)} criteria: {total}/{MAX_SCORE}")
        return ScoreResult(
            total_score=total,
            max_score=MAX_SCORE,
            details=details,
            recommendation=recommendation_for(total),
        )
