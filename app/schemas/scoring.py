"""
Schemas for criterion evaluation and candidate scoring results.
"""

from enum import Enum
from typing import List
from pydantic import BaseModel, Field


class CriterionStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    PARTIAL = "partial"
    INSUFFICIENT = "insufficient"


class CriterionKind(str, Enum):
    ESSENTIAL = "essential"
    NICE_TO_HAVE = "nice_to_have"


class CriterionEvaluation(BaseModel):
    """What the model returns for a single criterion."""
    status: CriterionStatus
    evidence: str = ""
    explanation: str = ""


class ScoreDetail(BaseModel):
    """Per-criterion judgment stored on the candidate. Never mutated after finalization."""
    criterion: str
    kind: CriterionKind
    status: CriterionStatus
    evidence: str
    points: float
    marker: str


class ScoreResult(BaseModel):
    total_score: float = Field(..., ge=0, le=100)
    max_score: float = 100.0
    details: List[ScoreDetail]
    recommendation: str
