"""
Structured résumé extracted from an uploaded CV.

Every field is always present in the dumped dict: unknown scalars are null and
unknown collections are empty lists. Validation is lenient about the shapes
language models return (objects in string lists, "5+" as a year count).
"""

import re
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")


def _as_list(v) -> list:
    if v is None:
        return []
    if isinstance(v, (list, tuple, set)):
        return list(v)
    return [v]


def _flatten(item) -> Optional[str]:
    """{"language": "French", "level": "native"} -> "French (native)"."""
    if item is None:
        return None
    if isinstance(item, dict):
        parts = [str(value).strip() for value in item.values() if value not in (None, "")]
        if not parts:
            return None
        return parts[0] if len(parts) == 1 else f"{parts[0]} ({', '.join(parts[1:])})"
    return str(item)


class ExperienceEntry(BaseModel):
    """One past role."""
    title: Optional[str] = None
    company: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None

    @field_validator("title", "company", "duration", "description", mode="before")
    @classmethod
    def scalar_to_string(cls, v):
        return None if v is None else _flatten(v)


class ResumeData(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    years_of_experience: Optional[float] = Field(None, ge=0)
    current_position: Optional[str] = None
    current_company: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    education: List[str] = Field(default_factory=list)
    experience: List[ExperienceEntry] = Field(default_factory=list)

    @field_validator("skills", "languages", "education", mode="before")
    @classmethod
    def items_to_strings(cls, v):
        return [text for text in (_flatten(item) for item in _as_list(v)) if text]

    @field_validator("experience", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return _as_list(v)

    @field_validator("years_of_experience", mode="before")
    @classmethod
    def parse_years(cls, v):
        """Accept "5+", "6 ans" or "3,5"; anything without a number becomes null."""
        if v is None or isinstance(v, (int, float)):
            return v
        match = _NUMBER_RE.search(str(v))
        return float(match.group(0).replace(",", ".")) if match else None

    @field_validator("skills")
    @classmethod
    def dedupe_skills(cls, v: List[str]) -> List[str]:
        """Skills are a set; keep first-seen order, compare case-insensitively."""
        seen = set()
        unique = []
        for skill in v:
            key = skill.strip().lower()
            if key and key not in seen:
                seen.add(key)
                unique.append(skill.strip())
        return unique
