# ai_review/models/resume.py
"""
Structured resume metadata stored under a document's metadata.structured_data.

The extraction model's JSON is treated as untrusted but is only coerced, never
rejected: non-list fields become [], missing strings become "", enum values
outside the permitted set become None. Undeclared keys (name, email, phone,
address, ...) are dropped by extra="ignore".
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SkillCategory = Literal["technical", "soft", "tool", "language", "domain"]
Proficiency = Literal["beginner", "intermediate", "advanced", "expert"]
DegreeLevel = Literal["high_school", "associate", "bachelor", "master", "doctorate"]

SKILL_CATEGORIES = ("technical", "soft", "tool", "language", "domain")
PROFICIENCY_LEVELS = ("beginner", "intermediate", "advanced", "expert")
DEGREE_LEVELS = ("high_school", "associate", "bachelor", "master", "doctorate")

# recorded as-is; the model gives us no calibrated confidence to use instead
EXTRACTION_CONFIDENCE = 0.85


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_str_list(value: Any) -> List[str]:
    return [item for item in _as_list(value) if isinstance(item, str) and item.strip()]


def _as_dict_list(value: Any) -> List[Dict[str, Any]]:
    return [item for item in _as_list(value) if isinstance(item, dict)]


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _as_enum(value: Any, allowed) -> Optional[str]:
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    return None


class _Coerced(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ExperienceEntry(_Coerced):
    title: str = ""
    company: str = ""
    location: str = ""
    start_date: str = ""  # YYYY-MM
    end_date: str = ""  # YYYY-MM, empty when current
    is_current: bool = False
    description: str = ""
    highlights: List[str] = Field(default_factory=list)

    @field_validator("title", "company", "location", "start_date", "end_date", "description", mode="before")
    @classmethod
    def _strings(cls, value: Any) -> str:
        return _as_str(value)

    @field_validator("is_current", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        return value is True or _as_str(value).strip().lower() == "true"

    @field_validator("highlights", mode="before")
    @classmethod
    def _highlights(cls, value: Any) -> List[str]:
        return _as_str_list(value)


class EducationEntry(_Coerced):
    degree: str = ""
    field_of_study: str = ""
    institution: str = ""
    start_date: str = ""
    end_date: str = ""
    gpa: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _strings(cls, value: Any) -> str:
        return _as_str(value)


class SkillEntry(_Coerced):
    name: str = ""
    category: Optional[SkillCategory] = None
    proficiency: Optional[Proficiency] = None
    years_used: Optional[float] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> str:
        return _as_str(value)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: Any) -> Optional[str]:
        return _as_enum(value, SKILL_CATEGORIES)

    @field_validator("proficiency", mode="before")
    @classmethod
    def _proficiency(cls, value: Any) -> Optional[str]:
        return _as_enum(value, PROFICIENCY_LEVELS)

    @field_validator("years_used", mode="before")
    @classmethod
    def _years(cls, value: Any) -> Optional[float]:
        return _as_number(value)


class CertificationEntry(_Coerced):
    name: str = ""
    issuer: str = ""
    date_obtained: str = ""
    expiry_date: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _strings(cls, value: Any) -> str:
        return _as_str(value)


class ResumeStructuredData(_Coerced):
    extracted_at: datetime
    source_document_id: str
    extraction_confidence: float = EXTRACTION_CONFIDENCE
    professional_summary: str = ""
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: List[SkillEntry] = Field(default_factory=list)
    certifications: List[CertificationEntry] = Field(default_factory=list)
    total_years_experience: Optional[float] = None
    highest_degree: Optional[DegreeLevel] = None

    @field_validator("professional_summary", mode="before")
    @classmethod
    def _summary(cls, value: Any) -> str:
        return _as_str(value)

    @field_validator("experience", "education", "skills", "certifications", mode="before")
    @classmethod
    def _entries(cls, value: Any) -> List[Dict[str, Any]]:
        return _as_dict_list(value)

    @field_validator("total_years_experience", mode="before")
    @classmethod
    def _total_years(cls, value: Any) -> Optional[float]:
        return _as_number(value)

    @field_validator("highest_degree", mode="before")
    @classmethod
    def _degree(cls, value: Any) -> Optional[str]:
        return _as_enum(value, DEGREE_LEVELS)

    @classmethod
    def from_model_output(cls, raw: Dict[str, Any], document_id: str, extracted_at: datetime) -> "ResumeStructuredData":
        data = dict(raw) if isinstance(raw, dict) else {}
        data["source_document_id"] = document_id
        data["extracted_at"] = extracted_at
        # the model's own confidence, if any, is ignored
        data["extraction_confidence"] = EXTRACTION_CONFIDENCE
        return cls.model_validate(data)
