# ai_review/models/review.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Recommendation = Literal["strong_fit", "good_fit", "fair_fit", "poor_fit"]
LocationCompatibility = Literal["perfect", "good", "challenging", "mismatch"]
RequirementType = Literal["mandatory", "preferred"]

RECOMMENDATIONS = ("strong_fit", "good_fit", "fair_fit", "poor_fit")


class JobRequirementItem(BaseModel):
    description: str
    requirement_type: RequirementType = "mandatory"


class PreScreenAnswer(BaseModel):
    question: str
    answer: str = ""


class AnalysisInput(BaseModel):
    """Everything the fit-review prompt needs; built by the enrichment resolver."""
    application_id: str
    candidate_id: Optional[str] = None
    job_id: Optional[str] = None
    resume_text: str = ""
    # used only when resume_text is empty, to tell the model extraction is pending
    document_count: int = 0
    job_title: Optional[str] = None
    job_description: Optional[str] = None
    required_skills: List[str] = Field(default_factory=list)
    preferred_skills: List[str] = Field(default_factory=list)
    required_years: Optional[float] = None
    candidate_location: Optional[str] = None
    job_location: Optional[str] = None
    job_requirements: List[JobRequirementItem] = Field(default_factory=list)
    pre_screen_answers: List[PreScreenAnswer] = Field(default_factory=list)


class FitReviewResult(BaseModel):
    """
    Contract for the scoring model's JSON answer. Anything outside these
    ranges or enums raises pydantic.ValidationError and is never persisted.
    """
    fit_score: int = Field(ge=0, le=100)
    recommendation: Recommendation
    overall_summary: str = ""
    confidence_level: float = Field(ge=0, le=100)
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    skills_match_percentage: float = Field(ge=0, le=100)
    required_years: Optional[float] = None
    candidate_years: Optional[float] = None
    meets_experience_requirement: Optional[bool] = None
    location_compatibility: LocationCompatibility


class FitReviewCreate(FitReviewResult):
    model_config = ConfigDict(protected_namespaces=())

    application_id: str
    model_version: str
    processing_time_ms: int = 0
    analyzed_at: datetime


class SkillsMatch(BaseModel):
    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    match_percentage: float = 0


class ExperienceAnalysis(BaseModel):
    required_years: float = 0
    candidate_years: float = 0
    meets_requirement: bool = False


class FitReviewInDB(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str
    application_id: str
    fit_score: int
    recommendation: Recommendation
    overall_summary: str = ""
    confidence_level: float = 0
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    skills_match: SkillsMatch
    experience_analysis: ExperienceAnalysis
    location_compatibility: LocationCompatibility
    model_version: str = ""
    processing_time_ms: int = 0
    analyzed_at: datetime
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "FitReviewInDB":
        """Nest the flat stored columns; nulls surface as 0, [] or False."""
        return cls(
            id=str(doc.get("id") or doc.get("_id")),
            application_id=doc["application_id"],
            fit_score=doc["fit_score"],
            recommendation=doc["recommendation"],
            overall_summary=doc.get("overall_summary") or "",
            confidence_level=doc.get("confidence_level") or 0,
            strengths=doc.get("strengths") or [],
            concerns=doc.get("concerns") or [],
            skills_match=SkillsMatch(
                matched_skills=doc.get("matched_skills") or [],
                missing_skills=doc.get("missing_skills") or [],
                match_percentage=doc.get("skills_match_percentage") or 0,
            ),
            experience_analysis=ExperienceAnalysis(
                required_years=doc.get("required_years") or 0,
                candidate_years=doc.get("candidate_years") or 0,
                meets_requirement=bool(doc.get("meets_experience_requirement")),
            ),
            location_compatibility=doc["location_compatibility"],
            model_version=doc.get("model_version") or "",
            processing_time_ms=doc.get("processing_time_ms") or 0,
            analyzed_at=doc["analyzed_at"],
            created_at=doc.get("created_at"),
        )


class JobReviewStats(BaseModel):
    job_id: str
    total_reviews: int = 0
    average_fit_score: float = 0
    average_skills_match: float = 0
    recommendation_breakdown: Dict[str, int] = Field(default_factory=lambda: {r: 0 for r in RECOMMENDATIONS})
