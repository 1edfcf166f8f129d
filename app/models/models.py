from datetime import datetime
from enum import Enum
from typing import List, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExperienceLevel(str, Enum):
    JUNIOR = "junior"
    MID = "mid"
    SENIOR = "senior"
    EXECUTIVE = "executive"


class MatchLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    WEAK = "weak"
    POOR = "poor"


class Recommendation(str, Enum):
    HIGHLY_RECOMMENDED = "Highly Recommended - Excellent match"
    RECOMMENDED = "Recommended - Good match with minor gaps"
    CONSIDER = "Consider - Moderate match, review carefully"
    WEAK_MATCH = "Weak Match - Significant skill gaps"
    NOT_RECOMMENDED = "Not Recommended - Poor match"


class ResultSource(str, Enum):
    LLM = "llm"
    LOCAL = "local"
    FALLBACK = "fallback"


# -------- Extraction --------
class ExperienceEntry(BaseModel):
    title: str = ""
    company: str = ""
    duration: str = ""
    description: str = ""


class EducationEntry(BaseModel):
    school: str = ""
    degree: str = ""
    year: str = ""


class PartialProfile(BaseModel):
    """Best-effort structured profile; empty fields mean the extractor found nothing."""
    source: str = "text"
    name: str = ""
    headline: str = ""
    location: str = ""
    summary: str = ""
    connections: str = ""
    email: str = ""
    phone: str = ""
    linkedin_url: str = ""
    github_url: str = ""
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    raw_text: str = ""
    completeness: float = 0.0
    missing_fields: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class PDFText(BaseModel):
    text: str
    page_count: int


class CandidateProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_text: str = ""
    skills: Dict[str, List[str]] = Field(default_factory=dict)
    experience_years: float = 0.0
    roles: List[str] = Field(default_factory=list)
    education_keywords: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    experience_level: ExperienceLevel = ExperienceLevel.MID
    seniority: str = "Junior"


# -------- Requirement --------
class ExperienceRange(BaseModel):
    min: int = Field(default=0, ge=0)
    max: int = Field(default=0, ge=0)


class JobRequirement(BaseModel):
    requirement_id: Optional[str] = None
    title: str = ""
    description: str = ""
    skills: List[str] = Field(default_factory=list)
    experience: ExperienceRange = Field(default_factory=ExperienceRange)
    location: str = ""
    education: str = ""


class RequirementSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    skills: Dict[str, List[str]] = Field(default_factory=dict)
    experience_years: float = 0.0
    roles: List[str] = Field(default_factory=list)
    education_keywords: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


# -------- Scoring --------
class ScoreComponent(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int
    reasoning: List[str] = Field(default_factory=list)


class SubScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    skills: int = Field(ge=0, le=100)
    experience: int = Field(ge=0, le=100)
    education: int = Field(ge=0, le=100)
    keywords: int = Field(ge=0, le=100)


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_score: int = Field(ge=0, le=100)
    sub_scores: SubScores
    reasoning: List[str] = Field(default_factory=list)
    recommendation: Recommendation
    match_level: MatchLevel


class LLMAnalysis(MatchResult):
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    degraded: bool = False


# -------- Submissions / persistence --------
class Submission(BaseModel):
    submission_id: str
    candidate_name: str = ""
    candidate_email: str = ""
    resume_base64: Optional[str] = None
    resume_text: Optional[str] = None
    linkedin_url: Optional[str] = None
    linkedin_html: Optional[str] = None


class PreparedCandidate(BaseModel):
    text: str = ""
    resume: Optional[PartialProfile] = None
    linkedin: Optional[PartialProfile] = None
    sources: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class MatchScoreRecord(BaseModel):
    submission_id: str
    requirement_id: Optional[str] = None
    overall_score: int = Field(ge=0, le=100)
    skills_score: int
    experience_score: int
    education_score: int
    keywords_score: int
    reasoning: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    recommendation: Recommendation
    match_level: MatchLevel
    source: ResultSource
    degraded: bool = False
    local_score: int
    llm_score: Optional[int] = None
    candidate_sources: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
