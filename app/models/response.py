# models/response.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from app.models.models import MatchScoreRecord, PartialProfile


class SignalSummary(BaseModel):
    skills: Dict[str, List[str]] = Field(default_factory=dict)
    skill_groups: Dict[str, List[str]] = Field(default_factory=dict)
    experience_years: float = 0.0
    experience_level: str = "mid"
    seniority: str = "Junior"
    roles: List[str] = Field(default_factory=list)
    education: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


class ResumeParseResponse(BaseModel):
    text: str
    page_count: int
    profile: PartialProfile
    signals: SignalSummary


class LinkedInParseResponse(BaseModel):
    profile: PartialProfile
    signals: SignalSummary


class CandidateAnalysisResponse(BaseModel):
    record: MatchScoreRecord
    warnings: List[str] = Field(default_factory=list)
    report: Optional[Dict[str, Any]] = None


class BatchAnalysisResponse(BaseModel):
    requirement_title: str
    count: int
    failed: int
    results: List[Dict[str, Any]]


class ScheduledAnalysisResponse(BaseModel):
    submission_id: str
    status: str = "scheduled"


class AnalysisStats(BaseModel):
    total_analyses: int
    high_score_matches: int
    average_score: float
    high_score_percentage: float
    recent_analyses: List[Dict[str, Any]] = Field(default_factory=list)
