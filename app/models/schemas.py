from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional

from app.models.models import JobRequirement, Submission


# -------- Resume / profile parsing --------
class ResumeParseRequest(BaseModel):
    resume_base64: str = Field(..., min_length=1)
    filename: Optional[str] = None


class LinkedInParseRequest(BaseModel):
    html: Optional[str] = None
    url: Optional[str] = None

    @model_validator(mode="after")
    def require_source(self):
        if not (self.html or self.url):
            raise ValueError("Either html or url must be provided")
        return self


class SkillExtractionRequest(BaseModel):
    text: str = Field(..., min_length=1)
    context: str = ""


# -------- Analysis --------
class AnalyzeCandidateRequest(BaseModel):
    submission: Submission
    requirement: JobRequirement
    include_report: bool = False


class BatchAnalyzeRequest(BaseModel):
    requirement: JobRequirement
    candidates: List[Submission] = Field(..., min_length=1, max_length=50)

    @field_validator("candidates")
    @classmethod
    def unique_ids(cls, v):
        ids = [c.submission_id for c in v]
        if len(ids) != len(set(ids)):
            raise ValueError("submission_id values must be unique")
        return v


class ScheduleAnalysisRequest(BaseModel):
    """Submission payload without its id; the id comes from the path."""
    requirement: JobRequirement
    candidate_name: str = ""
    candidate_email: str = ""
    resume_base64: Optional[str] = None
    resume_text: Optional[str] = None
    linkedin_url: Optional[str] = None
    linkedin_html: Optional[str] = None

    def to_submission(self, submission_id: str) -> Submission:
        return Submission(
            submission_id=submission_id,
            **self.model_dump(exclude={"requirement"}),
        )
