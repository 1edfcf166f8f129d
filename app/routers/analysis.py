# routers/analysis.py
import asyncio
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from app.helpers.parsing import extract_from_html, extract_from_pdf, parse_resume_text
from app.models.models import CandidateProfile, PartialProfile, PreparedCandidate
from app.models.response import (
    BatchAnalysisResponse,
    CandidateAnalysisResponse,
    LinkedInParseResponse,
    ResumeParseResponse,
    SignalSummary,
)
from app.models.schemas import (
    AnalyzeCandidateRequest,
    BatchAnalyzeRequest,
    LinkedInParseRequest,
    ResumeParseRequest,
    SkillExtractionRequest,
)
from app.services.signals import categorize_skills
from app.utils.exceptions import MatchServiceBaseException, map_to_http_exception
from app.utils.logging_config import get_logger, PerformanceMonitor

router = APIRouter(prefix="/analysis", tags=["analysis"])
logger = get_logger(__name__)


def _orchestrator(request: Request):
    return request.app.state.orchestrator


def _signal_summary(candidate: CandidateProfile, profile: Optional[PartialProfile]) -> SignalSummary:
    return SignalSummary(
        skills=candidate.skills,
        skill_groups=categorize_skills(profile.skills) if profile else {},
        experience_years=candidate.experience_years,
        experience_level=candidate.experience_level.value,
        seniority=candidate.seniority,
        roles=candidate.roles,
        education=candidate.education_keywords,
        certifications=candidate.certifications,
        languages=candidate.languages,
        keywords=candidate.keywords,
    )


@router.post("/resume", response_model=ResumeParseResponse)
async def parse_resume(payload: ResumeParseRequest, request: Request):
    """Extract text, a partial profile and signals from a base64 PDF resume"""
    orchestrator = _orchestrator(request)
    try:
        buffer = orchestrator.decode_resume(payload.resume_base64)
        loop = asyncio.get_running_loop()
        with PerformanceMonitor("PDF extraction", logger=logger):
            pdf = await loop.run_in_executor(None, extract_from_pdf, buffer)
    except MatchServiceBaseException as e:
        raise map_to_http_exception(e)

    profile = parse_resume_text(pdf.text)
    candidate = orchestrator.build_candidate(PreparedCandidate(text=pdf.text, resume=profile))
    logger.info(f"Parsed resume {payload.filename or ''} ({pdf.page_count} pages)")
    return ResumeParseResponse(
        text=pdf.text,
        page_count=pdf.page_count,
        profile=profile,
        signals=_signal_summary(candidate, profile),
    )


@router.post("/linkedin", response_model=LinkedInParseResponse)
async def parse_linkedin(payload: LinkedInParseRequest, request: Request):
    """Parse inline profile HTML, or fetch and parse a LinkedIn profile URL"""
    orchestrator = _orchestrator(request)
    if payload.html:
        profile = extract_from_html(payload.html)
    else:
        loop = asyncio.get_running_loop()
        try:
            profile = await loop.run_in_executor(None, orchestrator.profile_fetcher, payload.url)
        except MatchServiceBaseException as e:
            raise map_to_http_exception(e)

    text = orchestrator.compose_candidate_text("", profile)
    candidate = orchestrator.build_candidate(PreparedCandidate(text=text, linkedin=profile))
    return LinkedInParseResponse(profile=profile, signals=_signal_summary(candidate, profile))


@router.post("/candidate", response_model=CandidateAnalysisResponse)
async def analyze_candidate(payload: AnalyzeCandidateRequest, request: Request):
    """Synchronous evaluation of one candidate; nothing is persisted"""
    orchestrator = _orchestrator(request)
    try:
        prepared = await orchestrator.prepare_candidate(payload.submission)
        record = await orchestrator.score(payload.submission.submission_id, prepared, payload.requirement)
    except MatchServiceBaseException as e:
        raise map_to_http_exception(e)

    report = orchestrator.local_report(prepared, payload.requirement) if payload.include_report and prepared.text else None
    return CandidateAnalysisResponse(record=record, warnings=prepared.warnings, report=report)


@router.post("/batch", response_model=BatchAnalysisResponse)
async def batch_analyze(payload: BatchAnalyzeRequest, request: Request):
    """Evaluate several candidates against one requirement, ranked by score"""
    orchestrator = _orchestrator(request)
    with PerformanceMonitor(f"Batch analysis of {len(payload.candidates)} candidates", logger=logger):
        results = await orchestrator.batch_analyze(payload.candidates, payload.requirement)
    failed = sum(1 for r in results if r.get("overall_score") is None)
    return BatchAnalysisResponse(
        requirement_title=payload.requirement.title,
        count=len(results),
        failed=failed,
        results=results,
    )


@router.post("/skills")
async def extract_skills(payload: SkillExtractionRequest, request: Request):
    """LLM skill extraction"""
    scorer = _orchestrator(request).llm_scorer
    if scorer is None or not scorer.is_available():
        raise HTTPException(status_code=503, detail="LLM skill extraction is disabled")

    loop = asyncio.get_running_loop()
    try:
        skills = await loop.run_in_executor(None, scorer.extract_skills, payload.text, payload.context)
    except MatchServiceBaseException as e:
        raise map_to_http_exception(e)
    return {"skills": skills}
