# routers/match_scores.py
from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from app.models.response import AnalysisStats, ScheduledAnalysisResponse
from app.models.schemas import ScheduleAnalysisRequest
from app.utils.exceptions import MatchServiceBaseException, map_to_http_exception
from app.utils.logging_config import get_logger

router = APIRouter(prefix="/match-scores", tags=["match-scores"])
logger = get_logger(__name__)


@router.post("/submissions/{submission_id}", status_code=202, response_model=ScheduledAnalysisResponse)
async def schedule_analysis(submission_id: str, payload: ScheduleAnalysisRequest,
                            background_tasks: BackgroundTasks, request: Request):
    """Queue analysis for a submission; the result is stored when it completes"""
    submission = payload.to_submission(submission_id)
    if not any([submission.resume_base64, submission.resume_text,
                submission.linkedin_html, submission.linkedin_url]):
        raise HTTPException(status_code=400, detail="Submission has neither a resume nor a LinkedIn profile")

    orchestrator = request.app.state.orchestrator
    background_tasks.add_task(orchestrator.run_analysis_in_background, submission, payload.requirement)
    logger.info(f"Scheduled analysis for submission {submission_id}")
    return ScheduledAnalysisResponse(submission_id=submission_id)


@router.get("/stats", response_model=AnalysisStats)
async def get_stats(request: Request):
    """Aggregate statistics over stored match scores"""
    try:
        stats = await request.app.state.store.get_analysis_stats()
    except MatchServiceBaseException as e:
        raise map_to_http_exception(e)
    return AnalysisStats(**stats)


@router.get("/{submission_id}")
async def get_match_score(submission_id: str, request: Request):
    """Stored match score for a submission"""
    try:
        doc = await request.app.state.store.get_by_submission(submission_id)
    except MatchServiceBaseException as e:
        raise map_to_http_exception(e)
    if not doc:
        raise HTTPException(status_code=404, detail="Match score not found")
    return doc
