import asyncio
import base64
import binascii
from typing import Any, Callable, Dict, List, Optional

from app.helpers.parsing import (
    assess_completeness,
    extract_from_html,
    extract_from_pdf,
    parse_resume_text,
)
from app.models.ai_settings import MAX_RESUME_BYTES
from app.models.models import (
    CandidateProfile,
    JobRequirement,
    LLMAnalysis,
    MatchResult,
    MatchScoreRecord,
    PartialProfile,
    PreparedCandidate,
    ResultSource,
    Submission,
)
from app.services.linkedin import fetch_profile
from app.services.llm_scorer import LLMScorer, fallback_analysis
from app.services.matching import build_analysis_report, rank_results, score_candidate
from app.services.signals import build_candidate_profile, build_requirement_signals
from app.utils.exceptions import (
    ExternalServiceError,
    ExternalServiceFatalError,
    MatchServiceBaseException,
    ValidationError,
)
from app.utils.logging_config import get_logger, log_function_call

logger = get_logger(__name__)

RESUME_LABEL = "RESUME:"
LINKEDIN_LABEL = "LINKEDIN PROFILE:"
SOURCE_SEPARATOR = "\n\n---\n\n"


def profile_to_text(profile: Optional[PartialProfile]) -> str:
    """Flatten a scraped profile into plain text for scoring."""
    if profile is None:
        return ""
    lines = [profile.name, profile.headline, profile.location, profile.summary]
    for exp in profile.experience:
        lines.append(" ".join(p for p in [exp.title, exp.company, exp.duration] if p))
        lines.append(exp.description)
    for edu in profile.education:
        lines.append(" ".join(p for p in [edu.degree, edu.school, edu.year] if p))
    if profile.skills:
        lines.append("Skills: " + ", ".join(profile.skills))
    return "\n".join(line for line in lines if line)


def _flat(skills: Dict[str, List[str]]) -> List[str]:
    return [s for values in skills.values() for s in values]


class AnalysisOrchestrator:
    """Runs extraction, both scorers and the reconciliation policy for one submission.

    Policy: the LLM result is preferred; the local result is used when the LLM
    raised or returned its degraded fallback; the fixed fallback is used only
    when no candidate text could be extracted.
    """

    def __init__(
        self,
        llm_scorer: Optional[LLMScorer],
        store,
        profile_fetcher: Callable[[str], PartialProfile] = fetch_profile,
        max_resume_bytes: int = MAX_RESUME_BYTES,
    ):
        self.llm_scorer = llm_scorer
        self.store = store
        self.profile_fetcher = profile_fetcher
        self.max_resume_bytes = max_resume_bytes

    @staticmethod
    def compose_candidate_text(resume_text: str, linkedin_profile: Optional[PartialProfile]) -> str:
        resume_text = (resume_text or "").strip()
        linkedin_text = profile_to_text(linkedin_profile).strip()
        if resume_text and linkedin_text:
            return SOURCE_SEPARATOR.join([
                f"{RESUME_LABEL}\n{resume_text}",
                f"{LINKEDIN_LABEL}\n{linkedin_text}",
            ])
        return resume_text or linkedin_text

    def decode_resume(self, resume_base64: str) -> bytes:
        try:
            buffer = base64.b64decode(resume_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("Resume is not valid base64", field="resume_base64", cause=e) from e
        if len(buffer) > self.max_resume_bytes:
            raise ValidationError(
                f"Resume exceeds {self.max_resume_bytes} bytes", field="resume_base64", value=len(buffer)
            )
        return buffer

    async def _fetch_linkedin(self, url: str, warnings: List[str]) -> PartialProfile:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.profile_fetcher, url)
        except MatchServiceBaseException as e:
            # profile data is optional; degrade to an empty profile
            logger.warning(f"LinkedIn profile unavailable for {url}: {e.message}")
            warnings.append(f"LinkedIn profile unavailable: {e.message}")
            return assess_completeness(PartialProfile(source="linkedin", linkedin_url=url))

    async def prepare_candidate(self, submission: Submission) -> PreparedCandidate:
        if not any([submission.resume_base64, submission.resume_text,
                    submission.linkedin_html, submission.linkedin_url]):
            raise ValidationError("Submission has neither a resume nor a LinkedIn profile",
                                  field="submission_id", value=submission.submission_id)

        loop = asyncio.get_running_loop()
        warnings: List[str] = []
        sources: List[str] = []
        resume: Optional[PartialProfile] = None
        linkedin: Optional[PartialProfile] = None

        if submission.resume_base64:
            buffer = self.decode_resume(submission.resume_base64)
            pdf = await loop.run_in_executor(None, extract_from_pdf, buffer)
            resume = parse_resume_text(pdf.text)
            sources.append("resume")
        elif submission.resume_text:
            resume = parse_resume_text(submission.resume_text)
            sources.append("resume")

        if submission.linkedin_html:
            linkedin = extract_from_html(submission.linkedin_html)
            sources.append("linkedin")
        elif submission.linkedin_url:
            linkedin = await self._fetch_linkedin(submission.linkedin_url, warnings)
            sources.append("linkedin")

        text = self.compose_candidate_text(resume.raw_text if resume else "", linkedin)
        return PreparedCandidate(text=text, resume=resume, linkedin=linkedin, sources=sources, warnings=warnings)

    @staticmethod
    def build_candidate(prepared: PreparedCandidate) -> CandidateProfile:
        profiles = [p for p in (prepared.resume, prepared.linkedin) if p is not None]
        return build_candidate_profile(
            prepared.text,
            experience_entries=[e for p in profiles for e in p.experience],
            extra_skills=[s for p in profiles for s in p.skills],
            headline=prepared.linkedin.headline if prepared.linkedin else "",
        )

    def llm_enabled(self) -> bool:
        return self.llm_scorer is not None and self.llm_scorer.is_available()

    async def _run_llm(self, text: str, requirement: JobRequirement) -> Optional[LLMAnalysis]:
        if not self.llm_enabled():
            return None
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.llm_scorer.analyze_resume, text, requirement)
        except ExternalServiceFatalError as e:
            logger.error(f"LLM scoring rejected, using local score: {e.message}")
        except ExternalServiceError as e:
            logger.warning(f"LLM scoring unavailable after retries, using local score: {e.message}")
        return None

    def _local_record(self, submission_id: str, requirement_id: Optional[str], local: MatchResult,
                      matched: List[str], missing: List[str], **extra) -> MatchScoreRecord:
        return MatchScoreRecord(
            submission_id=submission_id,
            requirement_id=requirement_id,
            overall_score=local.overall_score,
            skills_score=local.sub_scores.skills,
            experience_score=local.sub_scores.experience,
            education_score=local.sub_scores.education,
            keywords_score=local.sub_scores.keywords,
            reasoning=local.reasoning,
            strengths=[r for r in local.reasoning if r.startswith("✓")],
            weaknesses=[r for r in local.reasoning if r.startswith("✗")],
            recommendations=[local.recommendation.value],
            matched_skills=matched,
            missing_skills=missing,
            recommendation=local.recommendation,
            match_level=local.match_level,
            **extra,
        )

    def _analysis_record(self, submission_id: str, requirement_id: Optional[str], analysis: LLMAnalysis,
                         **extra) -> MatchScoreRecord:
        return MatchScoreRecord(
            submission_id=submission_id,
            requirement_id=requirement_id,
            overall_score=analysis.overall_score,
            skills_score=analysis.sub_scores.skills,
            experience_score=analysis.sub_scores.experience,
            education_score=analysis.sub_scores.education,
            keywords_score=analysis.sub_scores.keywords,
            reasoning=analysis.reasoning,
            strengths=analysis.strengths,
            weaknesses=analysis.weaknesses,
            recommendations=analysis.recommendations,
            matched_skills=analysis.matched_skills,
            missing_skills=analysis.missing_skills,
            recommendation=analysis.recommendation,
            match_level=analysis.match_level,
            **extra,
        )

    async def score(self, submission_id: str, prepared: PreparedCandidate,
                    requirement: JobRequirement) -> MatchScoreRecord:
        requirement_id = requirement.requirement_id
        if not prepared.text.strip():
            logger.warning(f"No candidate text for submission {submission_id}, using fallback result")
            fallback = fallback_analysis()
            return self._analysis_record(
                submission_id, requirement_id, fallback,
                source=ResultSource.FALLBACK, degraded=True,
                local_score=fallback.overall_score, llm_score=None,
                candidate_sources=prepared.sources,
            )

        candidate = self.build_candidate(prepared)
        signals = build_requirement_signals(requirement)
        local = score_candidate(candidate, signals)

        llm = await self._run_llm(prepared.text, requirement)
        llm_score = llm.overall_score if llm is not None and not llm.degraded else None

        if llm is not None and not llm.degraded:
            logger.info(f"Submission {submission_id}: LLM score {llm.overall_score} (local {local.overall_score})")
            return self._analysis_record(
                submission_id, requirement_id, llm,
                source=ResultSource.LLM, degraded=False,
                local_score=local.overall_score, llm_score=llm_score,
                candidate_sources=prepared.sources,
            )

        have = set(_flat(candidate.skills))
        required = _flat(signals.skills)
        logger.info(f"Submission {submission_id}: local score {local.overall_score}")
        return self._local_record(
            submission_id, requirement_id, local,
            matched=[s for s in required if s in have],
            missing=[s for s in required if s not in have],
            source=ResultSource.LOCAL, degraded=self.llm_enabled(),
            local_score=local.overall_score, llm_score=None,
            candidate_sources=prepared.sources,
        )

    def local_report(self, prepared: PreparedCandidate, requirement: JobRequirement) -> Dict[str, Any]:
        candidate = self.build_candidate(prepared)
        return build_analysis_report(score_candidate(candidate, build_requirement_signals(requirement)), candidate)

    async def evaluate(self, submission: Submission, requirement: JobRequirement) -> MatchScoreRecord:
        prepared = await self.prepare_candidate(submission)
        return await self.score(submission.submission_id, prepared, requirement)

    @log_function_call
    async def run_analysis(self, submission: Submission, requirement: JobRequirement) -> MatchScoreRecord:
        record = await self.evaluate(submission, requirement)
        await self.store.save(record)
        return record

    async def run_analysis_in_background(self, submission: Submission, requirement: JobRequirement) -> None:
        """Background-task entry point; failures are logged and never reach the submitter."""
        try:
            await self.run_analysis(submission, requirement)
        except Exception:
            logger.exception(f"Background analysis failed for submission {submission.submission_id}")

    async def batch_analyze(self, candidates: List[Submission], requirement: JobRequirement) -> List[Dict[str, Any]]:
        items = []
        for submission in candidates:
            try:
                record = await self.evaluate(submission, requirement)
                items.append({
                    "submission_id": submission.submission_id,
                    "candidate_name": submission.candidate_name,
                    "overall_score": record.overall_score,
                    "match_level": record.match_level.value,
                    "recommendation": record.recommendation.value,
                    "source": record.source.value,
                    "record": record.model_dump(mode="json"),
                })
            except MatchServiceBaseException as e:
                logger.warning(f"Batch analysis failed for {submission.submission_id}: {e.message}")
                items.append({
                    "submission_id": submission.submission_id,
                    "candidate_name": submission.candidate_name,
                    "overall_score": None,
                    "error": e.to_dict(),
                })

        ranked = rank_results(items)
        for position, item in enumerate(ranked, start=1):
            item["rank"] = position
        return ranked
