import json
import math
from typing import Any, Dict, List

from app.helpers.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    ANALYSIS_PROMPT,
    SKILLS_SYSTEM_PROMPT,
    SKILLS_PROMPT,
    PROFILE_SYSTEM_PROMPT,
    PROFILE_PROMPT,
)
from app.models.ai_settings import RESUME_ANALYSIS, SKILL_EXTRACTION, LINKEDIN_PARSING
from app.models.models import JobRequirement, LLMAnalysis, SubScores
from app.services.llm import LLMClient
from app.services.matching import match_level_for, recommendation_for, round_half_up
from app.utils.exceptions import MalformedResponseError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

FALLBACK_SCORE = 50
FALLBACK_RECOMMENDATIONS = ["Manual review recommended"]
FALLBACK_REASONING = ["AI analysis failed, manual review required"]
MAX_CANDIDATE_CHARS = 12000

SUB_SCORE_FIELDS = ["skills", "experience", "education", "keywords"]
LIST_FIELDS = {
    "strengths": "strengths",
    "weaknesses": "weaknesses",
    "recommendations": "recommendations",
    "matchedSkills": "matched_skills",
    "missingSkills": "missing_skills",
}


def fallback_analysis() -> LLMAnalysis:
    return LLMAnalysis(
        overall_score=FALLBACK_SCORE,
        sub_scores=SubScores(**{f: FALLBACK_SCORE for f in SUB_SCORE_FIELDS}),
        reasoning=list(FALLBACK_REASONING),
        recommendation=recommendation_for(FALLBACK_SCORE),
        match_level=match_level_for(FALLBACK_SCORE),
        recommendations=list(FALLBACK_RECOMMENDATIONS),
        degraded=True,
    )


def safe_json(s: str, fallback: Any):
    if not isinstance(s, str):
        return fallback
    # heuristics to find JSON inside
    start = s.find("{")
    end = s.rfind("}")
    if start < 0 or end <= start:
        return fallback
    try:
        return json.loads(s[start:end + 1])
    except ValueError:
        return fallback


def _as_list(x: Any) -> List[str]:
    if x is None:
        return []
    if isinstance(x, str):
        # split on commas/semicolons; normalize tokens
        parts = [p.strip() for p in x.replace(";", ",").split(",")]
        return [p for p in parts if p]
    if isinstance(x, list):
        return [str(t).strip() for t in x if isinstance(t, (str, int, float)) and str(t).strip()]
    return []


def _score(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponseError(f"{field} is not a number", details={"field": field})
    if math.isnan(value) or not 0 <= value <= 100:
        raise MalformedResponseError(f"{field} out of range: {value}", details={"field": field})
    return round_half_up(value)


def _string_list(value: Any, field: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise MalformedResponseError(f"{field} is not a list of strings", details={"field": field})
    return [v.strip() for v in value if v.strip()]


def _validate(data: Any) -> LLMAnalysis:
    if not isinstance(data, dict):
        raise MalformedResponseError("response is not a JSON object")
    if "overallScore" not in data:
        raise MalformedResponseError("overallScore missing")
    overall = _score(data["overallScore"], "overallScore")

    raw_subs = data.get("subScores") or {}
    if not isinstance(raw_subs, dict):
        raise MalformedResponseError("subScores is not an object")
    subs = {}
    for name in SUB_SCORE_FIELDS:
        value = raw_subs.get(name)
        subs[name] = overall if value is None else _score(value, f"subScores.{name}")

    reasoning = data.get("reasoning")
    if isinstance(reasoning, str):
        reasoning = [reasoning]
    lists = {attr: _string_list(data.get(key), key) for key, attr in LIST_FIELDS.items()}

    return LLMAnalysis(
        overall_score=overall,
        sub_scores=SubScores(**subs),
        reasoning=_string_list(reasoning, "reasoning"),
        recommendation=recommendation_for(overall),
        match_level=match_level_for(overall),
        degraded=False,
        **lists,
    )


def parse_analysis_response(raw: str) -> LLMAnalysis:
    """Validate an LLM analysis; any shape violation yields the fixed fallback."""
    data = safe_json(raw, fallback=None)
    try:
        return _validate(data)
    except MalformedResponseError as e:
        logger.warning(f"Malformed LLM analysis, using fallback: {e.message}",
                       extra={"raw_response": (raw or "")[:500] if isinstance(raw, str) else None})
        return fallback_analysis()


def build_analysis_prompt(candidate_text: str, requirement: JobRequirement) -> str:
    return ANALYSIS_PROMPT.format(
        candidate=candidate_text[:MAX_CANDIDATE_CHARS],
        title=requirement.title,
        description=requirement.description,
        skills=", ".join(requirement.skills),
        exp_min=requirement.experience.min,
        exp_max=requirement.experience.max,
        location=requirement.location or "Not specified",
        education=requirement.education or "Not specified",
    )


class LLMScorer:
    """LLM-backed analysis. Transient and fatal client errors propagate to the caller."""

    def __init__(self, client: LLMClient):
        self.client = client

    def is_available(self) -> bool:
        return self.client.is_available()

    def analyze_resume(self, candidate_text: str, requirement: JobRequirement) -> LLMAnalysis:
        prompt = build_analysis_prompt(candidate_text, requirement)
        try:
            raw = self.client.chat(ANALYSIS_SYSTEM_PROMPT, prompt, RESUME_ANALYSIS)
        except MalformedResponseError as e:
            logger.warning(f"Unreadable LLM reply, using fallback: {e.message}")
            return fallback_analysis()
        return parse_analysis_response(raw)

    def extract_skills(self, text: str, context: str = "") -> Dict[str, List[str]]:
        try:
            raw = self.client.chat(
                SKILLS_SYSTEM_PROMPT,
                SKILLS_PROMPT.format(text=text[:MAX_CANDIDATE_CHARS], context=context or "general"),
                SKILL_EXTRACTION,
            )
        except MalformedResponseError as e:
            logger.warning(f"Unreadable skill extraction reply: {e.message}")
            return {}
        data = safe_json(raw, fallback={})
        if not isinstance(data, dict):
            return {}
        return {key: [s.lower() for s in _as_list(value)] for key, value in data.items()}

    def parse_profile_content(self, profile_text: str) -> Dict[str, Any]:
        try:
            raw = self.client.chat(
                PROFILE_SYSTEM_PROMPT,
                PROFILE_PROMPT.format(profile=profile_text[:MAX_CANDIDATE_CHARS]),
                LINKEDIN_PARSING,
            )
        except MalformedResponseError as e:
            logger.warning(f"Unreadable profile parsing reply: {e.message}")
            return {}
        data = safe_json(raw, fallback={})
        return data if isinstance(data, dict) else {}
