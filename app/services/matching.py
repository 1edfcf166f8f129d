from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from app.models.models import (
    CandidateProfile,
    MatchLevel,
    MatchResult,
    Recommendation,
    RequirementSignals,
    ScoreComponent,
    SubScores,
)

# Canonical weights; stored match scores depend on these exact values
WEIGHTS = {
    "skills": 0.40,
    "experience": 0.30,
    "education": 0.15,
    "keywords": 0.15,
}

NEUTRAL_SCORE = 50
EXPERIENCE_BASE = 50
EXPERIENCE_MET_BONUS = 30
EXPERIENCE_SHORT_PENALTY = 20
ROLE_BONUS = 20
EDUCATION_BASE = 70
EDUCATION_BONUS = 30

THRESHOLDS = [
    (80, MatchLevel.EXCELLENT, Recommendation.HIGHLY_RECOMMENDED),
    (70, MatchLevel.GOOD, Recommendation.RECOMMENDED),
    (60, MatchLevel.MODERATE, Recommendation.CONSIDER),
    (40, MatchLevel.WEAK, Recommendation.WEAK_MATCH),
]

IMPACT = {"skills": "High", "experience": "High", "education": "Medium", "keywords": "Medium"}


def round_half_up(value: float) -> int:
    """Nearest integer with exact halves rounded up, so 12.5 gives 13 rather than 12"""
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _clamp(x: float, lo: int = 0, hi: int = 100) -> int:
    return int(max(lo, min(hi, x)))


def score_skills(candidate: Dict[str, List[str]], required: Dict[str, List[str]]) -> ScoreComponent:
    matched, total = 0, 0
    reasoning = []
    for category, req_skills in required.items():
        if not req_skills:
            continue
        have = set(candidate.get(category, []))
        hits = [s for s in req_skills if s in have]
        matched += len(hits)
        total += len(req_skills)
        if hits:
            reasoning.append(f"✓ Matches {len(hits)}/{len(req_skills)} {category} skills: {', '.join(hits)}")
        else:
            reasoning.append(f"✗ Missing {category} skills: {', '.join(req_skills)}")

    if total == 0:
        return ScoreComponent(score=NEUTRAL_SCORE, reasoning=reasoning)
    return ScoreComponent(score=round_half_up(matched / total * 100), reasoning=reasoning)


def score_experience(
    candidate_years: float,
    required_years: float,
    candidate_roles: List[str],
    required_roles: List[str],
) -> ScoreComponent:
    score = EXPERIENCE_BASE
    reasoning = []
    if required_years > 0:
        if candidate_years >= required_years:
            score += EXPERIENCE_MET_BONUS
            reasoning.append(f"✓ Experience: {candidate_years:g} years (required: {required_years:g}+)")
        else:
            score -= EXPERIENCE_SHORT_PENALTY
            reasoning.append(f"✗ Experience: {candidate_years:g} years (required: {required_years:g}+)")

    relevant = [r for r in candidate_roles if any(r in q or q in r for q in required_roles)]
    if relevant:
        score += ROLE_BONUS
        reasoning.append(f"✓ Relevant roles: {', '.join(relevant)}")

    return ScoreComponent(score=_clamp(score), reasoning=reasoning)


def score_education(candidate: List[str], required: List[str]) -> ScoreComponent:
    score = EDUCATION_BASE
    reasoning = []
    common = [e for e in candidate if e in required]
    if common:
        score += EDUCATION_BONUS
        reasoning.append(f"✓ Education match: {', '.join(common)}")
    elif required:
        reasoning.append("? Education: No direct match found")
    return ScoreComponent(score=_clamp(score), reasoning=reasoning)


def score_keywords(candidate: List[str], required: List[str]) -> ScoreComponent:
    if not candidate or not required:
        return ScoreComponent(score=NEUTRAL_SCORE, reasoning=["? Keywords: Insufficient data for comparison"])

    have = set(candidate)
    common = [k for k in required if k in have]
    score = round_half_up(len(common) / max(len(required), 1) * 100)
    if common:
        reasoning = [f"✓ Common keywords ({len(common)}): {', '.join(common[:5])}"]
    else:
        reasoning = ["✗ No common keywords found"]
    return ScoreComponent(score=_clamp(score), reasoning=reasoning)


def overall_score(sub_scores: SubScores) -> int:
    total = sum(getattr(sub_scores, name) * weight for name, weight in WEIGHTS.items())
    return _clamp(round_half_up(total))


def recommendation_for(score: int) -> Recommendation:
    for threshold, _, recommendation in THRESHOLDS:
        if score >= threshold:
            return recommendation
    return Recommendation.NOT_RECOMMENDED


def match_level_for(score: int) -> MatchLevel:
    for threshold, level, _ in THRESHOLDS:
        if score >= threshold:
            return level
    return MatchLevel.POOR


def score_candidate(candidate: CandidateProfile, requirement: RequirementSignals) -> MatchResult:
    skills = score_skills(candidate.skills, requirement.skills)
    experience = score_experience(
        candidate.experience_years, requirement.experience_years,
        candidate.roles, requirement.roles,
    )
    education = score_education(candidate.education_keywords, requirement.education_keywords)
    keywords = score_keywords(candidate.keywords, requirement.keywords)

    sub_scores = SubScores(
        skills=skills.score,
        experience=experience.score,
        education=education.score,
        keywords=keywords.score,
    )
    total = overall_score(sub_scores)
    return MatchResult(
        overall_score=total,
        sub_scores=sub_scores,
        reasoning=skills.reasoning + experience.reasoning + education.reasoning + keywords.reasoning,
        recommendation=recommendation_for(total),
        match_level=match_level_for(total),
    )


def build_analysis_report(result: MatchResult, candidate: CandidateProfile) -> Dict[str, Any]:
    """Human-readable breakdown of a local match result."""
    breakdown = {}
    for name, weight in WEIGHTS.items():
        breakdown[name] = {
            "score": getattr(result.sub_scores, name),
            "weight": f"{round(weight * 100)}%",
            "impact": IMPACT[name],
        }

    top_skills = [s for skills in candidate.skills.values() for s in skills][:10]
    return {
        "summary": {
            "overall_score": result.overall_score,
            "match_level": result.match_level.value,
            "recommendation": result.recommendation.value,
        },
        "breakdown": breakdown,
        "strengths": [r for r in result.reasoning if r.startswith("✓")],
        "gaps": [r for r in result.reasoning if r.startswith("✗")],
        "considerations": [r for r in result.reasoning if r.startswith("?")],
        "candidate_highlights": {
            "top_skills": top_skills,
            "experience_level": candidate.experience_level.value,
            "experience_years": candidate.experience_years,
            "seniority": candidate.seniority,
            "education": candidate.education_keywords,
        },
    }


def rank_results(items: List[Dict[str, Any]], score_key: str = "overall_score") -> List[Dict[str, Any]]:
    """Stable sort by score descending; items without a score (failures) go last."""
    def key(item):
        score: Optional[int] = item.get(score_key)
        return (score is None, -(score or 0))
    return sorted(items, key=key)
