import re
from collections import Counter
from typing import Dict, Iterable, List, Union

from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS

from app.helpers.vocabulary import (
    SKILL_CATEGORIES,
    OTHER_CATEGORY,
    EXPERIENCE_LEVELS,
    ROLE_KEYWORDS,
    EDUCATION_KEYWORDS,
    CERTIFICATION_KEYWORDS,
    LANGUAGE_KEYWORDS,
    CLASSIFIER_CERT_KEYWORDS,
    CLASSIFIER_TECH_KEYWORDS,
    CLASSIFIER_SOFT_KEYWORDS,
    SENIORITY_TITLES,
)
from app.models.models import (
    CandidateProfile,
    ExperienceEntry,
    ExperienceLevel,
    JobRequirement,
    RequirementSignals,
)
from app.services.matching import round_half_up

MIN_TOKEN_LENGTH = 3
TOP_KEYWORDS = 20
DEFAULT_ENTRY_MONTHS = 12

YEARS_RE = re.compile(r"(\d+)\s*(?:yr|year)", re.I)
MONTHS_RE = re.compile(r"(\d+)\s*(?:mo|month)", re.I)
EXPERIENCE_MENTION_RE = re.compile(r"(\d+)\+?\s*(?:years?|yrs?)\s*(?:of\s*)?(?:experience|exp)", re.I)


# -------- Tokens / keywords --------
def tokenize_and_filter(text: str) -> List[str]:
    tokens = re.findall(r"\w+", (text or "").lower())
    return [
        t for t in tokens
        if len(t) >= MIN_TOKEN_LENGTH and t.isalpha() and t not in ENGLISH_STOP_WORDS
    ]


def keyword_frequencies(text: str) -> Counter:
    return Counter(tokenize_and_filter(text))


def top_keywords(text: str, limit: int = TOP_KEYWORDS) -> List[str]:
    # Counter.most_common keeps first-seen order for equal counts
    return [word for word, _ in keyword_frequencies(text).most_common(limit)]


# -------- Skills --------
def _contains_term(text: str, term: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])", text) is not None


def category_for_skill(skill: str) -> str:
    for category, keywords in SKILL_CATEGORIES.items():
        if skill in keywords:
            return category
    return OTHER_CATEGORY


def extract_skills(text: str, extra_skills: Iterable[str] = ()) -> Dict[str, List[str]]:
    """Vocabulary hits per category, plus declared skills placed in their category or "other"."""
    lowered = (text or "").lower()
    found: Dict[str, List[str]] = {}
    for category, keywords in SKILL_CATEGORIES.items():
        hits = [k for k in keywords if _contains_term(lowered, k)]
        if hits:
            found[category] = hits

    for skill in extra_skills:
        skill = (skill or "").strip().lower()
        if not skill:
            continue
        bucket = found.setdefault(category_for_skill(skill), [])
        if skill not in bucket:
            bucket.append(skill)
    return found


def categorize_skills(skills: Iterable[str]) -> Dict[str, List[str]]:
    out = {"certifications": [], "technical": [], "soft": []}
    for skill in skills:
        lowered = skill.lower()
        if any(k in lowered for k in CLASSIFIER_CERT_KEYWORDS):
            out["certifications"].append(skill)
        elif any(k in lowered for k in CLASSIFIER_TECH_KEYWORDS):
            out["technical"].append(skill)
        elif any(k in lowered for k in CLASSIFIER_SOFT_KEYWORDS):
            out["soft"].append(skill)
        else:
            out["technical"].append(skill)
    return out


# -------- Experience --------
def parse_duration_to_months(duration: str) -> int:
    years = YEARS_RE.search(duration)
    months = MONTHS_RE.search(duration)
    if not years and not months:
        return DEFAULT_ENTRY_MONTHS
    total = 0
    if years:
        total += int(years.group(1)) * 12
    if months:
        total += int(months.group(1))
    return total


def estimate_experience_years(entries: Iterable[Union[str, ExperienceEntry]]) -> float:
    total_months = 0
    for entry in entries:
        duration = entry.duration if isinstance(entry, ExperienceEntry) else entry
        if not duration or not duration.strip():
            continue
        total_months += parse_duration_to_months(duration)
    return round_half_up(total_months / 12 * 10) / 10


def extract_experience_years(text: str) -> int:
    mentions = [int(m) for m in EXPERIENCE_MENTION_RE.findall(text or "")]
    return max(mentions) if mentions else 0


def _keyword_hits(text: str, keywords: Iterable[str]) -> List[str]:
    lowered = (text or "").lower()
    return [k for k in keywords if k in lowered]


def extract_roles(text: str) -> List[str]:
    return _keyword_hits(text, ROLE_KEYWORDS)


def extract_education(text: str) -> List[str]:
    return _keyword_hits(text, EDUCATION_KEYWORDS)


def extract_certifications(text: str) -> List[str]:
    return _keyword_hits(text, CERTIFICATION_KEYWORDS)


def extract_languages(text: str) -> List[str]:
    return _keyword_hits(text, LANGUAGE_KEYWORDS)


def determine_experience_level(text: str) -> ExperienceLevel:
    lowered = (text or "").lower()
    best, best_count = ExperienceLevel.MID, 0
    for level, keywords in EXPERIENCE_LEVELS.items():
        count = sum(1 for k in keywords if k in lowered)
        if count > best_count:
            best, best_count = ExperienceLevel(level), count
    return best


def determine_seniority(headline: str, years: float) -> str:
    lowered = (headline or "").lower()
    for label, keywords in SENIORITY_TITLES:
        if any(k in lowered for k in keywords):
            return label
    if years >= 8:
        return "Senior"
    if years >= 4:
        return "Mid-level"
    return "Junior"


# -------- Profiles --------
def build_candidate_profile(
    text: str,
    experience_entries: Iterable[ExperienceEntry] = (),
    extra_skills: Iterable[str] = (),
    headline: str = "",
) -> CandidateProfile:
    entries = list(experience_entries)
    years = max(estimate_experience_years(entries), float(extract_experience_years(text)))
    return CandidateProfile(
        raw_text=text,
        skills=extract_skills(text, extra_skills),
        experience_years=years,
        roles=extract_roles(text),
        education_keywords=extract_education(text),
        certifications=extract_certifications(text),
        keywords=top_keywords(text),
        languages=extract_languages(text),
        experience_level=determine_experience_level(text),
        seniority=determine_seniority(headline, years),
    )


def build_requirement_signals(requirement: JobRequirement) -> RequirementSignals:
    described = f"{requirement.title} {requirement.description}"
    years = requirement.experience.min or extract_experience_years(requirement.description)
    return RequirementSignals(
        skills=extract_skills(requirement.description, requirement.skills),
        experience_years=float(years),
        roles=extract_roles(described),
        education_keywords=extract_education(f"{requirement.description} {requirement.education}"),
        keywords=top_keywords(requirement.description),
    )
