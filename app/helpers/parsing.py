import io
import logging
import re
from typing import Dict, Iterable, List

from bs4 import BeautifulSoup
from pdfminer.high_level import extract_text as pdf_extract
from pdfminer.pdfpage import PDFPage

from app.models.models import PDFText, PartialProfile, ExperienceEntry, EducationEntry
from app.utils.exceptions import UnsupportedFormatError, EmptyDocumentError, ProcessingError
from app.utils.logging_config import get_logger

logging.getLogger("pdfminer").setLevel(logging.ERROR)
logger = get_logger(__name__)

PDF_SIGNATURE = b"%PDF"

# Selector candidates in priority order; the first non-empty match wins
NAME_SELECTORS = [
    'h1.text-heading-xlarge',
    '.pv-text-details__left-panel h1',
    '.top-card-layout__title',
    'h1[data-test-id="profile-name"]',
    '.profile-photo-edit__preview',
]
HEADLINE_SELECTORS = [
    '.text-body-medium.break-words',
    '.pv-text-details__left-panel .text-body-medium',
    '.top-card-layout__headline',
    '[data-test-id="profile-headline"]',
]
LOCATION_SELECTORS = [
    '.text-body-small.inline.t-black--light.break-words',
    '.pv-text-details__left-panel .text-body-small',
    '.top-card__subline-item',
    '[data-test-id="profile-location"]',
]
SUMMARY_SELECTORS = [
    '#about .pv-shared-text-with-see-more .full-width',
    '.pv-about__summary-text .lt-line-clamp__raw-line',
    '.summary-section .pv-about__summary-text',
    '[data-test-id="about-section"]',
]
EXPERIENCE_SELECTORS = [
    '#experience ~ .pvs-list__outer-container .pvs-entity',
    '.pv-profile-section__section-info .pv-entity__summary-info',
    '[data-test-id="experience-section"] .pvs-entity',
]
EDUCATION_SELECTORS = [
    '#education ~ .pvs-list__outer-container .pvs-entity',
    '.pv-profile-section.education-section .pv-entity__summary-info',
    '[data-test-id="education-section"] .pvs-entity',
]
SKILL_SELECTORS = [
    '#skills ~ .pvs-list__outer-container .mr1.t-bold span',
    '.pv-skill-category-entity__name span',
    '[data-test-id="skills-section"] .pvs-entity .mr1.t-bold span',
]
CONNECTION_SELECTORS = [
    '.t-black--light.t-normal .link-without-visited-state',
    '.pv-top-card--list-bullet span',
    '[data-test-id="profile-connections"]',
]

# Fields that feed the completeness flag
PROFILE_FIELDS = ["name", "headline", "location", "summary", "experience", "education", "skills"]

SECTION_PATTERNS = {
    "contact": re.compile(r"^(contact|personal details|personal information|details)\b", re.I),
    "summary": re.compile(r"^(summary|profile|objective|about)\b", re.I),
    "experience": re.compile(r"^(experience|work experience|work history|employment|career history)\b", re.I),
    "education": re.compile(r"^(education|qualifications?|academic)\b", re.I),
    "skills": re.compile(r"^(skills|technical skills|competencies|expertise)\b", re.I),
    "projects": re.compile(r"^(projects|portfolio|achievements)\b", re.I),
    "certifications": re.compile(r"^(certifications|certificates|licenses)\b", re.I),
    "languages": re.compile(r"^(languages)\b", re.I),
}
MAX_HEADER_LENGTH = 40

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)*\.\w+")
PHONE_RE = re.compile(r"(?:\+?\d{1,4}[\s-]?)?\(?\d{3}\)?[\s-]?\d{3}[\s-]?\d{4}")
LINKEDIN_RE = re.compile(r"linkedin\.com/in/[\w-]+", re.I)
GITHUB_RE = re.compile(r"github\.com/[\w-]+", re.I)

JOB_TITLE_RE = re.compile(r"\b(engineer|developer|manager|analyst|architect|consultant|specialist|lead|senior|junior)\b", re.I)
DURATION_RE = re.compile(r"\b\d{4}\b|\d+\s+(?:years?|months?|yrs?|mos?)\b", re.I)
DEGREE_RE = re.compile(r"\b(bachelor|master|phd|doctorate|diploma|mba|b\.?sc?|m\.?sc?|b\.?a|m\.?a)\b", re.I)
DEGREE_PARTS_RE = re.compile(r"^(.+?)\s+(?:at|from|,)\s+(.+?)(?:\s+(\d{4}(?:\s*-\s*\d{4})?))?$", re.I)


def clean_text(x: str) -> str:
    x = re.sub(r'\s+', ' ', x).strip()
    return x


# -------- PDF --------
def count_pages(buffer: bytes) -> int:
    return sum(1 for _ in PDFPage.get_pages(io.BytesIO(buffer)))


def extract_from_pdf(buffer: bytes) -> PDFText:
    """Extract plain text and page count from a PDF buffer.

    The signature is checked before any parse attempt. Size limits are
    enforced by the caller.
    """
    if not isinstance(buffer, (bytes, bytearray)) or bytes(buffer[:4]) != PDF_SIGNATURE:
        raise UnsupportedFormatError()

    try:
        text = pdf_extract(io.BytesIO(bytes(buffer)))
        page_count = count_pages(bytes(buffer))
    except Exception as e:
        raise ProcessingError(f"Text extraction failed: {e}", document_type="pdf", cause=e) from e

    if not text or not text.strip():
        raise EmptyDocumentError()

    logger.debug(f"Extracted {len(text)} characters from {page_count} PDF page(s)")
    return PDFText(text=text, page_count=page_count)


# -------- HTML --------
def _node_text(node) -> str:
    return clean_text(node.get_text(" ", strip=True)) if node is not None else ""


def _first_text(root, selectors: Iterable[str], reject: str = None) -> str:
    for selector in selectors:
        text = _node_text(root.select_one(selector))
        if text and not (reject and reject in text.lower()):
            return text
    return ""


def _title_fallback(soup: BeautifulSoup) -> str:
    title = soup.title.get_text() if soup.title else ""
    match = re.match(r"^([^|]+)", title.strip())
    return match.group(1).strip() if match else ""


def _extract_experience(soup: BeautifulSoup) -> List[ExperienceEntry]:
    for selector in EXPERIENCE_SELECTORS:
        entries = []
        for element in soup.select(selector):
            title = _first_text(element, ['.mr1.t-bold span', '.pv-entity__summary-info h3', 'h3'])
            company = _first_text(element, ['.t-14.t-normal span', '.pv-entity__secondary-title'])
            duration = _first_text(element, ['.t-14.t-normal.t-black--light span', '.pv-entity__dates span'])
            if title and company:
                entries.append(ExperienceEntry(
                    title=title,
                    company=company,
                    duration=duration,
                    description=_first_text(element, ['.pv-shared-text-with-see-more']),
                ))
        if entries:
            return entries
    return []


def _extract_education(soup: BeautifulSoup) -> List[EducationEntry]:
    for selector in EDUCATION_SELECTORS:
        entries = []
        for element in soup.select(selector):
            school = _first_text(element, ['.mr1.t-bold span', '.pv-entity__school-name'])
            if school:
                entries.append(EducationEntry(
                    school=school,
                    degree=_first_text(element, ['.t-14.t-normal span', '.pv-entity__degree-name']),
                    year=_first_text(element, ['.t-14.t-normal.t-black--light span', '.pv-entity__dates span']),
                ))
        if entries:
            return entries
    return []


def _extract_skills(soup: BeautifulSoup) -> List[str]:
    for selector in SKILL_SELECTORS:
        skills = []
        for element in soup.select(selector):
            skill = _node_text(element)
            if skill and skill not in skills:
                skills.append(skill)
        if skills:
            return skills
    return []


def _extract_connections(soup: BeautifulSoup) -> str:
    for selector in CONNECTION_SELECTORS:
        for element in soup.select(selector):
            text = _node_text(element)
            if "connection" in text.lower():
                return text
    return ""


def extract_from_html(html: str) -> PartialProfile:
    """Best-effort extraction from a scraped profile page. Never raises."""
    try:
        soup = BeautifulSoup(html or "", "html.parser")
    except Exception as e:
        logger.warning(f"Unparseable profile HTML, returning empty profile: {e}")
        return assess_completeness(PartialProfile(source="linkedin"))

    profile = PartialProfile(
        source="linkedin",
        name=_first_text(soup, NAME_SELECTORS) or _title_fallback(soup),
        headline=_first_text(soup, HEADLINE_SELECTORS),
        location=_first_text(soup, LOCATION_SELECTORS, reject="connection"),
        summary=_first_text(soup, SUMMARY_SELECTORS),
        experience=_extract_experience(soup),
        education=_extract_education(soup),
        skills=_extract_skills(soup),
        connections=_extract_connections(soup),
        raw_text=clean_text(soup.get_text(" ", strip=True)),
    )
    return assess_completeness(profile)


def assess_completeness(profile: PartialProfile) -> PartialProfile:
    missing = [f for f in PROFILE_FIELDS if not getattr(profile, f)]
    warnings = []
    if not profile.experience:
        warnings.append("No experience information found")
    if not profile.skills:
        warnings.append("No skills information found")
    if not profile.summary:
        warnings.append("No summary/about section found")
    filled = len(PROFILE_FIELDS) - len(missing)
    return profile.model_copy(update={
        "completeness": round(filled / len(PROFILE_FIELDS), 2),
        "missing_fields": missing,
        "warnings": warnings,
    })


# -------- Resume text --------
def identify_sections(text: str) -> Dict[str, str]:
    """Split resume text on common section headers; leading text goes under "other"."""
    sections: Dict[str, List[str]] = {}
    current = "other"
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        found = None
        if len(line) <= MAX_HEADER_LENGTH:
            for name, pattern in SECTION_PATTERNS.items():
                if pattern.match(line):
                    found = name
                    break
        if found:
            current = found
            sections.setdefault(current, [])
        else:
            sections.setdefault(current, []).append(line)
    return {name: "\n".join(lines) for name, lines in sections.items() if lines}


def extract_contact_info(text: str) -> Dict[str, str]:
    contact = {}
    email = EMAIL_RE.search(text)
    if email:
        contact["email"] = email.group(0)
    phone = PHONE_RE.search(text)
    if phone:
        contact["phone"] = phone.group(0).strip()
    linkedin = LINKEDIN_RE.search(text)
    if linkedin:
        contact["linkedin"] = "https://" + linkedin.group(0)
    github = GITHUB_RE.search(text)
    if github:
        contact["github"] = "https://" + github.group(0)

    first_line = next((l.strip() for l in text.splitlines() if l.strip()), "")
    if first_line and len(first_line) < 50 and not EMAIL_RE.search(first_line) and not any(c.isdigit() for c in first_line):
        contact["name"] = first_line
    return contact


def _parse_experience_section(text: str) -> List[ExperienceEntry]:
    entries: List[ExperienceEntry] = []
    current = None
    description: List[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        if JOB_TITLE_RE.search(line) and len(line) < 80:
            if current is not None:
                entries.append(current.model_copy(update={"description": " ".join(description)}))
            current = ExperienceEntry(title=line)
            description = []
        elif current is None:
            continue
        elif not current.duration and DURATION_RE.search(line):
            current = current.model_copy(update={"duration": line})
        elif not current.company and 2 < len(line) < 50 and "@" not in line:
            current = current.model_copy(update={"company": line})
        else:
            description.append(line)
    if current is not None:
        entries.append(current.model_copy(update={"description": " ".join(description)}))
    return entries


def _parse_education_section(text: str) -> List[EducationEntry]:
    entries = []
    for line in text.splitlines():
        line = line.strip()
        if not line or not DEGREE_RE.search(line):
            continue
        match = DEGREE_PARTS_RE.match(line)
        if match:
            entries.append(EducationEntry(degree=match.group(1).strip(), school=match.group(2).strip(), year=match.group(3) or ""))
        else:
            entries.append(EducationEntry(degree=line))
    return entries


def _split_skills(text: str) -> List[str]:
    skills = []
    for part in re.split(r"[,\n•|;]", text):
        part = part.strip(" -*\t")
        if 1 < len(part) < 40 and part not in skills:
            skills.append(part)
    return skills


def parse_resume_text(text: str) -> PartialProfile:
    """Structured partial profile from plain resume text."""
    sections = identify_sections(text)
    contact = extract_contact_info(text)
    profile = PartialProfile(
        source="pdf",
        name=contact.get("name", ""),
        email=contact.get("email", ""),
        phone=contact.get("phone", ""),
        linkedin_url=contact.get("linkedin", ""),
        github_url=contact.get("github", ""),
        summary=clean_text(sections.get("summary", "")),
        experience=_parse_experience_section(sections.get("experience", "")),
        education=_parse_education_section(sections.get("education", "")),
        skills=_split_skills(sections.get("skills", "")),
        raw_text=text,
    )
    return assess_completeness(profile)
