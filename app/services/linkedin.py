import itertools
import re

import requests

from app.helpers.parsing import extract_from_html
from app.models.ai_settings import PROFILE_FETCH_TIMEOUT_SECONDS, RetrySettings
from app.models.models import PartialProfile
from app.utils.exceptions import (
    ExternalServiceTransientError,
    ValidationError,
    external_error_for_status,
    retry_with_logging,
)
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "linkedin"
LINKEDIN_URL_RE = re.compile(r"^https?://(www\.)?linkedin\.com/in/[\w\-_.]+/?$", re.I)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
]
_user_agents = itertools.cycle(USER_AGENTS)

_retry = RetrySettings()


def is_valid_linkedin_url(url: str) -> bool:
    return bool(url) and LINKEDIN_URL_RE.match(url.strip()) is not None


@retry_with_logging(
    max_attempts=_retry.max_attempts,
    backoff_factor=_retry.base_delay,
    jitter=_retry.jitter,
    exceptions=(ExternalServiceTransientError,),
    logger=logger,
)
def _get(url: str) -> str:
    headers = {
        "User-Agent": next(_user_agents),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }
    try:
        resp = requests.get(url, headers=headers, timeout=PROFILE_FETCH_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        raise ExternalServiceTransientError(
            f"Profile fetch failed: {e}", service_name=SERVICE_NAME, cause=e
        ) from e
    if resp.status_code >= 400:
        raise external_error_for_status(resp.status_code, "", SERVICE_NAME)
    return resp.text


def fetch_profile_html(url: str) -> str:
    if not is_valid_linkedin_url(url):
        raise ValidationError("Invalid LinkedIn URL provided", field="linkedin_url", value=url)
    logger.info(f"Fetching LinkedIn profile: {url}")
    return _get(url.strip())


def fetch_profile(url: str) -> PartialProfile:
    profile = extract_from_html(fetch_profile_html(url))
    logger.info(f"LinkedIn profile parsed with completeness {profile.completeness}")
    return profile.model_copy(update={"linkedin_url": url.strip()})
