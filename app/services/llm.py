import threading
import time
from typing import Callable, Dict, Optional, Tuple

import requests

from app.models.ai_settings import GENERAL, LLMSettings, RetrySettings
from app.utils.exceptions import (
    ConfigurationError,
    ExternalServiceTransientError,
    MalformedResponseError,
    external_error_for_status,
    retry_with_logging,
)
from app.utils.logging_config import get_logger, PerformanceMonitor

logger = get_logger(__name__)

BUCKET_SECONDS = 60
BUCKET_RETENTION = 5  # minutes


class RateLimiter:
    """Per-minute request ceilings keyed by request category.

    A full bucket blocks the caller until the next minute boundary instead of
    rejecting the request. ``clock`` and ``sleep`` are injectable for tests.
    """

    def __init__(
        self,
        limits: Dict[str, int],
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.limits = dict(limits)
        self.clock = clock
        self.sleep = sleep
        self._counts: Dict[Tuple[str, int], int] = {}
        self._lock = threading.Lock()

    def limit_for(self, category: str) -> int:
        return self.limits.get(category) or self.limits.get(GENERAL, 50)

    def _prune(self, minute: int) -> None:
        for key in [k for k in self._counts if k[1] < minute - BUCKET_RETENTION]:
            del self._counts[key]

    def acquire(self, category: str = GENERAL) -> None:
        limit = self.limit_for(category)
        while True:
            with self._lock:
                now = self.clock()
                minute = int(now // BUCKET_SECONDS)
                self._prune(minute)
                key = (category, minute)
                count = self._counts.get(key, 0)
                if count < limit:
                    self._counts[key] = count + 1
                    return
                wait = (minute + 1) * BUCKET_SECONDS - now
            logger.info(f"Rate limit reached for {category} ({limit}/min), waiting {wait:.1f}s")
            self.sleep(wait)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            minute = int(self.clock() // BUCKET_SECONDS)
            return {cat: n for (cat, m), n in self._counts.items() if m == minute}


class LLMClient:
    """Chat client for an Ollama-compatible endpoint with JSON-mode responses."""

    SERVICE_NAME = "llm"

    def __init__(self, settings: LLMSettings, rate_limiter: RateLimiter, retry: Optional[RetrySettings] = None):
        self.settings = settings
        self.rate_limiter = rate_limiter
        retry = retry or RetrySettings()
        self._post = retry_with_logging(
            max_attempts=retry.max_attempts,
            backoff_factor=retry.base_delay,
            jitter=retry.jitter,
            exceptions=(ExternalServiceTransientError,),
            logger=logger,
        )(self._post_once)

    def is_available(self) -> bool:
        return self.settings.enabled

    def chat(self, system: str, user: str, category: str = GENERAL) -> str:
        if not self.is_available():
            raise ConfigurationError("LLM scoring is disabled", config_key="LLM_ENABLED", config_value=False)
        return self._post(system, user, category)

    def _build_payload(self, system: str, user: str, category: str) -> dict:
        cfg = self.settings.for_category(category)
        return {
            "model": cfg.model or self.settings.model_name,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "format": "json",
            "stream": False,
            "options": {
                "temperature": cfg.temperature,
                "top_p": cfg.top_p,
                "num_predict": cfg.max_tokens,
            },
        }

    def _post_once(self, system: str, user: str, category: str) -> str:
        self.rate_limiter.acquire(category)

        headers = {"Content-Type": "application/json"}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"

        url = f"{self.settings.base_url}/api/chat"
        try:
            with PerformanceMonitor(f"LLM {category} call", logger=logger, threshold_ms=10000):
                resp = requests.post(
                    url,
                    json=self._build_payload(system, user, category),
                    headers=headers,
                    timeout=self.settings.timeout,
                )
        except requests.RequestException as e:
            raise ExternalServiceTransientError(
                f"LLM request failed: {e}", service_name=self.SERVICE_NAME, cause=e
            ) from e

        if resp.status_code >= 400:
            raise external_error_for_status(resp.status_code, resp.text, self.SERVICE_NAME)

        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponseError("LLM response body is not JSON", raw_response=resp.text, cause=e) from e
        if not isinstance(data, dict):
            raise MalformedResponseError("LLM response body is not an object", raw_response=resp.text)

        message = data.get("message") or {}
        if not isinstance(message, dict):
            raise MalformedResponseError("LLM message is not an object", raw_response=resp.text)
        return message.get("content") or data.get("response") or ""
