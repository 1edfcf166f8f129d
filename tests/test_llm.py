import pytest
import requests
from unittest.mock import AsyncMock, MagicMock, patch

from app.models.ai_settings import LLMSettings, MATCH_SCORING, RESUME_ANALYSIS
from app.services.llm import LLMClient, RateLimiter
from app.utils.exceptions import (
    ConfigurationError,
    EmptyDocumentError,
    ExternalServiceFatalError,
    ExternalServiceTransientError,
    MalformedResponseError,
    UnsupportedFormatError,
    ValidationError,
    backoff_delay,
    external_error_for_status,
    map_to_http_exception,
    retry_with_logging,
)


class FakeClock:
    """Controllable clock; sleeping advances time"""

    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _response(status_code=200, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.json.return_value = payload if payload is not None else {}
    return resp


def _client(clock=None, **settings):
    clock = clock or FakeClock()
    limiter = RateLimiter({MATCH_SCORING: 15, RESUME_ANALYSIS: 20, "general": 50}, clock=clock, sleep=clock.sleep)
    return LLMClient(LLMSettings(**settings), limiter)


class TestRateLimiter:
    """Test cases for the per-minute throttle"""

    def test_blocks_until_next_minute(self):
        clock = FakeClock(now=10.0)
        limiter = RateLimiter({MATCH_SCORING: 2}, clock=clock, sleep=clock.sleep)

        limiter.acquire(MATCH_SCORING)
        limiter.acquire(MATCH_SCORING)
        assert clock.sleeps == []

        limiter.acquire(MATCH_SCORING)
        assert clock.sleeps == [50.0]
        assert limiter.snapshot() == {MATCH_SCORING: 1}

    def test_categories_are_independent(self):
        clock = FakeClock()
        limiter = RateLimiter({MATCH_SCORING: 1, RESUME_ANALYSIS: 1}, clock=clock, sleep=clock.sleep)

        limiter.acquire(MATCH_SCORING)
        limiter.acquire(RESUME_ANALYSIS)

        assert clock.sleeps == []
        assert limiter.snapshot() == {MATCH_SCORING: 1, RESUME_ANALYSIS: 1}

    def test_unknown_category_uses_general_limit(self):
        limiter = RateLimiter({"general": 7})
        assert limiter.limit_for("something_else") == 7

    def test_old_buckets_are_pruned(self):
        clock = FakeClock()
        limiter = RateLimiter({MATCH_SCORING: 5}, clock=clock, sleep=clock.sleep)

        limiter.acquire(MATCH_SCORING)
        clock.now = 7 * 60
        limiter.acquire(MATCH_SCORING)

        assert list(limiter._counts) == [(MATCH_SCORING, 7)]


class TestErrorClassification:
    """Test cases for upstream status classification and HTTP mapping"""

    @pytest.mark.parametrize("status,body,expected", [
        (500, "", ExternalServiceTransientError),
        (503, "", ExternalServiceTransientError),
        (429, "slow down", ExternalServiceTransientError),
        (429, '{"error": {"code": "insufficient_quota"}}', ExternalServiceFatalError),
        (401, "", ExternalServiceFatalError),
        (403, "", ExternalServiceFatalError),
        (402, "", ExternalServiceFatalError),
        (404, "", ExternalServiceFatalError),
    ])
    def test_external_error_for_status(self, status, body, expected):
        error = external_error_for_status(status, body, "llm")

        assert type(error) is expected
        assert error.details["status_code"] == status

    @pytest.mark.parametrize("exc,status", [
        (UnsupportedFormatError(), 415),
        (EmptyDocumentError(), 422),
        (ValidationError("bad"), 400),
        (ExternalServiceTransientError("down"), 503),
        (ExternalServiceFatalError("bad key"), 502),
        (MalformedResponseError("not json"), 502),
        (ConfigurationError("disabled"), 400),
    ])
    def test_map_to_http_exception(self, exc, status):
        assert map_to_http_exception(exc).status_code == status

    @patch('app.utils.exceptions.uniform', return_value=0.5)
    def test_backoff_delay(self, mock_uniform):
        assert backoff_delay(0) == 1.5
        assert backoff_delay(2, backoff_factor=1.0, jitter=1.0) == 4.5
        mock_uniform.assert_called_with(0, 1.0)


class TestLLMClient:
    """Test cases for the chat client"""

    @patch('app.services.llm.requests.post')
    def test_chat_posts_json_mode_request(self, mock_post):
        mock_post.return_value = _response(payload={"message": {"content": '{"overallScore": 70}'}})
        client = _client(base_url="http://llm.test/", api_key="secret", model_name="llama3.1:8b")

        content = client.chat("system text", "user text", RESUME_ANALYSIS)

        assert content == '{"overallScore": 70}'
        args, kwargs = mock_post.call_args
        assert args[0] == "http://llm.test/api/chat"
        payload = kwargs["json"]
        assert payload["format"] == "json"
        assert payload["stream"] is False
        assert payload["model"] == "llama3.1:8b"
        assert payload["messages"][0] == {"role": "system", "content": "system text"}
        assert payload["options"]["temperature"] == 0.3
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert kwargs["timeout"] == 60

    @patch('app.services.llm.requests.post')
    def test_chat_counts_against_rate_limit(self, mock_post):
        mock_post.return_value = _response(payload={"message": {"content": "{}"}})
        client = _client()

        client.chat("s", "u", MATCH_SCORING)

        assert client.rate_limiter.snapshot() == {MATCH_SCORING: 1}

    @patch('app.utils.exceptions.uniform', return_value=0.0)
    @patch('app.utils.exceptions.time.sleep')
    @patch('app.services.llm.requests.post')
    def test_transient_errors_are_retried(self, mock_post, mock_sleep, mock_uniform):
        mock_post.side_effect = [
            _response(503),
            _response(500),
            _response(payload={"message": {"content": "ok"}}),
        ]
        client = _client()

        assert client.chat("s", "u") == "ok"
        assert mock_post.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch('app.utils.exceptions.time.sleep')
    @patch('app.services.llm.requests.post')
    def test_retries_exhaust(self, mock_post, mock_sleep):
        mock_post.return_value = _response(503)
        client = _client()

        with pytest.raises(ExternalServiceTransientError):
            client.chat("s", "u")
        assert mock_post.call_count == 3
        assert mock_sleep.call_count == 2

    @patch('app.utils.exceptions.time.sleep')
    @patch('app.services.llm.requests.post')
    def test_timeouts_are_transient(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.Timeout("read timed out")
        client = _client()

        with pytest.raises(ExternalServiceTransientError):
            client.chat("s", "u")
        assert mock_post.call_count == 3

    @pytest.mark.parametrize("status,text", [
        (401, "invalid api key"),
        (402, ""),
        (429, '{"error": "insufficient_quota"}'),
    ])
    @patch('app.utils.exceptions.time.sleep')
    @patch('app.services.llm.requests.post')
    def test_fatal_errors_are_not_retried(self, mock_post, mock_sleep, status, text):
        mock_post.return_value = _response(status, text=text)
        client = _client()

        with pytest.raises(ExternalServiceFatalError):
            client.chat("s", "u")
        assert mock_post.call_count == 1
        mock_sleep.assert_not_called()

    @patch('app.utils.exceptions.time.sleep')
    @patch('app.services.llm.requests.post')
    def test_other_request_errors_are_transient(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.exceptions.ChunkedEncodingError("reset")

        with pytest.raises(ExternalServiceTransientError):
            _client().chat("s", "u")
        assert mock_post.call_count == 3

    @patch('app.services.llm.requests.post')
    def test_message_must_be_an_object(self, mock_post):
        mock_post.return_value = _response(payload={"message": "oops"})

        with pytest.raises(MalformedResponseError):
            _client().chat("s", "u")

    @patch('app.services.llm.requests.post')
    def test_non_json_body(self, mock_post):
        resp = _response(text="<html>gateway</html>")
        resp.json.side_effect = ValueError("no json")
        mock_post.return_value = resp

        with pytest.raises(MalformedResponseError):
            _client().chat("s", "u")

    @patch('app.services.llm.requests.post')
    def test_disabled_client(self, mock_post):
        client = _client(enabled=False)

        assert client.is_available() is False
        with pytest.raises(ConfigurationError):
            client.chat("s", "u")
        mock_post.assert_not_called()


class TestRetryDecorator:
    """Test cases for retry_with_logging"""

    @pytest.mark.asyncio
    @patch('app.utils.exceptions.asyncio.sleep', new_callable=AsyncMock)
    async def test_async_retry(self, mock_sleep):
        calls = []

        @retry_with_logging(max_attempts=3, jitter=0.0, exceptions=(ExternalServiceTransientError,))
        async def flaky():
            calls.append(1)
            if len(calls) < 2:
                raise ExternalServiceTransientError("blip")
            return "done"

        assert await flaky() == "done"
        assert len(calls) == 2
        mock_sleep.assert_awaited_once_with(1.0)

    @patch('app.utils.exceptions.time.sleep')
    def test_other_errors_are_not_retried(self, mock_sleep):
        calls = []

        @retry_with_logging(exceptions=(ExternalServiceTransientError,))
        def broken():
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            broken()
        assert len(calls) == 1
        mock_sleep.assert_not_called()
