"""Tests for the rate limit plus captcha gate."""

import httpx
import pytest

from api.services.abuse_control import AbuseControl
from core.exceptions import CaptchaRejected
from core.integrations.captcha import CaptchaUnavailable, RecaptchaVerifier
from core.middleware.rate_limiting import (
    InMemoryRateLimitStore,
    PublicApplyRateLimiter,
    RateLimitExceeded,
)


def recaptcha(score=None, success=True, secret="secret"):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        body = {"success": success}
        if score is not None:
            body["score"] = score
        return httpx.Response(200, json=body)

    verifier = RecaptchaVerifier(secret, min_score=0.5, transport=httpx.MockTransport(handler))
    return verifier, calls


def limiter(max_requests=5):
    return PublicApplyRateLimiter(InMemoryRateLimitStore(), max_requests=max_requests, window_seconds=600)


class TestAbuseControl:

    async def test_passes_with_good_score(self):
        verifier, _ = recaptcha(score=0.9)
        control = AbuseControl(limiter(), verifier)

        check = await control.enforce("203.0.113.7", "token-1234567890")

        assert check.captcha_score == 0.9
        assert check.rate_limit.remaining == 4

    async def test_missing_token(self):
        verifier, calls = recaptcha(score=0.9)
        control = AbuseControl(limiter(), verifier)

        with pytest.raises(CaptchaRejected) as exc_info:
            await control.enforce("203.0.113.7", None)

        assert exc_info.value.reason == "missing_token"
        assert calls == []

    async def test_low_score_carries_score(self):
        verifier, _ = recaptcha(score=0.1)
        control = AbuseControl(limiter(), verifier)

        with pytest.raises(CaptchaRejected) as exc_info:
            await control.enforce("203.0.113.7", "token-1234567890")

        assert exc_info.value.reason == "low_score_0.1"
        assert exc_info.value.score == 0.1

    async def test_missing_secret_is_unavailable(self):
        verifier, calls = recaptcha(secret=None)
        control = AbuseControl(limiter(), verifier)

        with pytest.raises(CaptchaUnavailable):
            await control.enforce("203.0.113.7", "token-1234567890")

        assert calls == []

    async def test_rate_limit_checked_before_captcha(self):
        verifier, calls = recaptcha(score=0.9)
        control = AbuseControl(limiter(max_requests=1), verifier)
        await control.enforce("203.0.113.7", "token-1234567890")

        with pytest.raises(RateLimitExceeded):
            await control.enforce("203.0.113.7", "token-1234567890")

        assert len(calls) == 1

    async def test_rejected_captcha_still_counts_toward_limit(self):
        verifier, _ = recaptcha(score=0.1)
        control = AbuseControl(limiter(max_requests=1), verifier)
        with pytest.raises(CaptchaRejected):
            await control.enforce("203.0.113.7", "token-1234567890")

        with pytest.raises(RateLimitExceeded):
            await control.enforce("203.0.113.7", "token-1234567890")

    async def test_captcha_not_required(self):
        control = AbuseControl(limiter(), verifier=None, captcha_required=False)

        check = await control.enforce("203.0.113.7", None)

        assert check.captcha_score is None
        assert check.rate_limit.allowed is True

    async def test_from_settings(self, monkeypatch):
        from core.config import settings

        monkeypatch.setattr(settings, "public_applications_rate_limit", 3)
        control = AbuseControl.from_settings(settings)

        assert isinstance(control.rate_limiter.store, InMemoryRateLimitStore)
        assert control.rate_limiter.max_requests == 3
        assert control.captcha_required is False
        await control.close()
