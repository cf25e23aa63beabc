"""Tests for reCAPTCHA verification."""

import httpx
import pytest
from urllib.parse import parse_qs

from core.integrations.captcha import CaptchaUnavailable, RecaptchaVerifier


def _verifier(handler, secret="secret", min_score=0.5):
    return RecaptchaVerifier(
        secret_key=secret,
        min_score=min_score,
        transport=httpx.MockTransport(handler),
    )


class TestRecaptchaVerifier:

    @pytest.mark.asyncio
    async def test_accepts_high_score(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(parse_qs(request.content.decode()))
            return httpx.Response(200, json={"success": True, "score": 0.9})

        result = await _verifier(handler).verify("token-123456", remote_ip="203.0.113.7")

        assert result.success is True
        assert result.score == 0.9
        assert seen["secret"] == ["secret"]
        assert seen["response"] == ["token-123456"]
        assert seen["remoteip"] == ["203.0.113.7"]

    @pytest.mark.asyncio
    async def test_unknown_ip_not_forwarded(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(parse_qs(request.content.decode()))
            return httpx.Response(200, json={"success": True, "score": 0.7})

        await _verifier(handler).verify("token-123456", remote_ip="unknown")

        assert "remoteip" not in seen

    @pytest.mark.asyncio
    async def test_score_below_threshold(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "score": 0.2})

        result = await _verifier(handler).verify("token-123456")

        assert result.success is False
        assert result.score == 0.2
        assert result.error == "low_score_0.2"

    @pytest.mark.asyncio
    async def test_score_equal_to_threshold_passes(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "score": 0.5})

        result = await _verifier(handler).verify("token-123456")

        assert result.success is True

    @pytest.mark.asyncio
    async def test_provider_rejection_reports_error_codes(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"success": False, "error-codes": ["invalid-input-response", "timeout-or-duplicate"]},
            )

        result = await _verifier(handler).verify("token-123456")

        assert result.success is False
        assert result.error == "invalid-input-response,timeout-or-duplicate"

    @pytest.mark.asyncio
    async def test_provider_rejection_without_codes(self):
        def handler(request):
            return httpx.Response(200, json={"success": False})

        result = await _verifier(handler).verify("token-123456")

        assert result.error == "verification_failed"

    @pytest.mark.asyncio
    async def test_success_without_score(self):
        def handler(request):
            return httpx.Response(200, json={"success": True})

        result = await _verifier(handler).verify("token-123456")

        assert result.success is False
        assert result.error == "missing_score"

    @pytest.mark.asyncio
    async def test_missing_secret_is_unavailable(self):
        verifier = RecaptchaVerifier(secret_key=None)

        assert verifier.configured is False
        with pytest.raises(CaptchaUnavailable):
            await verifier.verify("token-123456")

    @pytest.mark.asyncio
    async def test_provider_http_error_is_unavailable(self):
        def handler(request):
            return httpx.Response(503)

        with pytest.raises(CaptchaUnavailable):
            await _verifier(handler).verify("token-123456")

    @pytest.mark.asyncio
    async def test_provider_unreachable_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CaptchaUnavailable):
            await _verifier(handler).verify("token-123456")
