"""
Abuse control for the public application endpoint.

Two gates, applied in order before anything is written: the per-IP rate
limiter, then the captcha score check.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from core.config import Settings
from core.exceptions import CaptchaRejected
from core.integrations.captcha import CaptchaUnavailable, RecaptchaVerifier
from core.middleware.rate_limiting import (
    PublicApplyRateLimiter,
    RateLimitDecision,
    create_rate_limit_store,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AbuseCheck:
    """Outcome of a submission that passed both gates."""
    rate_limit: RateLimitDecision
    captcha_score: Optional[float] = None


class AbuseControl:
    """Rate limit plus captcha gate for public submissions."""

    def __init__(
        self,
        rate_limiter: PublicApplyRateLimiter,
        verifier: Optional[RecaptchaVerifier] = None,
        captcha_required: bool = True,
    ):
        self.rate_limiter = rate_limiter
        self.verifier = verifier
        self.captcha_required = captcha_required

    @classmethod
    def from_settings(cls, settings: Settings) -> "AbuseControl":
        store = create_rate_limit_store(settings.rate_limit_backend, str(settings.redis_url))
        rate_limiter = PublicApplyRateLimiter(
            store,
            max_requests=settings.public_applications_rate_limit,
            window_seconds=settings.public_applications_rate_window_seconds,
        )
        verifier = RecaptchaVerifier(
            secret_key=settings.recaptcha_secret_key,
            min_score=settings.recaptcha_min_score,
            verify_url=settings.recaptcha_verify_url,
            timeout_seconds=settings.recaptcha_timeout_seconds,
        )
        return cls(rate_limiter, verifier, captcha_required=settings.captcha_required)

    async def enforce(self, client_ip: str, captcha_token: Optional[str]) -> AbuseCheck:
        """
        Run both gates for one submission.

        Args:
            client_ip: Client IP used as the rate limit key
            captcha_token: Token from the client widget, if any

        Returns:
            The rate limit decision and the captcha score (None when captcha
            is not required)

        Raises:
            RateLimitExceeded: Too many attempts from this IP
            CaptchaRejected: Missing token, provider rejection or low score
            CaptchaUnavailable: Captcha required but not configured or unreachable
        """
        decision = await self.rate_limiter.enforce(client_ip)

        if not self.captcha_required:
            return AbuseCheck(decision)

        if not captcha_token:
            raise CaptchaRejected("missing_token")

        if self.verifier is None or not self.verifier.configured:
            logger.error("Captcha is required but RECAPTCHA_SECRET_KEY is not configured")
            raise CaptchaUnavailable("Captcha is required but no secret key is configured")

        verification = await self.verifier.verify(captcha_token, client_ip)
        if not verification.success:
            raise CaptchaRejected(verification.error or "verification_failed", verification.score)
        return AbuseCheck(decision, verification.score)

    async def close(self) -> None:
        await self.rate_limiter.store.close()
