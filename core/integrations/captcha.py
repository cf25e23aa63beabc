"""reCAPTCHA v3 verification for public forms."""

from dataclasses import dataclass
from typing import Optional
import httpx
import logging

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class CaptchaUnavailable(Exception):
    """The verification provider could not be reached or is not configured."""


@dataclass(frozen=True)
class CaptchaVerification:
    """Result of verifying one token."""
    success: bool
    score: Optional[float] = None
    error: Optional[str] = None


class RecaptchaVerifier:
    """Verifies reCAPTCHA tokens against Google's siteverify API."""

    def __init__(
        self,
        secret_key: Optional[str],
        min_score: float = 0.5,
        verify_url: str = DEFAULT_VERIFY_URL,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize verifier.

        Args:
            secret_key: reCAPTCHA secret key
            min_score: Lowest accepted score (0.0 - 1.0)
            verify_url: Verification endpoint
            timeout_seconds: HTTP timeout for the verification call
            transport: Optional httpx transport (used by tests)
        """
        self.secret_key = secret_key
        self.min_score = min_score
        self.verify_url = verify_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> CaptchaVerification:
        """
        Verify a token.

        Args:
            token: Token produced by the client widget
            remote_ip: Client IP forwarded to the provider

        Returns:
            Verification result; `error` names the rejection reason

        Raises:
            CaptchaUnavailable: If no secret is configured or the provider fails
        """
        if not self.secret_key:
            raise CaptchaUnavailable("reCAPTCHA secret key is not configured")

        form = {"secret": self.secret_key, "response": token}
        if remote_ip and remote_ip != "unknown":
            form["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(self.verify_url, data=form)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"reCAPTCHA verification returned {e.response.status_code}")
            raise CaptchaUnavailable(
                f"Captcha provider returned HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"reCAPTCHA verification failed: {e}")
            raise CaptchaUnavailable(f"Captcha provider unreachable: {e}") from e

        score = data.get("score")
        if not isinstance(score, (int, float)) or isinstance(score, bool):
            score = None
        else:
            score = float(score)

        if not data.get("success"):
            codes = data.get("error-codes") or []
            return CaptchaVerification(
                success=False,
                score=score,
                error=",".join(codes) if codes else "verification_failed",
            )

        if score is None:
            return CaptchaVerification(success=False, error="missing_score")

        if score < self.min_score:
            return CaptchaVerification(success=False, score=score, error=f"low_score_{score}")

        return CaptchaVerification(success=True, score=score)
