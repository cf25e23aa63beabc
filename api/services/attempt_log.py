"""
Public application attempt log.

Every public submission is recorded exactly once, whatever its outcome. The
write uses its own session so it happens whether the request transaction
committed, rolled back or never started, and a failure to write is only
warned about.
"""

from typing import Any, Dict, Optional
import logging

from core.config import settings
from database.engine import AsyncSessionLocal
from database.models.audit import AttemptStatus, PublicApplicationLog

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 1000
MAX_USER_AGENT_LENGTH = 512
MAX_IP_LENGTH = 64
MAX_EMAIL_LENGTH = 255
MAX_SOURCE_LENGTH = 100


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None:
        return None
    return value[:limit]


async def log_public_application_attempt(
    status: AttemptStatus,
    job_id: Optional[int] = None,
    email: Optional[str] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    source: Optional[str] = None,
    source_details: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
    captcha_score: Optional[float] = None,
) -> bool:
    """
    Append one attempt to the public application log.

    Never raises.

    Args:
        status: Outcome of the attempt
        job_id: Job id from the URL (may not exist)
        email: Submitted email, lower-cased
        ip: Client IP
        user_agent: Client user agent
        source: Attribution source
        source_details: Attribution payload
        error: Error detail for rejected or failed attempts
        captcha_score: Captcha score when one was obtained

    Returns:
        True if the row was written
    """
    if not settings.public_log_applications:
        return False

    if email:
        email = _truncate(email.strip().lower(), MAX_EMAIL_LENGTH)

    try:
        async with AsyncSessionLocal() as session:
            session.add(
                PublicApplicationLog(
                    job_id=job_id,
                    candidate_email=email or None,
                    status=status,
                    error_message=_truncate(error, MAX_ERROR_LENGTH),
                    ip=_truncate(ip, MAX_IP_LENGTH),
                    user_agent=_truncate(user_agent, MAX_USER_AGENT_LENGTH),
                    captcha_score=captcha_score,
                    source=_truncate(source, MAX_SOURCE_LENGTH),
                    source_details=source_details,
                )
            )
            await session.commit()
        return True
    except Exception as e:
        logger.warning(
            f"Could not record public application attempt ({status.value}): {e}", exc_info=True
        )
        return False
