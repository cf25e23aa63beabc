"""
Outbound notifications for public applications.

Delivery is handed to a Celery task; a failure to enqueue is logged and never
reaches the HTTP caller.
"""

from typing import List, Optional
import logging

from celery.exceptions import CeleryError
from kombu.exceptions import OperationalError as KombuOperationalError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.users import REPORT_VIEWER_ROLES, User
from workers.tasks.emails import send_public_application_notification

logger = logging.getLogger(__name__)


async def get_notification_recipients(session: AsyncSession, company_id: int) -> List[str]:
    """
    Emails of the company's active HR administrators.

    Args:
        session: Database session
        company_id: Hiring company

    Returns:
        Recipient emails (admins and HR admins who accepted their invitation)
    """
    result = await session.execute(
        select(User.email).where(
            User.company_id == company_id,
            User.is_active.is_(True),
            User.invitation_accepted.is_(True),
            User.role.in_(list(REPORT_VIEWER_ROLES)),
        )
    )
    return [email for email in result.scalars().all() if email]


def dispatch_public_application_notification(
    recipients: List[str],
    job_title: str,
    company_name: str,
    candidate_name: str,
    candidate_email: str,
    candidate_phone: Optional[str] = None,
    message: Optional[str] = None,
    job_url: Optional[str] = None,
) -> bool:
    """
    Enqueue the new-application email.

    Returns:
        True if the task was enqueued
    """
    if not recipients:
        logger.info(f"No notification recipients for application to '{job_title}'")
        return False

    try:
        send_public_application_notification.delay(
            to=recipients,
            job_title=job_title,
            company_name=company_name,
            candidate_name=candidate_name,
            candidate_email=candidate_email,
            candidate_phone=candidate_phone,
            message=message,
            job_url=job_url,
        )
        return True
    except (CeleryError, KombuOperationalError, OSError) as e:
        logger.error(f"Could not enqueue public application notification for '{job_title}': {e}")
        return False
