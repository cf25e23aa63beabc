"""Email sending tasks."""

import logging
from typing import Optional, List
from celery import Task

from workers.celery_app import celery_app
from core.integrations.email import EmailService, EmailTemplates

logger = logging.getLogger(__name__)


@celery_app.task(
    name="workers.tasks.emails.send_public_application_notification", bind=True
)
def send_public_application_notification(
    self: Task,
    to: List[str],
    job_title: str,
    company_name: str,
    candidate_name: str,
    candidate_email: str,
    candidate_phone: Optional[str] = None,
    message: Optional[str] = None,
    job_url: Optional[str] = None,
) -> dict:
    """Notify a company's HR team about a new public application.

    Args:
        to: Recipient email addresses
        job_title: Title of the job applied to
        company_name: Name of the hiring company
        candidate_name: Candidate full name
        candidate_email: Candidate email
        candidate_phone: Candidate phone (optional)
        message: Message left by the candidate (optional)
        job_url: Link to the job in the portal (optional)

    Returns:
        Dictionary with delivery status
    """
    if not to:
        return {"attempted": False, "success": False, "message": "No recipients"}

    template = EmailTemplates.public_application_received(
        job_title=job_title,
        company_name=company_name,
        candidate_name=candidate_name,
        candidate_email=candidate_email,
        candidate_phone=candidate_phone,
        message=message,
        job_url=job_url,
    )
    result = EmailService().send_email(
        to_email=to,
        subject=template["subject"],
        body=template["body"],
        html_body=template["html_body"],
        reply_to=candidate_email,
    )
    if result.attempted and not result.success:
        logger.error(
            f"Public application notification for '{job_title}' failed: {result.message}"
        )

    return {
        "attempted": result.attempted,
        "success": result.success,
        "message": result.message,
    }
