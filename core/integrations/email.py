"""Email integration utilities for sending emails."""

import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape
from typing import Optional, List
import logging

from core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailDeliveryResult:
    """Outcome of one delivery, in the shape stored on invitation events."""
    attempted: bool
    success: bool
    message: str


class EmailService:
    """Email service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        use_tls: Optional[bool] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        """
        Initialize email service.

        Args:
            smtp_host: SMTP server host; when unset, mail is logged instead of sent
            smtp_port: SMTP server port
            smtp_user: SMTP username
            smtp_password: SMTP password
            use_tls: Whether to STARTTLS before login
            from_email: Default sender email
            from_name: Default sender name
        """
        self.smtp_host = smtp_host if smtp_host is not None else settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user if smtp_user is not None else settings.smtp_user
        self.smtp_password = (
            smtp_password if smtp_password is not None else settings.smtp_password
        )
        self.use_tls = settings.smtp_use_tls if use_tls is None else use_tls
        self.from_email = from_email or settings.smtp_from
        self.from_name = from_name or settings.smtp_from_name

    @property
    def configured(self) -> bool:
        return bool(self.smtp_host)

    def send_email(
        self,
        to_email: str | List[str],
        subject: str,
        body: str,
        html_body: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> EmailDeliveryResult:
        """
        Send an email.

        Args:
            to_email: Recipient email address(es)
            subject: Email subject
            body: Plain text body
            html_body: Optional HTML alternative
            reply_to: Reply-to email address

        Returns:
            Delivery result; never raises
        """
        recipients = to_email if isinstance(to_email, list) else [to_email]
        if not recipients:
            return EmailDeliveryResult(False, False, "No recipients")

        if not self.configured:
            logger.info(
                f"SMTP not configured, email not sent: to={recipients} subject={subject!r}\n{body}"
            )
            return EmailDeliveryResult(False, False, "SMTP not configured")

        try:
            msg = MIMEMultipart("alternative")
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = ", ".join(recipients)
            msg['Subject'] = subject
            if reply_to:
                msg['Reply-To'] = reply_to

            msg.attach(MIMEText(body, 'plain', 'utf-8'))
            if html_body:
                msg.attach(MIMEText(html_body, 'html', 'utf-8'))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg, from_addr=self.from_email, to_addrs=recipients)

            logger.info(f"Email sent to {len(recipients)} recipient(s): {subject!r}")
            return EmailDeliveryResult(True, True, "Email sent")

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {e}")
            return EmailDeliveryResult(True, False, str(e) or "Error sending email")


# Pre-configured email templates
class EmailTemplates:
    """Pre-configured email templates."""

    @staticmethod
    def public_application_received(
        job_title: str,
        company_name: str,
        candidate_name: str,
        candidate_email: str,
        candidate_phone: Optional[str] = None,
        message: Optional[str] = None,
        job_url: Optional[str] = None,
    ) -> dict:
        """Notification to a company's HR team about a new portal application."""
        lines = [
            f'Se recibió una nueva postulación para "{job_title}" ({company_name}).',
            "",
            f"Candidato: {candidate_name} <{candidate_email}>",
        ]
        if candidate_phone:
            lines.append(f"Teléfono: {candidate_phone}")
        if job_url:
            lines.extend(["", f"Revisar vacante: {job_url}"])
        if message:
            lines.extend(["", "Mensaje del candidato:", message])

        body = "\n".join(lines)
        return {
            'subject': f'Nueva postulación - {job_title}',
            'body': body,
            'html_body': escape(body).replace("\n", "<br/>"),
        }

