"""Email transport for notification emails (SendGrid API or SMTP)."""

import json
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from src.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _sendgrid_error_details(body: Any) -> str | None:
    """Return a readable description of a SendGrid error payload."""
    if body in (None, "", b""):
        return None
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            return body.strip() or None

    if isinstance(body, dict) and isinstance(body.get("errors"), list):
        messages = [
            str(item["message"])
            for item in body["errors"]
            if isinstance(item, dict) and item.get("message")
        ]
        if messages:
            return "; ".join(messages)
    return json.dumps(body, default=str)


class EmailService:
    """Hands rendered notification emails to the configured provider.

    ``send_email`` returns True when the provider accepted the message and
    False otherwise; it never raises.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.backend = self.settings.email_backend
        self.from_email = self.settings.email_from or self.settings.smtp_user

    def is_configured(self) -> bool:
        if self.backend == "sendgrid":
            return bool(self.settings.sendgrid_api_key and self.from_email)
        return bool(
            self.settings.smtp_host and self.settings.smtp_user and self.settings.smtp_password
        )

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML content of the email
            text_content: Plain text content (fallback)

        Returns:
            True if the provider accepted the email, False otherwise
        """
        if not self.is_configured():
            logger.warning(f"Email backend '{self.backend}' not configured, skipping email")
            return False

        logger.info(f"Sending email to {to_email} with subject: {subject}")
        if self.backend == "sendgrid":
            return self._send_sendgrid(to_email, subject, html_content, text_content)
        return self._send_smtp(to_email, subject, html_content, text_content)

    def _send_sendgrid(
        self, to_email: str, subject: str, html_content: str, text_content: str | None
    ) -> bool:
        message = Mail(
            from_email=self.from_email,
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
            plain_text_content=text_content,
        )
        try:
            response = SendGridAPIClient(self.settings.sendgrid_api_key).send(message)
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            details = _sendgrid_error_details(getattr(e, "body", None))
            logger.error(f"SendGrid request failed (status {status_code}): {details or e}")
            return False

        status_code = getattr(response, "status_code", None)
        if not isinstance(status_code, int) or not 200 <= status_code < 300:
            details = _sendgrid_error_details(getattr(response, "body", None))
            logger.error(f"SendGrid responded with status {status_code}: {details}")
            return False

        logger.info(f"Email accepted by SendGrid for {to_email}")
        return True

    def _send_smtp(
        self, to_email: str, subject: str, html_content: str, text_content: str | None
    ) -> bool:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        if text_content:
            msg.attach(MIMEText(text_content, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        try:
            with smtplib.SMTP(
                self.settings.smtp_host,
                self.settings.smtp_port,
                timeout=self.settings.email_timeout_seconds,
            ) as server:
                server.starttls()
                server.login(self.settings.smtp_user, self.settings.smtp_password)
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error sending email to {to_email}: {e}")
            return False

        logger.info(f"Email sent via SMTP to {to_email}")
        return True
