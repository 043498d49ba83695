"""Service for sending emails."""

import json
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr
from typing import Optional

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        sender: str = "Todo API <no-reply@todoapi.local>",
        timeout: float = 10.0,
    ):
        self.smtp_host = smtp_host or ""
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username or ""
        self.smtp_password = smtp_password or ""
        self.sender = sender
        self.timeout = timeout
        self.enabled = bool(self.smtp_host and parseaddr(self.sender)[1])

    def send_welcome_email(self, to_email: str, name: str, user_id: int, activation_token: str) -> bool:
        """
        Send the post-registration email carrying the first activation token.

        Args:
            to_email: Recipient email
            name: Recipient display name
            user_id: ID of the new account
            activation_token: Plaintext activation token

        Returns:
            True if sent successfully, False otherwise
        """
        subject = "Welcome to the Todo API"
        activation_body = json.dumps({"token": activation_token})
        text_body = (
            f"Hi {name},\n\n"
            f"Thanks for signing up. Your user ID number is {user_id}.\n\n"
            "To activate your account, send a PUT request to /v1/users/activation "
            f"with the following JSON body:\n\n{activation_body}\n\n"
            "This token is single use and expires in 3 days.\n"
        )
        html_body = (
            f"<html><body><p>Hi {name},</p>"
            f"<p>Thanks for signing up. Your user ID number is {user_id}.</p>"
            "<p>To activate your account, send a <code>PUT /v1/users/activation</code> "
            f"request with the following JSON body:</p><pre><code>{activation_body}</code></pre>"
            "<p>This token is single use and expires in 3 days.</p></body></html>"
        )
        return self._send_email(to_email, subject, html_body, text_body)

    def send_activation_email(self, to_email: str, activation_token: str) -> bool:
        """Send a re-issued activation token."""
        subject = "Activate your Todo API account"
        activation_body = json.dumps({"token": activation_token})
        text_body = (
            "Please send a PUT request to /v1/users/activation with the following "
            f"JSON body to activate your account:\n\n{activation_body}\n\n"
            "This token is single use and expires in 3 days.\n"
        )
        html_body = (
            "<html><body><p>Please send a <code>PUT /v1/users/activation</code> request "
            f"with the following JSON body to activate your account:</p>"
            f"<pre><code>{activation_body}</code></pre>"
            "<p>This token is single use and expires in 3 days.</p></body></html>"
        )
        return self._send_email(to_email, subject, html_body, text_body)

    def _send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        if not self.enabled:
            logger.info("SMTP disabled; email to %s not sent.\nSubject: %s\n%s", to_email, subject, text_body)
            return True

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.sender
            msg["To"] = to_email

            msg.attach(MIMEText(text_body, "plain", "utf-8"))
            msg.attach(MIMEText(html_body, "html", "utf-8"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                if self.smtp_username:
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            return True

        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send email to %s", to_email)
            return False
