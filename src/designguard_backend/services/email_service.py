# services/email_service.py
import logging
from typing import Optional

import resend

from ..config import Config
from ..errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class EmailSender:
    """Transactional email over the Resend API."""

    def __init__(self, api_key: Optional[str] = Config.RESEND_API_KEY, sender: str = Config.EMAIL_FROM):
        self.api_key = api_key
        self.sender = sender

    def send(self, to: str, subject: str, html: str):
        if not self.api_key:
            raise UpstreamServiceError("Email provider is not configured")
        resend.api_key = self.api_key
        try:
            response = resend.Emails.send({
                "from": self.sender,
                "to": [to],
                "subject": subject,
                "html": html,
            })
        except Exception as e:
            logger.exception("Email to %s failed: %s", to, e)
            raise UpstreamServiceError("Failed to send email") from e
        logger.info("Email '%s' sent to %s", subject, to)
        return response

    def send_otp(self, email: str, otp: str):
        html = f"""
        <h3>Welcome to DesignGuard!</h3>
        <p>Your Verification Code is:</p>
        <h2>{otp}</h2>
        <p>This code expires in {Config.OTP_EXPIRE_MINUTES} minutes.</p>
        """
        try:
            return self.send(email, "DesignGuard - Verify Your Email", html)
        except UpstreamServiceError as e:
            raise UpstreamServiceError("Failed to send verification email") from e

    def send_password_reset(self, email: str, link: str):
        html = f"""
        <h3>Password Reset Request</h3>
        <p>Click the button below to reset your password:</p>
        <a href="{link}" style="padding: 10px 16px; background: #007bff; color: #fff;
           text-decoration: none; border-radius: 4px; display: inline-block;">Reset Password</a>
        <p>If you did not request this, ignore this email.</p>
        """
        try:
            return self.send(email, "DesignGuard - Password Reset", html)
        except UpstreamServiceError as e:
            raise UpstreamServiceError("Failed to send password reset email") from e
