"""
Email service for sending emails using Mailgun API.
"""

from typing import Dict, List, Optional, Union

import httpx

from core.config import settings
from core.logging import get_logger


logger = get_logger(__name__)

OTP_SUBJECTS = {
    "email_verification": "Verify your DriveAssist account",
    "password_reset": "Reset your DriveAssist password",
}


class EmailService:
    """Email service for sending emails via Mailgun."""

    def __init__(self, client: Optional[httpx.Client] = None):
        self.api_key = settings.MAILGUN_API_KEY
        self.api_url = settings.MAILGUN_API_URL
        self.from_email = settings.MAIL_FROM
        self.client = client

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_url)

    def send_email_via_mailgun(
        self,
        to: List[str],
        subject: str,
        text: Optional[str] = None,
        html: Optional[str] = None,
    ) -> Dict[str, Union[str, int]]:
        """
        Send an email using Mailgun's API.

        When Mailgun is not configured the message is only logged, which is
        how development and test environments run.
        """
        if not self.is_configured():
            logger.info("Mailgun not configured; e-mail logged only", to=to, subject=subject)
            return {"status": "logged", "status_code": 0}

        data = {"from": self.from_email, "to": ", ".join(to), "subject": subject}
        if text:
            data["text"] = text
        if html:
            data["html"] = html

        auth = ("api", self.api_key)
        if self.client is not None:
            response = self.client.post(self.api_url, auth=auth, data=data)
        else:
            with httpx.Client(timeout=20.0) as client:
                response = client.post(self.api_url, auth=auth, data=data)
        response.raise_for_status()
        logger.info("E-mail sent", to=to, subject=subject, status_code=response.status_code)
        return {"status": "sent", "status_code": response.status_code}

    def send_otp(self, email: str, otp: str, otp_type: str) -> Dict[str, Union[str, int]]:
        subject = OTP_SUBJECTS.get(otp_type, "Your DriveAssist code")
        text = (
            f"Your DriveAssist verification code is {otp}.\n\n"
            f"It expires in {settings.OTP_TTL_MINUTES} minutes. "
            "If you did not request this code you can ignore this e-mail."
        )
        return self.send_email_via_mailgun([email], subject, text=text)
