# agents/mailer.py

import requests

from utils.errors import MailDeliveryError
from utils.logging_config import get_logger

logger = get_logger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ResendMailer:
    """Sends plain-text mail through the Resend HTTP API."""

    def __init__(self, api_key: str, sender: str, timeout: float = 15.0, session=None):
        if not api_key:
            raise ValueError("RESEND_API_KEY is required to send email")
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, to: str, subject: str, text: str) -> str:
        payload = {"from": self.sender, "to": [to], "subject": subject, "text": text}
        try:
            response = self.session.post(
                RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise MailDeliveryError(f"Resend request failed: {e}") from e

        message_id = response.json().get("id", "unknown")
        logger.info("Sent email to %s (id %s)", to, message_id)
        return f"Email sent to {to} (id: {message_id})"
