import asyncio
import logging
from typing import List, Union

import sendgrid
from sendgrid.helpers.mail import Mail, Email, To, Content
from src.core.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """The email transport rejected a message or could not be reached."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class EmailClient:
    def __init__(self, api_key: str = None, from_email: str = None):
        self.api_key = api_key if api_key is not None else settings.sendgrid_api_key
        self.from_email = from_email or settings.sendgrid_from_email
        if not self.api_key:
            logger.warning("SENDGRID_API_KEY not set. Emailing will be disabled.")
            self.sg = None
        else:
            self.sg = sendgrid.SendGridAPIClient(api_key=self.api_key)
            self.sg.client.timeout = settings.sendgrid_timeout_seconds or None

    @staticmethod
    def _normalize_recipients(to: Union[str, List[str]]) -> List[str]:
        if isinstance(to, str):
            to = to.split(",")
        return [address.strip() for address in to if address and address.strip()]

    def _build_mail(self, recipients: List[str], subject: str, html_content: str) -> Mail:
        from_email = Email(self.from_email or "reports@escrowise.example")
        content = Content("text/html", html_content)
        return Mail(from_email, [To(address) for address in recipients], subject, content)

    def _post(self, mail: Mail) -> int:
        response = self.sg.client.mail.send.post(request_body=mail.get())
        return response.status_code

    async def send(self, to: Union[str, List[str]], subject: str, html: str) -> None:
        """
        Send an HTML email to one or more recipients.

        Raises EmailDeliveryError when there is nobody to send to, when SendGrid
        answers with a non-2xx status, or when the SDK call itself fails.
        """
        recipients = self._normalize_recipients(to)
        if not recipients:
            raise EmailDeliveryError("No recipients given")

        if not self.sg:
            logger.info(f"[MOCK EMAIL] To: {', '.join(recipients)} | Subject: {subject}")
            return

        mail = self._build_mail(recipients, subject, html)
        try:
            status_code = await asyncio.to_thread(self._post, mail)
        except Exception as e:
            logger.error(f"Failed to send email: {e}")
            raise EmailDeliveryError(str(e)) from e

        if status_code not in (200, 201, 202):
            raise EmailDeliveryError(f"SendGrid returned status {status_code}", status_code)
        logger.info(f"Email sent to {len(recipients)} recipient(s). Status: {status_code}")

# Singleton instance
email_client = EmailClient()
