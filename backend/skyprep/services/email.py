# backend/skyprep/services/email.py
"""
Email Service for the SkyPrep session backend.

Sends email through the Resend API. Extends BaseService for metrics and
logging; failures surface as ServiceException and the notification layer
decides what to do with them.
"""

import logging
import re
from typing import Any, Dict, Optional

import resend
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ServiceException
from .base import BaseService

logger = logging.getLogger(__name__)


class EmailService(BaseService):
    """
    Service for sending emails using Resend API.
    """

    def __init__(self, db: Session, config: Optional[Settings] = None):
        """
        Initialize email service with dependencies.

        Args:
            db: Database session (required by BaseService)
            config: Settings override (tests)
        """
        super().__init__(db)
        cfg = config or default_settings

        api_key = cfg.resend_api_key
        if not api_key:
            raise ServiceException("Resend API key not configured")

        resend.api_key = api_key
        self.from_email = cfg.from_email
        self.logger.info("EmailService initialized successfully")

    @staticmethod
    def _html_to_text(html_content: str) -> str:
        """Convert HTML content to plain text for better deliverability"""
        text = re.sub(r"<[^>]+>", "", html_content)
        text = re.sub(r"\s+", " ", text)
        return text.strip()

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send an email using Resend.

        Raises:
            ServiceException: If email sending fails
        """
        email_data = {
            "from": self.from_email,
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": text_content or self._html_to_text(html_content),
        }
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            self.logger.error(f"Failed to send email to {to_email}: {type(e).__name__}: {str(e)}")
            raise ServiceException(f"Failed to send email: {str(e)}") from e

        self.log_operation("email_sent", to_email=to_email, subject=subject)
        return dict(response) if response else {}
