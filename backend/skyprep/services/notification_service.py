# backend/skyprep/services/notification_service.py
"""
Notification Service for the SkyPrep session backend.

Emails the other participants of a session after a committed change.
Delivery problems are logged and counted, never raised: a booking that
was saved stays saved even when the mail provider is down.
"""

import logging
from typing import Any, Optional, Protocol

from jinja2 import Environment
from sqlalchemy.orm import Session

from ..core.constants import BRAND_NAME
from ..core.timezone_utils import format_session_moment, get_operating_timezone
from ..models.session import TeachingSession
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService
from .notification_templates import SESSION_EMAIL_LAYOUT, SESSION_TEMPLATES, SessionEvent

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Any:
        ...


class NotificationService(BaseService):
    """
    Sends session lifecycle emails.

    Recipients are the session participants other than the actor. Cohort
    sessions have no student, so only the teacher (when not the actor) is
    notified.
    """

    def __init__(self, db: Session, email_service: EmailSender):
        super().__init__(db)
        self.email_service = email_service
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self.layout = self.env.from_string(SESSION_EMAIL_LAYOUT)
        self.tz = get_operating_timezone()

    def _render(
        self,
        event: SessionEvent,
        session: TeachingSession,
        recipient: User,
        actor: Optional[User],
        reason: Optional[str],
    ) -> tuple[str, str]:
        template = SESSION_TEMPLATES[event]
        actor_name = actor.full_name if actor else BRAND_NAME
        subject = template.subject_template.format(title=session.title)
        html = self.layout.render(
            headline=template.headline,
            recipient_name=recipient.full_name,
            body=template.body_template.format(actor_name=actor_name),
            title=session.title,
            when=format_session_moment(session.start_time, self.tz),
            meeting_link=session.meeting_link,
            reason=reason,
            brand_name=BRAND_NAME,
        )
        return subject, html

    @BaseService.measure_operation("notify_session_event")
    def notify(
        self,
        event: SessionEvent,
        session: TeachingSession,
        actor_id: Optional[str],
        reason: Optional[str] = None,
    ) -> int:
        """
        Email everyone on the session except the actor.

        Returns:
            Number of emails handed to the provider
        """
        sent = 0
        try:
            recipient_ids = [pid for pid in session.participant_ids() if pid != actor_id]
            actor = self.user_repository.get_active_user(actor_id) if actor_id else None
        except Exception as e:
            self.logger.error(f"Could not prepare {event.value} notification for {session.id}: {e}")
            prometheus_metrics.record_notification(event.value, "failed")
            return 0

        for recipient_id in recipient_ids:
            try:
                recipient = self.user_repository.get_active_user(recipient_id)
                if recipient is None:
                    self.logger.info(f"Skipping {event.value} email: user {recipient_id} inactive")
                    continue
                subject, html = self._render(event, session, recipient, actor, reason)
                self.email_service.send_email(recipient.email, subject, html)
                sent += 1
                prometheus_metrics.record_notification(event.value, "sent")
            except Exception as e:
                self.logger.error(
                    f"Failed to send {event.value} notification for session {session.id} "
                    f"to {recipient_id}: {type(e).__name__}: {e}"
                )
                prometheus_metrics.record_notification(event.value, "failed")

        self.log_operation("session_notification", event=event.value, session_id=session.id, sent=sent)
        return sent
