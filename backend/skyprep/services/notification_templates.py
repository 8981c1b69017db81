from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class SessionEvent(str, Enum):
    REQUESTED = "session_requested"
    SCHEDULED = "session_scheduled"
    ACCEPTED = "session_accepted"
    REJECTED = "session_rejected"
    CANCELLED = "session_cancelled"
    RESCHEDULED = "session_rescheduled"


@dataclass(frozen=True)
class SessionEmailTemplate:
    event: SessionEvent
    subject_template: str
    headline: str
    body_template: str


SESSION_EMAIL_LAYOUT = """\
<html>
  <body style="font-family: Arial, sans-serif; color: #1f2937;">
    <h2>{{ headline }}</h2>
    <p>Hi {{ recipient_name }},</p>
    <p>{{ body }}</p>
    <table cellpadding="4">
      <tr><td><strong>Session</strong></td><td>{{ title }}</td></tr>
      <tr><td><strong>When</strong></td><td>{{ when }}</td></tr>
      {% if meeting_link %}
      <tr><td><strong>Join</strong></td><td><a href="{{ meeting_link }}">{{ meeting_link }}</a></td></tr>
      {% endif %}
      {% if reason %}
      <tr><td><strong>Reason</strong></td><td>{{ reason }}</td></tr>
      {% endif %}
    </table>
    <p>The {{ brand_name }} team</p>
  </body>
</html>
"""

SESSION_TEMPLATES: Dict[SessionEvent, SessionEmailTemplate] = {
    SessionEvent.REQUESTED: SessionEmailTemplate(
        event=SessionEvent.REQUESTED,
        subject_template="New session request: {title}",
        headline="New session request",
        body_template="{actor_name} requested a session. Please accept or reject it.",
    ),
    SessionEvent.SCHEDULED: SessionEmailTemplate(
        event=SessionEvent.SCHEDULED,
        subject_template="Session scheduled: {title}",
        headline="Session scheduled",
        body_template="{actor_name} scheduled a session for you.",
    ),
    SessionEvent.ACCEPTED: SessionEmailTemplate(
        event=SessionEvent.ACCEPTED,
        subject_template="Session confirmed: {title}",
        headline="Your session is confirmed",
        body_template="{actor_name} accepted your session request.",
    ),
    SessionEvent.REJECTED: SessionEmailTemplate(
        event=SessionEvent.REJECTED,
        subject_template="Session request declined: {title}",
        headline="Session request declined",
        body_template="{actor_name} could not take this session.",
    ),
    SessionEvent.CANCELLED: SessionEmailTemplate(
        event=SessionEvent.CANCELLED,
        subject_template="Session cancelled: {title}",
        headline="Session cancelled",
        body_template="{actor_name} cancelled this session.",
    ),
    SessionEvent.RESCHEDULED: SessionEmailTemplate(
        event=SessionEvent.RESCHEDULED,
        subject_template="Session moved: {title}",
        headline="Session rescheduled",
        body_template="{actor_name} moved this session to a new time.",
    ),
}
