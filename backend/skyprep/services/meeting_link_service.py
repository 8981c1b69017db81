"""Meeting link generation for scheduled sessions."""

import logging
import re
import secrets
from typing import Optional, Tuple

from ..core.config import Settings, settings as default_settings
from ..core.enums import MeetingPlatform
from ..core.exceptions import ValidationException

logger = logging.getLogger(__name__)

ROOM_SUFFIX_ALPHABET = "abcdefghijkmnpqrstuvwxyz23456789"
ROOM_SUFFIX_LENGTH = 7
MAX_SLUG_LENGTH = 48


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:MAX_SLUG_LENGTH].rstrip("-") or "session"


def room_suffix(n: int = ROOM_SUFFIX_LENGTH) -> str:
    """Random lowercase suffix that keeps room names unguessable."""
    return "".join(secrets.choice(ROOM_SUFFIX_ALPHABET) for _ in range(n))


class MeetingLinkService:
    """Builds Jitsi Meet room links; no external call is needed to create a room."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    def generate_link(self, title: str) -> str:
        room = f"{self.config.meeting_room_prefix}-{slugify(title)}-{room_suffix()}"
        return f"https://{self.config.jitsi_domain}/{room}"

    def resolve(
        self,
        title: str,
        meeting_link: Optional[str] = None,
        meeting_platform: Optional[str] = None,
    ) -> Tuple[str, str]:
        """
        Link and platform for a session being scheduled.

        A link supplied by the teacher is kept as is; otherwise a Jitsi room
        is generated.
        """
        try:
            platform = MeetingPlatform(meeting_platform or MeetingPlatform.JITSI_MEET.value)
        except ValueError:
            raise ValidationException(
                f"Unsupported meeting platform: {meeting_platform}",
                code="INVALID_MEETING_PLATFORM",
                details={"meeting_platform": meeting_platform},
            )
        if meeting_link:
            return meeting_link, platform.value
        link = self.generate_link(title)
        logger.debug(f"Generated meeting link {link}")
        return link, platform.value
