"""Logging setup shared by the API process and Celery workers."""

import logging

from .config import settings
from .request_context import attach_request_context_filter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once; later calls only refresh the level."""
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    logging.getLogger().setLevel((level or settings.log_level).upper())
    attach_request_context_filter()
