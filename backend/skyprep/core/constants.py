"""Application-wide constants for the SkyPrep session backend."""

from __future__ import annotations

from datetime import time

BRAND_NAME = "SkyPrep"

# Business hours (operating time zone)
OPENING_TIME = time(9, 0)
WEEKDAY_CLOSING_TIME = time(21, 0)
SATURDAY_CLOSING_TIME = time(16, 0)

# Latest session start per day type
WEEKDAY_LATEST_START = time(19, 45)
SATURDAY_LATEST_START = time(15, 15)

# Text constraints
MAX_TITLE_LENGTH = 200
MIN_REASON_LENGTH = 10
MAX_REASON_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 1000

# Slot listing
MAX_SLOT_DURATION_MINUTES = 12 * 60
