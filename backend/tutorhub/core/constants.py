"""Application-wide constants for the TutorHub booking backend."""

from __future__ import annotations

BRAND_NAME = "TutorHub"

# Class batch constraints
MIN_BATCH_FEES = 100
MAX_BATCH_FEES = 25000
MIN_BATCH_STUDENTS = 1
MAX_BATCH_STUDENTS = 2
DEFAULT_BATCH_STUDENTS = 2

# Money
MONEY_PLACES = 2

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000

# Text constraints
MAX_COUPON_CODE_LENGTH = 50
MAX_NAME_LENGTH = 200
MAX_ID_LENGTH = 26
