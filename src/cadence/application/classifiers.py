"""
Due and difficulty classifiers.

Both compare civil-day keys in one fixed timezone, so the answer does not
depend on the time of day the question is asked. Pure and side-effect free.
"""

import logging
from datetime import datetime, tzinfo

from cadence.domain.calendar import day_key
from cadence.domain.review.models import Rating, ReviewRecord

logger = logging.getLogger(__name__)

DIFFICULT_RATINGS = frozenset({Rating.AGAIN, Rating.HARD})


def is_due(record: ReviewRecord, as_of: datetime, tz: tzinfo) -> bool:
    """
    True once the calendar day of `next_review_date` has started in `tz`.
    """
    return day_key(record.next_review_date, tz) <= day_key(as_of, tz)


def is_difficult_today(record: ReviewRecord, as_of: datetime, tz: tzinfo) -> bool:
    """
    True iff the record was rated Again or Hard on the civil day of `as_of`.

    Membership expires by itself at the next civil day. Malformed history
    entries are skipped rather than raising.
    """
    today = day_key(as_of, tz)
    for entry in record.review_history:
        try:
            if entry.rating in DIFFICULT_RATINGS and day_key(entry.reviewed_at, tz) == today:
                return True
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed history entry on {record.content_id}: {e}")
    return False
