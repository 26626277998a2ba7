"""
Time helpers

All timestamps are stored as naive UTC datetimes. Table columns declare a
plain ``DateTime`` type so the database never expects an offset.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator


def utc_now() -> datetime:
    """Current time as a naive UTC datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC, leave naive ones untouched"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# Request schema type accepting both aware and naive timestamps
UTCDateTime = Annotated[datetime, AfterValidator(to_naive_utc)]
