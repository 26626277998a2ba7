"""
Request schemas shared across routers
"""

from typing import Optional

from pydantic import field_validator
from sqlmodel import SQLModel

from update_manager.core.timeutil import UTCDateTime
from update_manager.services.semver import InvalidVersion, parse_version


def check_version_number(value: Optional[str]) -> Optional[str]:
    """Reject version numbers with non-numeric components"""
    if value is None:
        return value
    try:
        parse_version(value)
    except InvalidVersion as e:
        raise ValueError(str(e))
    return value.strip()


def reject_null(value):
    """Explicit nulls are not allowed on required columns"""
    if value is None:
        raise ValueError("may not be null")
    return value


class VersionNumberModel(SQLModel):
    """Base for request bodies carrying version numbers"""

    @field_validator(
        "version_number", "installed_version", "from_version", "to_version",
        "current_version", "available_version",
        check_fields=False,
    )
    @classmethod
    def validate_version_number(cls, value):
        return check_version_number(value)


class RenewRequest(SQLModel):
    """Schema for renewing a subscription or license"""
    end_date: UTCDateTime
