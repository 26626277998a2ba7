"""
Dotted numeric version comparison

Versions are split on "." into integer components. The shorter version is
zero-padded on the right before components are compared as integers, so
"1.2" == "1.2.0" and "1.10" > "1.9".
"""

from enum import Enum
from itertools import zip_longest
from typing import Tuple
import re

_COMPONENT = re.compile(r"[0-9]+")


class InvalidVersion(ValueError):
    """Version string is empty or has a non-numeric component"""


class GapType(str, Enum):
    """Size of the jump from an installed version to the latest candidate"""
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    NONE = "none"


def parse_version(value: str) -> Tuple[int, ...]:
    if not value or not value.strip():
        raise InvalidVersion("Version number must not be empty")
    parts = value.strip().split(".")
    for part in parts:
        if not _COMPONENT.fullmatch(part):
            raise InvalidVersion(f"Invalid version number '{value}': components must be numeric")
    return tuple(int(part) for part in parts)


def is_valid_version(value: str) -> bool:
    try:
        parse_version(value)
    except InvalidVersion:
        return False
    return True


def _padded(a: str, b: str):
    return zip_longest(parse_version(a), parse_version(b), fillvalue=0)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as a is lower than, equal to or greater than b"""
    for left, right in _padded(a, b):
        if left != right:
            return 1 if left > right else -1
    return 0


def semver_gt(a: str, b: str) -> bool:
    return compare_versions(a, b) > 0


def gap_type(current: str, latest: str) -> GapType:
    """Classify by the first differing component: 0 major, 1 minor, 2 and beyond patch"""
    for position, (left, right) in enumerate(_padded(current, latest)):
        if left != right:
            if position == 0:
                return GapType.MAJOR
            if position == 1:
                return GapType.MINOR
            return GapType.PATCH
    return GapType.NONE
