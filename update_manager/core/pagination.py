"""
Pagination parameters shared by list endpoints
"""

from dataclasses import dataclass
from typing import Optional

MAX_LIMIT = 100
DEFAULT_LIMIT = 10
FLEET_DEFAULT_LIMIT = 20


@dataclass(frozen=True)
class Pagination:
    """Normalized page/limit pair"""
    page: int = 1
    limit: int = DEFAULT_LIMIT

    @classmethod
    def from_params(
        cls,
        page: Optional[int],
        limit: Optional[int],
        default_limit: int = DEFAULT_LIMIT
    ) -> "Pagination":
        """Clamp raw query values: page < 1 becomes 1, limit outside [1, 100] becomes the default"""
        if page is None or page < 1:
            page = 1
        if limit is None or limit < 1 or limit > MAX_LIMIT:
            limit = default_limit
        return cls(page=page, limit=limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return (total + self.limit - 1) // self.limit

    def meta(self, total: int) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "total_pages": self.total_pages(total),
        }

    def slice(self, items: list) -> list:
        return items[self.offset:self.offset + self.limit]
