"""
Version store

Persists versions, their state and attached packages. State and package
writes are compare-and-swap updates so concurrent writers cannot both win.
"""

from typing import Any, Dict, List, Optional, Tuple
import uuid

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from update_manager.core.errors import Conflict
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.filters import VersionFilter
from update_manager.models.version import Version, VersionState

logger = structlog.get_logger(__name__)


class VersionStore:
    """Data access for versions"""

    def __init__(self, session: Session):
        self.session = session

    def insert(self, version: Version) -> Version:
        self.session.add(version)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict(
                f"Version {version.version_number} already exists for product {version.product_id}"
            )
        self.session.refresh(version)
        return version

    def get(self, version_id: uuid.UUID) -> Optional[Version]:
        return self.session.exec(
            select(Version)
            .where(Version.id == version_id)
            .execution_options(populate_existing=True)
        ).first()

    def get_by_number(self, product_id: str, version_number: str) -> Optional[Version]:
        return self.session.exec(
            select(Version).where(
                Version.product_id == product_id,
                Version.version_number == version_number
            )
        ).first()

    def list(self, filters: VersionFilter, pagination: Pagination) -> Tuple[List[Version], int]:
        clauses = filters.clauses()
        total = self.session.exec(
            select(func.count()).select_from(Version).where(*clauses)
        ).one()
        rows = self.session.exec(
            select(Version)
            .where(*clauses)
            .order_by(Version.release_date.desc(), Version.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    def released_for_product(self, product_id: str) -> List[Version]:
        return list(self.session.exec(
            select(Version).where(
                Version.product_id == product_id,
                Version.state == VersionState.RELEASED
            )
        ).all())

    def _swap(self, *conditions, values: Dict[str, Any]) -> bool:
        """Run a conditional update and commit; True when exactly one row changed"""
        statement = (
            update(Version)
            .where(*conditions)
            .values(revision=Version.revision + 1, updated_at=utc_now(), **values)
        )
        try:
            result = self.session.connection().execute(statement)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return result.rowcount == 1

    def compare_and_set_state(
        self,
        version_id: uuid.UUID,
        expected: VersionState,
        target: VersionState,
        **values
    ) -> bool:
        """Move from expected to target state; False if the state was not expected"""
        swapped = self._swap(
            Version.id == version_id,
            Version.state == expected,
            values={"state": target, **values},
        )
        if swapped:
            logger.info(f"Version {version_id} moved from {expected.value} to {target.value}")
        return swapped

    def compare_and_set_draft(self, version_id: uuid.UUID, revision: int, **values) -> bool:
        """Write fields of a draft, guarded by its revision"""
        return self._swap(
            Version.id == version_id,
            Version.state == VersionState.DRAFT,
            Version.revision == revision,
            values=values,
        )
