"""
Compatibility matrix
"""

from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import Session, select
import structlog

from update_manager.core.errors import NotFound
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.compatibility import CompatibilityMatrix, ValidationStatus
from update_manager.models.filters import CompatibilityFilter
from update_manager.models.product import Product
from update_manager.services.lookup import find_by_ref
from update_manager.services.version_store import VersionStore

logger = structlog.get_logger(__name__)


class CompatibilityService:

    def __init__(self, session: Session):
        self.session = session
        self.versions = VersionStore(session)

    def _require_version(self, product_ref: str, version_number: str) -> Product:
        product = find_by_ref(self.session, Product, "product_id", product_ref)
        if product is None:
            raise NotFound.for_resource("Product", product_ref)
        if self.versions.get_by_number(product.product_id, version_number) is None:
            raise NotFound(f"Version {version_number} not found for product {product.product_id}")
        return product

    def _find(self, product_id: str, version_number: str) -> Optional[CompatibilityMatrix]:
        return self.session.exec(
            select(CompatibilityMatrix).where(
                CompatibilityMatrix.product_id == product_id,
                CompatibilityMatrix.version_number == version_number,
            )
        ).first()

    def validate(
        self,
        product_ref: str,
        version_number: str,
        validated_by: str,
        min_server_version: Optional[str] = None,
        max_server_version: Optional[str] = None,
        recommended_server_version: Optional[str] = None,
        incompatible_versions: Optional[List[str]] = None
    ) -> CompatibilityMatrix:
        """Store the matrix of a version, replacing any previous one"""
        product = self._require_version(product_ref, version_number)
        now = utc_now()

        matrix = self._find(product.product_id, version_number)
        if matrix is None:
            matrix = CompatibilityMatrix(product_id=product.product_id, version_number=version_number)

        matrix.min_server_version = min_server_version
        matrix.max_server_version = max_server_version
        matrix.recommended_server_version = recommended_server_version
        matrix.incompatible_versions = list(incompatible_versions or [])
        matrix.validation_status = ValidationStatus.PASSED
        matrix.validation_errors = []
        matrix.validated_by = validated_by
        matrix.validated_at = now
        matrix.updated_at = now

        self.session.add(matrix)
        self.session.commit()
        self.session.refresh(matrix)
        logger.info(f"Validated compatibility of {product.product_id} {version_number}")
        return matrix

    def get(self, product_ref: str, version_number: str) -> CompatibilityMatrix:
        product = self._require_version(product_ref, version_number)
        matrix = self._find(product.product_id, version_number)
        if matrix is None:
            raise NotFound(f"Compatibility matrix not found for {product.product_id} {version_number}")
        return matrix

    def list(self, filters: CompatibilityFilter, pagination: Pagination) -> Tuple[List[CompatibilityMatrix], int]:
        clauses = filters.clauses()
        total = self.session.exec(
            select(func.count()).select_from(CompatibilityMatrix).where(*clauses)
        ).one()
        rows = self.session.exec(
            select(CompatibilityMatrix)
            .where(*clauses)
            .order_by(CompatibilityMatrix.validated_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total
