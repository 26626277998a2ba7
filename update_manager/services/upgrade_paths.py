"""
Upgrade paths between versions of a product
"""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from update_manager.core.errors import Conflict, NotFound
from update_manager.core.timeutil import utc_now
from update_manager.models.product import Product
from update_manager.models.upgrade_path import PathType, UpgradePath
from update_manager.services.lookup import find_by_ref
from update_manager.services.version_store import VersionStore

logger = structlog.get_logger(__name__)


class UpgradePathService:

    def __init__(self, session: Session):
        self.session = session
        self.versions = VersionStore(session)

    def _product(self, product_ref: str) -> Product:
        product = find_by_ref(self.session, Product, "product_id", product_ref)
        if product is None:
            raise NotFound.for_resource("Product", product_ref)
        return product

    def _require_versions(self, product_id: str, version_numbers: List[str]):
        for number in version_numbers:
            if self.versions.get_by_number(product_id, number) is None:
                raise NotFound(f"Version {number} not found for product {product_id}")

    def _find(self, product_id: str, from_version: str, to_version: str) -> Optional[UpgradePath]:
        return self.session.exec(
            select(UpgradePath).where(
                UpgradePath.product_id == product_id,
                UpgradePath.from_version == from_version,
                UpgradePath.to_version == to_version,
            )
        ).first()

    def create(
        self,
        product_ref: str,
        from_version: str,
        to_version: str,
        path_type: PathType = PathType.DIRECT,
        intermediate_versions: Optional[List[str]] = None
    ) -> UpgradePath:
        product = self._product(product_ref)
        intermediate_versions = list(intermediate_versions or [])
        self._require_versions(product.product_id, [from_version, to_version] + intermediate_versions)
        if self._find(product.product_id, from_version, to_version) is not None:
            raise Conflict(f"Upgrade path {from_version} -> {to_version} already exists")

        path = UpgradePath(
            product_id=product.product_id,
            from_version=from_version,
            to_version=to_version,
            path_type=path_type,
            intermediate_versions=intermediate_versions,
            is_blocked=path_type == PathType.BLOCKED,
        )
        self.session.add(path)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict(f"Upgrade path {from_version} -> {to_version} already exists")
        self.session.refresh(path)
        logger.info(f"Created upgrade path {product.product_id} {from_version} -> {to_version}")
        return path

    def get(self, product_ref: str, from_version: str, to_version: str) -> UpgradePath:
        product = self._product(product_ref)
        path = self._find(product.product_id, from_version, to_version)
        if path is None:
            raise NotFound(f"Upgrade path {from_version} -> {to_version} not found")
        return path

    def list_by_product(self, product_ref: str) -> List[UpgradePath]:
        product = self._product(product_ref)
        return list(self.session.exec(
            select(UpgradePath)
            .where(UpgradePath.product_id == product.product_id)
            .order_by(UpgradePath.created_at.desc())
        ).all())

    def block(self, product_ref: str, from_version: str, to_version: str, reason: str) -> UpgradePath:
        path = self.get(product_ref, from_version, to_version)
        path.is_blocked = True
        path.block_reason = reason
        path.path_type = PathType.BLOCKED
        path.updated_at = utc_now()
        self.session.add(path)
        self.session.commit()
        self.session.refresh(path)
        logger.info(f"Blocked upgrade path {path.product_id} {from_version} -> {to_version}: {reason}")
        return path
