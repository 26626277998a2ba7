"""
Product catalogue operations
"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from update_manager.core.errors import Conflict
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.filters import ProductFilter
from update_manager.models.product import Product, ProductType
from update_manager.services.lookup import get_by_ref

logger = structlog.get_logger(__name__)


class ProductService:

    def __init__(self, session: Session):
        self.session = session

    def get(self, ref) -> Product:
        return get_by_ref(self.session, Product, "product_id", ref, "Product")

    def create(
        self,
        product_id: str,
        name: str,
        type: ProductType,
        description: Optional[str] = None,
        vendor: Optional[str] = None
    ) -> Product:
        if self._exists(product_id):
            raise Conflict(f"Product {product_id} already exists")
        product = Product(
            product_id=product_id,
            name=name,
            type=type,
            description=description,
            vendor=vendor,
        )
        self._commit(product)
        logger.info(f"Created product {product.product_id}")
        return product

    def update(self, ref, patch: Dict[str, Any]) -> Product:
        product = self.get(ref)
        new_id = patch.get("product_id")
        if new_id and new_id != product.product_id and self._exists(new_id):
            raise Conflict(f"Product {new_id} already exists")
        for key, value in patch.items():
            setattr(product, key, value)
        product.updated_at = utc_now()
        self._commit(product)
        return product

    def delete(self, ref) -> Product:
        """Soft delete, the product stays referenced by its versions"""
        product = self.get(ref)
        product.is_active = False
        product.updated_at = utc_now()
        self._commit(product)
        logger.info(f"Deactivated product {product.product_id}")
        return product

    def list(self, filters: ProductFilter, pagination: Pagination) -> Tuple[List[Product], int]:
        clauses = filters.clauses()
        total = self.session.exec(select(func.count()).select_from(Product).where(*clauses)).one()
        rows = self.session.exec(
            select(Product)
            .where(*clauses)
            .order_by(Product.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    def list_active(self) -> List[Product]:
        return list(self.session.exec(
            select(Product).where(Product.is_active == True).order_by(Product.name)  # noqa: E712
        ).all())

    def _exists(self, product_id: str) -> bool:
        return self.session.exec(
            select(Product.id).where(Product.product_id == product_id)
        ).first() is not None

    def _commit(self, product: Product):
        self.session.add(product)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict(f"Product {product.product_id} already exists")
        self.session.refresh(product)
