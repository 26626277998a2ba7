"""
Products API endpoints, including version creation under a product
"""

from fastapi import APIRouter, Depends, Query, status
from pydantic import field_validator
from sqlmodel import Session, SQLModel
from typing import Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.api.schemas import reject_null
from update_manager.api.versions import VersionCreate, get_lifecycle
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, pagination
from update_manager.core.errors import InternalError, UpdateManagerError
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.models.audit_log import AuditAction
from update_manager.models.filters import ProductFilter, VersionFilter
from update_manager.models.product import ProductType
from update_manager.models.version import VersionState
from update_manager.services.audit import AuditSink
from update_manager.services.product_service import ProductService
from update_manager.services.version_lifecycle import VersionLifecycle

logger = structlog.get_logger(__name__)
router = APIRouter()


class ProductCreate(SQLModel):
    """Schema for creating a product"""
    product_id: str
    name: str
    type: ProductType
    description: Optional[str] = None
    vendor: Optional[str] = None


class ProductUpdate(SQLModel):
    """Schema for updating a product"""
    product_id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[ProductType] = None
    description: Optional[str] = None
    vendor: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("product_id", "name", "type", "is_active")
    @classmethod
    def reject_null_fields(cls, value):
        return reject_null(value)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    product_data: ProductCreate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Create a product"""
    try:
        product = ProductService(session).create(**product_data.model_dump())
    except UpdateManagerError:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to create product: {e}")
        raise InternalError("Failed to create product")

    audit(audit_sink, actor, AuditAction.CREATE, "product", product.product_id, name=product.name)
    return success_response(product)


@router.get("")
def list_products(
    type: Optional[ProductType] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None),
    page: Pagination = Depends(pagination()),
    session: Session = Depends(get_session)
):
    """List products with optional filters"""
    products, total = ProductService(session).list(
        ProductFilter(type=type, is_active=is_active, search=search), page
    )
    return paginated_response(products, page, total)


@router.get("/active")
def list_active_products(session: Session = Depends(get_session)):
    """List all active products"""
    return success_response(ProductService(session).list_active())


@router.get("/{product_id}")
def get_product(product_id: str, session: Session = Depends(get_session)):
    return success_response(ProductService(session).get(product_id))


@router.put("/{product_id}")
def update_product(
    product_id: str,
    product_data: ProductUpdate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Update a product"""
    try:
        product = ProductService(session).update(
            product_id, product_data.model_dump(exclude_unset=True)
        )
    except UpdateManagerError:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to update product {product_id}: {e}")
        raise InternalError("Failed to update product")

    audit(audit_sink, actor, AuditAction.UPDATE, "product", product.product_id)
    return success_response(product)


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Deactivate a product (soft delete)"""
    product = ProductService(session).delete(product_id)
    audit(audit_sink, actor, AuditAction.DELETE, "product", product.product_id)
    return success_response({"message": f"Product {product.product_id} deactivated"})


# Versions of a product
@router.post("/{product_id}/versions", status_code=status.HTTP_201_CREATED)
def create_version(
    product_id: str,
    version_data: VersionCreate,
    actor: Actor = Depends(get_actor),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Create a draft version of a product"""
    try:
        version = lifecycle.create_version(
            product_id,
            created_by=actor.user_id,
            **version_data.to_values()
        )
    except UpdateManagerError:
        raise
    except Exception as e:
        lifecycle.session.rollback()
        logger.error(f"Failed to create version for product {product_id}: {e}")
        raise InternalError("Failed to create version")

    audit(
        audit_sink, actor, AuditAction.CREATE, "version", version.id,
        product_id=version.product_id, version_number=version.version_number
    )
    return success_response(version)


@router.get("/{product_id}/versions")
def list_product_versions(
    product_id: str,
    state: Optional[VersionState] = Query(default=None),
    page: Pagination = Depends(pagination()),
    lifecycle: VersionLifecycle = Depends(get_lifecycle),
    session: Session = Depends(get_session)
):
    """List versions of a product, newest release first"""
    product = ProductService(session).get(product_id)
    versions, total = lifecycle.list_versions(
        VersionFilter(product_id=product.product_id, state=state), page
    )
    return paginated_response(versions, page, total)
