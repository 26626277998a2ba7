"""
Tenants API endpoints, nested under customers
"""

from fastapi import APIRouter, Depends, Query, status
from pydantic import field_validator
from sqlmodel import Session, SQLModel
from typing import Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.api.schemas import reject_null
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, pagination
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.models.audit_log import AuditAction
from update_manager.models.filters import TenantFilter
from update_manager.models.tenant import TenantStatus
from update_manager.services.audit import AuditSink
from update_manager.services.customer_service import CustomerService

logger = structlog.get_logger(__name__)
router = APIRouter()


class TenantCreate(SQLModel):
    """Schema for creating a tenant"""
    tenant_id: Optional[str] = None
    name: str
    description: Optional[str] = None


class TenantUpdate(SQLModel):
    """Schema for updating a tenant"""
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TenantStatus] = None

    @field_validator("name", "status")
    @classmethod
    def reject_null_fields(cls, value):
        return reject_null(value)


@router.post("/{customer_id}/tenants", status_code=status.HTTP_201_CREATED)
def create_tenant(
    customer_id: str,
    tenant_data: TenantCreate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    tenant = CustomerService(session).create_tenant(customer_id, **tenant_data.model_dump())
    audit(audit_sink, actor, AuditAction.CREATE, "tenant", tenant.tenant_id, customer_id=customer_id)
    return success_response(tenant)


@router.get("/{customer_id}/tenants")
def list_tenants(
    customer_id: str,
    status: Optional[TenantStatus] = Query(default=None),
    page: Pagination = Depends(pagination()),
    session: Session = Depends(get_session)
):
    tenants, total = CustomerService(session).list_tenants(customer_id, TenantFilter(status=status), page)
    return paginated_response(tenants, page, total)


@router.get("/{customer_id}/tenants/{tenant_id}")
def get_tenant(customer_id: str, tenant_id: str, session: Session = Depends(get_session)):
    _, tenant = CustomerService(session).get_tenant(customer_id, tenant_id)
    return success_response(tenant)


@router.put("/{customer_id}/tenants/{tenant_id}")
def update_tenant(
    customer_id: str,
    tenant_id: str,
    tenant_data: TenantUpdate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    tenant = CustomerService(session).update_tenant(
        customer_id, tenant_id, tenant_data.model_dump(exclude_unset=True)
    )
    audit(audit_sink, actor, AuditAction.UPDATE, "tenant", tenant.tenant_id)
    return success_response(tenant)


@router.delete("/{customer_id}/tenants/{tenant_id}")
def delete_tenant(
    customer_id: str,
    tenant_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Delete a tenant; refused while it still has deployments"""
    CustomerService(session).delete_tenant(customer_id, tenant_id)
    audit(audit_sink, actor, AuditAction.DELETE, "tenant", tenant_id)
    return success_response({"message": f"Tenant {tenant_id} deleted"})


@router.get("/{customer_id}/tenants/{tenant_id}/statistics")
def tenant_statistics(customer_id: str, tenant_id: str, session: Session = Depends(get_session)):
    return success_response(CustomerService(session).tenant_statistics(customer_id, tenant_id))
