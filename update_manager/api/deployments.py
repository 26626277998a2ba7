"""
Deployments API endpoints, nested under customers and tenants
"""

from fastapi import APIRouter, Depends, Query, status
from pydantic import field_validator
from sqlmodel import Session
from typing import Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.api.schemas import VersionNumberModel, reject_null
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, pagination
from update_manager.core.errors import InternalError, UpdateManagerError
from update_manager.core.events import event_bus
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.core.timeutil import UTCDateTime
from update_manager.models.audit_log import AuditAction
from update_manager.models.deployment import DeploymentStatus, DeploymentType
from update_manager.models.filters import DeploymentFilter
from update_manager.services.audit import AuditSink
from update_manager.services.deployment_registry import DeploymentRegistry

logger = structlog.get_logger(__name__)
router = APIRouter()


class DeploymentCreate(VersionNumberModel):
    """Schema for creating a deployment"""
    deployment_id: Optional[str] = None
    product_id: str
    deployment_type: DeploymentType
    installed_version: str
    number_of_users: Optional[int] = None
    license_info: Optional[str] = None
    server_hostname: Optional[str] = None
    environment_details: Optional[str] = None
    deployment_date: Optional[UTCDateTime] = None


class DeploymentUpdate(VersionNumberModel):
    """Schema for updating a deployment"""
    deployment_type: Optional[DeploymentType] = None
    installed_version: Optional[str] = None
    number_of_users: Optional[int] = None
    license_info: Optional[str] = None
    server_hostname: Optional[str] = None
    environment_details: Optional[str] = None
    status: Optional[DeploymentStatus] = None

    @field_validator("deployment_type", "installed_version", "status")
    @classmethod
    def reject_null_fields(cls, value):
        return reject_null(value)


def get_registry(session: Session = Depends(get_session)) -> DeploymentRegistry:
    return DeploymentRegistry(session, event_bus=event_bus)


@router.post("/{customer_id}/tenants/{tenant_id}/deployments", status_code=status.HTTP_201_CREATED)
def create_deployment(
    customer_id: str,
    tenant_id: str,
    deployment_data: DeploymentCreate,
    actor: Actor = Depends(get_actor),
    registry: DeploymentRegistry = Depends(get_registry),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Register a deployment of a product in a tenant

    A tenant holds at most one deployment per product and deployment type.
    """
    try:
        deployment = registry.create(customer_id, tenant_id, **deployment_data.model_dump())
    except UpdateManagerError:
        raise
    except Exception as e:
        registry.session.rollback()
        logger.error(f"Failed to create deployment in tenant {tenant_id}: {e}")
        raise InternalError("Failed to create deployment")

    audit(
        audit_sink, actor, AuditAction.CREATE, "deployment", deployment.deployment_id,
        product_id=deployment.product_id, installed_version=deployment.installed_version
    )
    return success_response(deployment)


@router.get("/{customer_id}/tenants/{tenant_id}/deployments")
def list_deployments(
    customer_id: str,
    tenant_id: str,
    product_id: Optional[str] = Query(default=None),
    deployment_type: Optional[DeploymentType] = Query(default=None),
    status: Optional[DeploymentStatus] = Query(default=None),
    page: Pagination = Depends(pagination()),
    registry: DeploymentRegistry = Depends(get_registry)
):
    deployments, total = registry.list(
        customer_id,
        tenant_id,
        DeploymentFilter(product_id=product_id, deployment_type=deployment_type, status=status),
        page,
    )
    return paginated_response(deployments, page, total)


@router.get("/{customer_id}/tenants/{tenant_id}/deployments/{deployment_id}")
def get_deployment(
    customer_id: str,
    tenant_id: str,
    deployment_id: str,
    registry: DeploymentRegistry = Depends(get_registry)
):
    return success_response(registry.get(customer_id, tenant_id, deployment_id))


@router.put("/{customer_id}/tenants/{tenant_id}/deployments/{deployment_id}")
def update_deployment(
    customer_id: str,
    tenant_id: str,
    deployment_id: str,
    deployment_data: DeploymentUpdate,
    actor: Actor = Depends(get_actor),
    registry: DeploymentRegistry = Depends(get_registry),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Update a deployment, e.g. after installing a new version"""
    try:
        deployment = registry.update(
            customer_id, tenant_id, deployment_id, deployment_data.model_dump(exclude_unset=True)
        )
    except UpdateManagerError:
        raise
    except Exception as e:
        registry.session.rollback()
        logger.error(f"Failed to update deployment {deployment_id}: {e}")
        raise InternalError("Failed to update deployment")

    audit(
        audit_sink, actor, AuditAction.UPDATE, "deployment", deployment.deployment_id,
        installed_version=deployment.installed_version
    )
    return success_response(deployment)


@router.delete("/{customer_id}/tenants/{tenant_id}/deployments/{deployment_id}")
def delete_deployment(
    customer_id: str,
    tenant_id: str,
    deployment_id: str,
    actor: Actor = Depends(get_actor),
    registry: DeploymentRegistry = Depends(get_registry),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    registry.delete(customer_id, tenant_id, deployment_id)
    audit(audit_sink, actor, AuditAction.DELETE, "deployment", deployment_id)
    return success_response({"message": f"Deployment {deployment_id} deleted"})
