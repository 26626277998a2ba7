"""
Pending updates API endpoints at deployment, tenant, customer and fleet level
"""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import Optional
import structlog

from update_manager.core.database import get_session
from update_manager.core.dependencies import pagination
from update_manager.core.pagination import FLEET_DEFAULT_LIMIT, Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.models.deployment import DeploymentType
from update_manager.models.filters import PendingUpdatesFilter
from update_manager.services.pending_updates import PendingUpdatesResolver, UpdatePriority

logger = structlog.get_logger(__name__)
router = APIRouter()


def get_resolver(session: Session = Depends(get_session)) -> PendingUpdatesResolver:
    return PendingUpdatesResolver(session)


@router.get("/customers/{customer_id}/tenants/{tenant_id}/deployments/pending-updates")
def tenant_pending_updates(
    customer_id: str,
    tenant_id: str,
    product_id: Optional[str] = Query(default=None),
    deployment_type: Optional[DeploymentType] = Query(default=None),
    priority: Optional[UpdatePriority] = Query(default=None),
    resolver: PendingUpdatesResolver = Depends(get_resolver)
):
    """Pending updates of every deployment in a tenant"""
    summary = resolver.updates_for_tenant(
        customer_id,
        tenant_id,
        PendingUpdatesFilter(
            product_id=product_id,
            deployment_type=deployment_type,
            priority=priority.value if priority else None,
        ),
    )
    return success_response(summary)


@router.get("/customers/{customer_id}/tenants/{tenant_id}/deployments/{deployment_id}/updates")
def deployment_updates(
    customer_id: str,
    tenant_id: str,
    deployment_id: str,
    resolver: PendingUpdatesResolver = Depends(get_resolver)
):
    """Pending updates of a single deployment"""
    return success_response(
        resolver.updates_for_tenant_deployment(customer_id, tenant_id, deployment_id)
    )


@router.get("/customers/{customer_id}/deployments/pending-updates")
def customer_pending_updates(
    customer_id: str,
    product_id: Optional[str] = Query(default=None),
    deployment_type: Optional[DeploymentType] = Query(default=None),
    priority: Optional[UpdatePriority] = Query(default=None),
    resolver: PendingUpdatesResolver = Depends(get_resolver)
):
    """Pending updates across every tenant of a customer"""
    summary = resolver.updates_for_customer(
        customer_id,
        PendingUpdatesFilter(
            product_id=product_id,
            deployment_type=deployment_type,
            priority=priority.value if priority else None,
        ),
    )
    return success_response(summary)


@router.get("/updates/pending")
def fleet_pending_updates(
    customer_id: Optional[str] = Query(default=None),
    tenant_id: Optional[str] = Query(default=None),
    product_id: Optional[str] = Query(default=None),
    deployment_type: Optional[DeploymentType] = Query(default=None),
    priority: Optional[UpdatePriority] = Query(default=None),
    page: Pagination = Depends(pagination(FLEET_DEFAULT_LIMIT)),
    resolver: PendingUpdatesResolver = Depends(get_resolver)
):
    """Deployments across the fleet with at least one pending update"""
    results, total = resolver.updates_for_fleet(
        PendingUpdatesFilter(
            customer_id=customer_id,
            tenant_id=tenant_id,
            product_id=product_id,
            deployment_type=deployment_type,
            priority=priority.value if priority else None,
        ),
        page,
    )
    return paginated_response(results, page, total)
