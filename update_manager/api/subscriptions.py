"""
Subscriptions API endpoints, nested under customers
"""

from fastapi import APIRouter, Depends, Query, status
from pydantic import field_validator
from sqlmodel import Session, SQLModel
from typing import Optional
import structlog

from update_manager.api.deps import audit, get_audit_sink
from update_manager.api.schemas import RenewRequest, reject_null
from update_manager.core.database import get_session
from update_manager.core.dependencies import Actor, get_actor, pagination
from update_manager.core.errors import InternalError, UpdateManagerError
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.core.timeutil import UTCDateTime
from update_manager.models.audit_log import AuditAction
from update_manager.models.filters import SubscriptionFilter
from update_manager.models.subscription import SubscriptionStatus
from update_manager.services.audit import AuditSink
from update_manager.services.subscription_service import SubscriptionService

logger = structlog.get_logger(__name__)
router = APIRouter()


class SubscriptionCreate(SQLModel):
    """Schema for creating a subscription"""
    subscription_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    start_date: UTCDateTime
    end_date: Optional[UTCDateTime] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    notes: Optional[str] = None


class SubscriptionUpdate(SQLModel):
    """Schema for updating a subscription"""
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[UTCDateTime] = None
    end_date: Optional[UTCDateTime] = None
    status: Optional[SubscriptionStatus] = None
    notes: Optional[str] = None

    @field_validator("name", "start_date", "status")
    @classmethod
    def reject_null_fields(cls, value):
        return reject_null(value)


@router.post("/{customer_id}/subscriptions", status_code=status.HTTP_201_CREATED)
def create_subscription(
    customer_id: str,
    subscription_data: SubscriptionCreate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Create a subscription for a customer"""
    try:
        subscription = SubscriptionService(session).create(
            customer_id,
            created_by=actor.user_id,
            **subscription_data.model_dump()
        )
    except UpdateManagerError:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to create subscription for customer {customer_id}: {e}")
        raise InternalError("Failed to create subscription")

    audit(audit_sink, actor, AuditAction.CREATE, "subscription", subscription.subscription_id)
    return success_response(subscription)


@router.get("/{customer_id}/subscriptions")
def list_subscriptions(
    customer_id: str,
    status: Optional[SubscriptionStatus] = Query(default=None),
    page: Pagination = Depends(pagination()),
    session: Session = Depends(get_session)
):
    subscriptions, total = SubscriptionService(session).list(
        customer_id, SubscriptionFilter(status=status), page
    )
    return paginated_response(subscriptions, page, total)


@router.get("/{customer_id}/subscriptions/{subscription_id}")
def get_subscription(customer_id: str, subscription_id: str, session: Session = Depends(get_session)):
    _, subscription = SubscriptionService(session).get(customer_id, subscription_id)
    return success_response(subscription)


@router.put("/{customer_id}/subscriptions/{subscription_id}")
def update_subscription(
    customer_id: str,
    subscription_id: str,
    subscription_data: SubscriptionUpdate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    subscription = SubscriptionService(session).update(
        customer_id, subscription_id, subscription_data.model_dump(exclude_unset=True)
    )
    audit(audit_sink, actor, AuditAction.UPDATE, "subscription", subscription.subscription_id)
    return success_response(subscription)


@router.delete("/{customer_id}/subscriptions/{subscription_id}")
def delete_subscription(
    customer_id: str,
    subscription_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Delete a subscription; refused while it still has licenses"""
    SubscriptionService(session).delete(customer_id, subscription_id)
    audit(audit_sink, actor, AuditAction.DELETE, "subscription", subscription_id)
    return success_response({"message": f"Subscription {subscription_id} deleted"})


@router.get("/{customer_id}/subscriptions/{subscription_id}/statistics")
def subscription_statistics(customer_id: str, subscription_id: str, session: Session = Depends(get_session)):
    return success_response(SubscriptionService(session).statistics(customer_id, subscription_id))


@router.post("/{customer_id}/subscriptions/{subscription_id}/renew")
def renew_subscription(
    customer_id: str,
    subscription_id: str,
    renew_data: RenewRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Extend the end date of a subscription"""
    subscription = SubscriptionService(session).renew(customer_id, subscription_id, renew_data.end_date)
    audit(
        audit_sink, actor, AuditAction.UPDATE, "subscription", subscription.subscription_id,
        renewed_until=renew_data.end_date.isoformat()
    )
    return success_response(subscription)
