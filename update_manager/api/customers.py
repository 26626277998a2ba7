"""
Customers API endpoints
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
from update_manager.core.errors import InternalError, UpdateManagerError
from update_manager.core.pagination import Pagination
from update_manager.core.responses import paginated_response, success_response
from update_manager.models.audit_log import AuditAction
from update_manager.models.customer import AccountStatus, NotificationPreferences
from update_manager.models.filters import CustomerFilter
from update_manager.services.audit import AuditSink
from update_manager.services.customer_service import CustomerService

logger = structlog.get_logger(__name__)
router = APIRouter()


class CustomerCreate(SQLModel):
    """Schema for creating a customer"""
    customer_id: Optional[str] = None
    name: str
    organization_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    account_status: AccountStatus = AccountStatus.ACTIVE
    notification_preferences: Optional[NotificationPreferences] = None


class CustomerUpdate(SQLModel):
    """Schema for updating a customer"""
    name: Optional[str] = None
    organization_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    account_status: Optional[AccountStatus] = None
    notification_preferences: Optional[NotificationPreferences] = None

    @field_validator("name", "email", "account_status")
    @classmethod
    def reject_null_fields(cls, value):
        return reject_null(value)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_customer(
    customer_data: CustomerCreate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Create a customer"""
    try:
        customer = CustomerService(session).create_customer(
            name=customer_data.name,
            email=customer_data.email,
            customer_id=customer_data.customer_id,
            organization_name=customer_data.organization_name,
            phone=customer_data.phone,
            address=customer_data.address,
            account_status=customer_data.account_status,
            notification_preferences=customer_data.notification_preferences,
        )
    except UpdateManagerError:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to create customer: {e}")
        raise InternalError("Failed to create customer")

    audit(audit_sink, actor, AuditAction.CREATE, "customer", customer.customer_id, name=customer.name)
    return success_response(customer)


@router.get("")
def list_customers(
    account_status: Optional[AccountStatus] = Query(default=None),
    search: Optional[str] = Query(default=None),
    page: Pagination = Depends(pagination()),
    session: Session = Depends(get_session)
):
    customers, total = CustomerService(session).list_customers(
        CustomerFilter(account_status=account_status, search=search), page
    )
    return paginated_response(customers, page, total)


@router.get("/{customer_id}")
def get_customer(customer_id: str, session: Session = Depends(get_session)):
    return success_response(CustomerService(session).get_customer(customer_id))


@router.put("/{customer_id}")
def update_customer(
    customer_id: str,
    customer_data: CustomerUpdate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Update a customer"""
    try:
        customer = CustomerService(session).update_customer(
            customer_id, customer_data.model_dump(exclude_unset=True)
        )
    except UpdateManagerError:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to update customer {customer_id}: {e}")
        raise InternalError("Failed to update customer")

    audit(audit_sink, actor, AuditAction.UPDATE, "customer", customer.customer_id)
    return success_response(customer)


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    audit_sink: AuditSink = Depends(get_audit_sink)
):
    """Deactivate a customer; refused while it still has tenants"""
    customer = CustomerService(session).delete_customer(customer_id)
    audit(audit_sink, actor, AuditAction.DELETE, "customer", customer.customer_id)
    return success_response({"message": f"Customer {customer.customer_id} deactivated"})


@router.get("/{customer_id}/statistics")
def customer_statistics(customer_id: str, session: Session = Depends(get_session)):
    return success_response(CustomerService(session).customer_statistics(customer_id))
