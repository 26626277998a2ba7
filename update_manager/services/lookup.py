"""
Reference resolution

Paths address entities either by surrogate UUID or by business id. The
surrogate id is tried first.
"""

from typing import Optional, Type, TypeVar
import uuid

from sqlmodel import Session, SQLModel, select

from update_manager.core.errors import NotFound

ModelT = TypeVar("ModelT", bound=SQLModel)


def as_uuid(ref) -> Optional[uuid.UUID]:
    if isinstance(ref, uuid.UUID):
        return ref
    try:
        return uuid.UUID(str(ref))
    except (TypeError, ValueError):
        return None


def find_by_ref(session: Session, model: Type[ModelT], business_field: str, ref) -> Optional[ModelT]:
    """Look up a row by surrogate id, then by business id"""
    surrogate = as_uuid(ref)
    if surrogate is not None:
        row = session.get(model, surrogate)
        if row is not None:
            return row
    column = getattr(model, business_field)
    return session.exec(select(model).where(column == str(ref))).first()


def get_by_ref(session: Session, model: Type[ModelT], business_field: str, ref, resource: str) -> ModelT:
    row = find_by_ref(session, model, business_field, ref)
    if row is None:
        raise NotFound.for_resource(resource, ref)
    return row


def generate_business_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"
