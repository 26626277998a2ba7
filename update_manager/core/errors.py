"""
Domain error taxonomy

Every error raised by the services carries the HTTP status and the stable
error code rendered in the error envelope.
"""

from typing import Optional


class UpdateManagerError(Exception):
    """Base class for all domain errors"""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(UpdateManagerError):
    status_code = 400
    code = "INVALID_REQUEST"
    default_message = "Invalid request"


class InvalidState(UpdateManagerError):
    status_code = 400
    code = "INVALID_STATE"
    default_message = "Operation not allowed in the current state"


class NotFound(UpdateManagerError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"

    @classmethod
    def for_resource(cls, resource: str, ref) -> "NotFound":
        return cls(f"{resource} not found: {ref}")


class Conflict(UpdateManagerError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class InsufficientSeats(UpdateManagerError):
    status_code = 400
    code = "INSUFFICIENT_SEATS"
    default_message = "Insufficient seats available"


class HasAllocations(UpdateManagerError):
    status_code = 409
    code = "HAS_ALLOCATIONS"
    default_message = "License has active allocations"


class HasDependents(UpdateManagerError):
    status_code = 409
    code = "HAS_DEPENDENTS"
    default_message = "Resource has dependent records"


class LicenseExpired(UpdateManagerError):
    status_code = 400
    code = "LICENSE_EXPIRED"
    default_message = "License has expired"


class LicenseNotActive(UpdateManagerError):
    status_code = 400
    code = "LICENSE_NOT_ACTIVE"
    default_message = "License is not active"


class ProductMismatch(UpdateManagerError):
    status_code = 400
    code = "PRODUCT_MISMATCH"
    default_message = "Deployment product does not match license product"


class AlreadyReleased(UpdateManagerError):
    status_code = 400
    code = "ALREADY_RELEASED"
    default_message = "Allocation is already released"


class OperationCancelled(UpdateManagerError):
    status_code = 408
    code = "CANCELLED"
    default_message = "Operation deadline expired"


class InternalError(UpdateManagerError):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"
