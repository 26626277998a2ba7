"""
Response envelope helpers

Success: {"success": true, "data": ..., "meta": {...}}
Error:   {"success": false, "error": {"code": ..., "message": ...}}
"""

from typing import Any

from fastapi.encoders import jsonable_encoder

from update_manager.core.pagination import Pagination


def success_response(data: Any) -> dict:
    """Wrap data in the success envelope"""
    return {"success": True, "data": jsonable_encoder(data)}


def paginated_response(data: list, pagination: Pagination, total: int) -> dict:
    """Wrap a page of results with pagination metadata"""
    return {
        "success": True,
        "data": jsonable_encoder(data),
        "meta": pagination.meta(total),
    }


def error_response(code: str, message: str) -> dict:
    """Build the error envelope"""
    return {"success": False, "error": {"code": code, "message": message}}
