"""Shared API error helpers"""

from typing import Any, Optional

from fastapi import HTTPException


def api_error(
    status_code: int, code: str, message: str, details: Optional[Any] = None
) -> HTTPException:
    """
    Build an HTTPException carrying a machine-readable error code.

    The response body is {"detail": {"code": ..., "message": ..., "details": ...}},
    with "details" omitted when not given.
    """
    detail = {"code": code, "message": message}
    if details is not None:
        detail["details"] = details
    return HTTPException(status_code=status_code, detail=detail)
