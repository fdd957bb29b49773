from typing import Any, Optional
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.core.errors import WeeklyContestError


def success_response(
    message: str = "Success",
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """
    Standard success response

    Args:
        message: Success message
        data: Response data (optional, datetimes/models are encoded)
        status_code: HTTP status code (default: 200)

    Returns:
        JSONResponse with success format
    """
    response = {
        "success": True,
        "message": message
    }

    if data is not None:
        response["data"] = jsonable_encoder(data)

    return JSONResponse(content=response, status_code=status_code)


def error_response(
    message: str = "Error",
    status_code: int = 400,
    kind: Optional[str] = None,
    retryable: bool = False
) -> JSONResponse:
    """
    Standard error response

    Args:
        message: Error message
        status_code: HTTP status code (default: 400)
        kind: Machine-readable error kind (optional)
        retryable: Whether retrying the same request may succeed

    Returns:
        JSONResponse with error format
    """
    content = {
        "success": False,
        "message": message
    }
    if kind:
        content["error"] = {
            "kind": kind,
            "message": message,
            "retryable": retryable
        }

    return JSONResponse(content=content, status_code=status_code)


def contest_error_response(error: WeeklyContestError) -> JSONResponse:
    """Error response for a weekly contest error (kind, message, status)"""
    return JSONResponse(content=jsonable_encoder(error.to_response()), status_code=error.http_status)


def unauthorized_response(
    message: str = "Unauthorized"
) -> JSONResponse:
    """
    Standard unauthorized response

    Args:
        message: Unauthorized message

    Returns:
        JSONResponse with unauthorized format (401)
    """
    return error_response(message=message, status_code=401, kind="UNAUTHORIZED")
