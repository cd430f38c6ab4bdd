"""ApiResponse envelope shared by the order, payment and webhook routers.

    {"code": 0, "message": "success", "data": {...}, "timestamp": "...",
     "request_id": "req_..."}

``code`` is 0 on success and the AppError code otherwise; ``data`` is null on
error. ``request_id`` is the id RequestLogMiddleware put on request.state, so
the body, the X-Request-ID header and the access log line all agree.
"""

import uuid
from typing import Any

from pydantic import BaseModel, Field
from starlette.requests import Request

from src.mp_common.datetime_utils import utc_now


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def request_id_of(request: Request) -> str:
    """Correlation id of the current request, minting one if middleware did not run."""
    return getattr(request.state, "request_id", None) or new_request_id()


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    request_id: str = Field(default_factory=new_request_id)


def success_response(
    data: Any = None, message: str = "success", request_id: str | None = None
) -> ApiResponse:
    if request_id is None:
        return ApiResponse(code=0, message=message, data=data)
    return ApiResponse(code=0, message=message, data=data, request_id=request_id)


def error_response(code: int, message: str, request_id: str | None = None) -> ApiResponse:
    if request_id is None:
        return ApiResponse(code=code, message=message, data=None)
    return ApiResponse(code=code, message=message, data=None, request_id=request_id)


def respond(request: Request, data: Any) -> ApiResponse:
    """Success envelope for a router handler, carrying the request's correlation id."""
    return success_response(data, request_id=request_id_of(request))
