from __future__ import annotations

import inspect
from functools import wraps
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.responses import Response

_DOC_ATTR = "__payment_envelope_doc__"


def success_payload(data: Any, message: str = "Success", *, request_id: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": True, "message": message, "data": data}
    if request_id:
        payload["requestId"] = request_id
    return payload


def error_payload(
    message: str,
    data: Any = None,
    *,
    error: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Error envelope; ``error`` is the human-readable reason shown to API clients."""
    payload: dict[str, Any] = {"success": False, "message": message, "error": error or message, "data": data}
    if request_id:
        payload["requestId"] = request_id
    return payload


def error_response(
    *,
    status_code: int,
    message: str,
    data: Any = None,
    error: str | None = None,
    headers: dict[str, str] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    content = error_payload(message=message, data=data, error=error, request_id=request_id)
    return JSONResponse(status_code=status_code, headers=headers, content=jsonable_encoder(content))


def request_id_from_request(request: Request | None) -> str | None:
    if request is None:
        return None
    return getattr(request.state, "request_id", None)


def http_exception_response(exc: HTTPException, request: Request | None = None) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and isinstance(detail.get("message"), str):
        # AppException detail: {message, code, details}
        message = detail["message"]
        data = {"code": detail.get("code", "HTTP_EXCEPTION"), "details": detail.get("details")}
    else:
        message = detail if isinstance(detail, str) and detail else "Request failed"
        data = {"code": "HTTP_EXCEPTION", "details": None if isinstance(detail, str) else detail}

    return error_response(
        status_code=exc.status_code,
        message=message,
        data=data,
        headers=exc.headers,
        request_id=request_id_from_request(request),
    )


def document_response(
    *,
    message: str = "Success",
    status_code: int = status.HTTP_200_OK,
    success_example: Any | None = None,
    response_codes: dict[int, str] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap a route's return value in the success envelope and record OpenAPI hints."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Response:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, Response):
                return result

            request = next((value for value in kwargs.values() if isinstance(value, Request)), None)
            return JSONResponse(
                status_code=status_code,
                content=jsonable_encoder(
                    success_payload(result, message, request_id=request_id_from_request(request))
                ),
            )

        setattr(wrapper, _DOC_ATTR, (message, status_code, success_example, response_codes or {}))
        return wrapper

    return decorator


def apply_response_documentation(app: FastAPI) -> None:
    """Copy ``document_response`` hints onto the routes' OpenAPI responses."""
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        doc = getattr(route.endpoint, _DOC_ATTR, None)
        if doc is None:
            continue

        message, status_code, example, response_codes = doc
        responses = dict(route.responses or {})
        responses[status_code] = {
            "description": "Successful response",
            "content": {"application/json": {"example": success_payload(example, message)}},
        }
        for code, description in response_codes.items():
            responses.setdefault(code, {"description": description})

        route.status_code = status_code
        route.responses = responses

    app.openapi_schema = None
