from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from core.database import client as mongo_client
from core.logging_setup import configure_logging
from core.payments.manager import PaymentManager
from core.response_envelope import (
    apply_response_documentation,
    document_response,
    error_response,
    http_exception_response,
    request_id_from_request,
)
from core.settings import get_settings
from core.validation_errors import format_validation_error_details

settings = get_settings()
logger = logging.getLogger(__name__)

redis_client = (
    redis.Redis.from_url(settings.redis_url, socket_connect_timeout=2, decode_responses=True)
    if settings.redis_url
    else None
)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    manager = PaymentManager.configure_from_settings()
    logger.info("Payment gateways ready: %s", ", ".join(manager.gateway_names))
    try:
        yield
    finally:
        if redis_client is not None:
            await redis_client.aclose()


app = FastAPI(lifespan=lifespan, title="ISA Payments Gateway")
app.add_middleware(RequestIdMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins) if settings.cors_origins else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    return http_exception_response(exc=exc, request=request)


@app.exception_handler(RequestValidationError)
async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
    details = format_validation_error_details(exc.errors())
    return error_response(
        status_code=422,
        message="Validation error",
        error=details["summary"],
        data={"code": "VALIDATION_FAILED", "details": details},
        request_id=request_id_from_request(request),
    )


@app.exception_handler(Exception)
async def custom_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    details = str(exc) if (settings.debug_include_error_details and not settings.is_production) else None
    return error_response(
        status_code=500,
        message="Internal Server Error",
        data={"code": "INTERNAL_ERROR", "details": details},
        request_id=request_id_from_request(request),
    )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


@app.get("/health", tags=["Health"])
@document_response(
    message="Health check completed",
    success_example={"status": "healthy", "services": {"mongo": {"status": "healthy"}}},
)
async def health_check():
    services: dict[str, dict[str, str | float]] = {}
    overall_status = "healthy"

    start = time.perf_counter()
    try:
        await mongo_client.admin.command("ping")
        services["mongo"] = {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start),
            "message": "MongoDB ping successful",
        }
    except Exception as exc:
        overall_status = "degraded"
        services["mongo"] = {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start),
            "message": str(exc),
        }

    if redis_client is not None:
        start = time.perf_counter()
        try:
            await redis_client.ping()
            services["redis"] = {
                "status": "healthy",
                "latency_ms": _elapsed_ms(start),
                "message": "Redis ping successful",
            }
        except Exception as exc:
            overall_status = "degraded"
            services["redis"] = {
                "status": "unhealthy",
                "latency_ms": _elapsed_ms(start),
                "message": str(exc),
            }

    return {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": services,
    }


from api.v1.payments_route import router as v1_payments_route_router

app.include_router(v1_payments_route_router, prefix='/v1')

apply_response_documentation(app)
