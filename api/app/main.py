# main.py

"""FastAPI application for the table-session and order lifecycle engine."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings

from .db import dispose_engine, init_db
from .domain.errors import Conflict, DomainError
from .events import NotificationHub
from .middlewares import LoggingMiddleware, MetricsMiddleware, RequestIdMiddleware
from .middlewares.guest_utils import restaurant_from_path
from .obs import configure_logging
from .routes_assistance import router as assistance_router
from .routes_guest import router as guest_router
from .routes_housekeeping import router as housekeeping_router
from .routes_kds import router as kds_router
from .routes_metrics import router as metrics_router
from .routes_notifications_sse import router as sse_router
from .routes_orders import router as orders_router
from .routes_sessions import router as sessions_router
from .services.inventory import build_stock_service
from .services.kitchen_routing import RoutingPolicy
from .utils.responses import error_response, ok

settings = get_settings()
configure_logging(getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the notification hub and collaborators; tear them down on exit."""

    settings = get_settings()
    app.state.hub = NotificationHub(queue_max=settings.subscriber_queue_max)
    app.state.policy = RoutingPolicy.from_settings(settings)
    app.state.stock = build_stock_service(
        settings.stock_service_url, settings.stock_service_timeout_sec
    )
    if settings.auto_create_schema:
        await init_db()
    logger.info("application started")
    try:
        yield
    finally:
        await app.state.hub.close()
        await dispose_engine()
        logger.info("application stopped")


app = FastAPI(
    title="Tableflow API",
    version="1.0.0",
    servers=[{"url": "/"}],
    openapi_url="/openapi.json",
    lifespan=lifespan,
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIdMiddleware)


def _log_extra(request: Request, status: int) -> dict:
    return {
        "status": status,
        "route": request.url.path,
        "restaurant": restaurant_from_path(request.url.path),
        "user": getattr(request.state, "user_id", None),
    }


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    logger.info(exc.message, extra=_log_extra(request, exc.status_code))
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    return await domain_error_handler(
        request, Conflict("the record was changed by someone else; reload and retry")
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("integrity_error", extra=_log_extra(request, 409))
    return await domain_error_handler(
        request, Conflict("a concurrent change conflicts with this request")
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = {"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]}
    return error_response(422, "VALIDATION_ERROR", "Invalid request", details)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(exc.detail, extra=_log_extra(request, exc.status_code))
    return error_response(
        exc.status_code, exc.status_code, exc.detail, headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", extra=_log_extra(request, 500))
    return error_response(500, "INTERNAL_ERROR", "Internal Server Error")


@app.get("/health")
async def health() -> dict:
    return ok({"status": "ok"})


app.include_router(guest_router)
app.include_router(sse_router)
app.include_router(sessions_router)
app.include_router(orders_router)
app.include_router(kds_router)
app.include_router(housekeeping_router)
app.include_router(assistance_router)
app.include_router(metrics_router)
