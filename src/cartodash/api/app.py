"""FastAPI application factory."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from cartodash.api.routes import health, queue, records, reports
from cartodash.campaigns import InMemoryCampaignSpendProvider
from cartodash.catalog import load_catalog
from cartodash.errors import CartodashError
from cartodash.logging import configure_logging, new_correlation_id
from cartodash.queue.lifecycle import QueueService
from cartodash.settings import Settings
from cartodash.storage.repository import InMemoryRecordRepository
from cartodash.store import RecordStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from cartodash.campaigns import CampaignSpendProviderProtocol
    from cartodash.catalog import Catalog
    from cartodash.storage.repository import RecordRepositoryProtocol

__all__ = ["create_app", "wire_state"]

logger = logging.getLogger(__name__)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    401: "UNAUTHENTICATED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
}


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Inject correlation_id and record request metrics."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cid = request.headers.get("x-correlation-id") or new_correlation_id()
        request.state.request_id = cid

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        response.headers["x-correlation-id"] = cid
        response.headers["x-request-duration-ms"] = f"{duration * 1000:.1f}"

        health.record_request(response.status_code)

        return response


def _resolve_request_id(request: Request) -> str:
    state_request_id = getattr(request.state, "request_id", "")
    if state_request_id:
        return state_request_id
    header_request_id = request.headers.get("x-correlation-id", "")
    if header_request_id:
        request.state.request_id = header_request_id
        return header_request_id
    generated = new_correlation_id()
    request.state.request_id = generated
    return generated


def _error_payload(error_code: str, message: str, request_id: str, *, details: Any = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "request_id": request_id,
    }
    if details is not None:
        payload["details"] = details
    return payload


async def _domain_exception_handler(request: Request, exc: CartodashError) -> JSONResponse:
    request_id = _resolve_request_id(request)
    if exc.status_code >= 500:
        logger.error("Operation failed: %s", exc, exc_info=exc)
    else:
        logger.info("Operation rejected (%s): %s", exc.error_code, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(exc.error_code, str(exc), request_id),
    )


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    request_id = _resolve_request_id(request)
    status_code = exc.status_code

    if status_code in _ERROR_CODE_BY_STATUS:
        error_code = _ERROR_CODE_BY_STATUS[status_code]
    elif 400 <= status_code < 500:
        error_code = "INVALID_REQUEST"
    else:
        error_code = "INTERNAL_ERROR"

    if isinstance(exc.detail, str):
        message = exc.detail
    else:
        message = "Request failed"

    return JSONResponse(
        status_code=status_code,
        content=_error_payload(error_code, message, request_id),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    request_id = _resolve_request_id(request)
    return JSONResponse(
        status_code=422,
        content=_error_payload(
            "INVALID_REQUEST",
            "Request validation failed",
            request_id,
            details=exc.errors(),
        ),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = _resolve_request_id(request)
    logger.exception("Unhandled application exception", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=_error_payload("INTERNAL_ERROR", "Internal server error", request_id),
    )


def wire_state(
    app: FastAPI,
    settings: Settings,
    *,
    repository: RecordRepositoryProtocol | None = None,
    catalog: Catalog | None = None,
    spend_provider: CampaignSpendProviderProtocol | None = None,
    store: RecordStore | None = None,
) -> RecordStore:
    """Build the service graph and hang it on ``app.state``."""
    catalog = catalog or load_catalog(settings.catalog_path)
    if store is None:
        store = RecordStore(repository if repository is not None else InMemoryRecordRepository())
        store.load()
    app.state.settings = settings
    app.state.catalog = catalog
    app.state.store = store
    app.state.queue = QueueService(store, catalog)
    app.state.spend_provider = spend_provider or InMemoryCampaignSpendProvider()
    return store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Startup
    settings = Settings()
    configure_logging(json_output=settings.log_json, level=settings.log_level)

    # Record repository (in-memory default; PG when pg_dsn set)
    conn = None
    repository: RecordRepositoryProtocol | None = None
    if settings.pg_dsn:
        from cartodash.storage.postgres import ensure_schema, get_connection
        from cartodash.storage.repository import PostgresRecordRepository

        try:
            conn = get_connection(settings.pg_dsn)
            ensure_schema(conn)
            repository = PostgresRecordRepository(conn)
        except Exception:
            logger.warning("PostgreSQL unavailable; running on in-memory records", exc_info=True)
            if conn is not None:
                conn.close()
                conn = None

    store = wire_state(app, settings, repository=repository)

    # Cross-instance change notifications
    publisher = None
    if settings.redis_url:
        from cartodash.notify import RedisChangePublisher, get_redis_client

        publisher = RedisChangePublisher(get_redis_client(settings.redis_url), settings.redis_channel)
        publisher.attach(store)

    yield

    # Shutdown
    if publisher:
        publisher.close()
    if conn is not None:
        conn.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Cartodash",
        version="0.1.0",
        description="Consultation queue, lifecycle and revenue reporting for a cartomancy practice.",
        lifespan=lifespan,
    )
    app.add_exception_handler(CartodashError, _domain_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)
    app.add_middleware(ObservabilityMiddleware)
    app.include_router(health.router, tags=["health"])
    app.include_router(records.router, tags=["records"])
    app.include_router(queue.router, tags=["queue"])
    app.include_router(reports.router, tags=["reports"])
    return app


app = create_app()
