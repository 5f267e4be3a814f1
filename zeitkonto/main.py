import asyncio
from contextlib import suppress
from datetime import datetime, timezone
import logging
import time
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zeitkonto.db import engine
from zeitkonto.dependencies import build_overtime_service
from zeitkonto.errors import ApiError, error_response
from zeitkonto.logging_utils import setup_json_logging
from zeitkonto.routers import entries, problems, statistics
from zeitkonto.routers import settings as settings_router
from zeitkonto.services.cache import ResultCache
from zeitkonto.services.schema_guard import SchemaGuardResult, verify_runtime_schema
from zeitkonto.settings import get_cors_origins, get_settings

settings = get_settings()
setup_json_logging(service=settings.app_name.lower(), level=settings.log_level)
logger = logging.getLogger("zeitkonto.request")
worker_logger = logging.getLogger("zeitkonto.cache_worker")

HTTP_ERROR_CODES = {401: "UNAUTHENTICATED", 403: "FORBIDDEN", 404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}


app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.overtime_service = build_overtime_service(settings)


def _log_context(request: Request) -> dict[str, Any]:
    return {
        "request_id": getattr(request.state, "request_id", "unknown"),
        "path": request.url.path,
        "method": request.method,
        "user_id": getattr(request.state, "user_id", None),
    }


def _sweep_interval_seconds() -> int:
    return max(5, int(settings.cache_sweep_interval_seconds))


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    request.state.request_id = request.headers.get("X-Request-Id") or uuid4().hex
    started = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        response.headers["X-Request-Id"] = request.state.request_id
        return response
    finally:
        context = _log_context(request)
        context["status_code"] = response.status_code if response is not None else 500
        context["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
        logger.info("request_complete", extra=context)


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
    )


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        message=str(exc.detail) if exc.detail else "Request failed.",
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status_code=422,
        code="VALIDATION_ERROR",
        message="Request parameters failed validation.",
        details=[
            {"field": ".".join(str(part) for part in item.get("loc", ())), "message": item.get("msg", "")}
            for item in exc.errors()
        ],
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", extra=_log_context(request))
    return error_response(
        request,
        status_code=500,
        code="INTERNAL_ERROR",
        message="Unexpected server error.",
    )


app.include_router(statistics.router)
app.include_router(entries.router)
app.include_router(problems.router)
app.include_router(settings_router.router)


def _default_schema_guard_result() -> SchemaGuardResult:
    return SchemaGuardResult(
        ok=False,
        checked_at_utc=datetime.now(timezone.utc),
        issues=["SCHEMA_GUARD_NOT_RUN"],
        warnings=[],
    )


async def _cache_sweep_loop(cache: ResultCache, stop_event: asyncio.Event) -> None:
    interval_seconds = _sweep_interval_seconds()
    while not stop_event.is_set():
        try:
            removed = await asyncio.to_thread(cache.sweep)
        except Exception:
            worker_logger.exception("cache_sweep_failed")
        else:
            if removed:
                worker_logger.info("cache_sweep_tick", extra={"removed_entries": removed})

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue


@app.on_event("startup")
async def run_schema_guard() -> None:
    result = await asyncio.to_thread(verify_runtime_schema, engine)
    app.state.schema_guard_result = result
    if result.ok:
        worker_logger.info("schema_guard_ok", extra=result.to_dict())
        return

    worker_logger.error("schema_guard_failed", extra=result.to_dict())
    if settings.schema_guard_strict:
        joined_issues = "; ".join(result.issues)
        raise RuntimeError(f"Runtime schema guard failed: {joined_issues}")


@app.on_event("startup")
async def start_cache_sweeper() -> None:
    if not settings.cache_sweep_enabled:
        return
    if getattr(app.state, "cache_sweep_task", None) is not None:
        return

    stop_event = asyncio.Event()
    task = asyncio.create_task(_cache_sweep_loop(app.state.overtime_service.cache, stop_event))
    app.state.cache_sweep_stop_event = stop_event
    app.state.cache_sweep_task = task
    worker_logger.info(
        "cache_sweep_started",
        extra={"interval_seconds": _sweep_interval_seconds()},
    )


@app.on_event("shutdown")
async def stop_cache_sweeper() -> None:
    stop_event: asyncio.Event | None = getattr(app.state, "cache_sweep_stop_event", None)
    task: asyncio.Task[None] | None = getattr(app.state, "cache_sweep_task", None)
    if stop_event is not None:
        stop_event.set()
    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    app.state.cache_sweep_stop_event = None
    app.state.cache_sweep_task = None


@app.get("/health")
def health() -> dict[str, Any]:
    schema_guard_result: SchemaGuardResult = getattr(app.state, "schema_guard_result", _default_schema_guard_result())
    cache = app.state.overtime_service.cache
    return {
        "status": "ok",
        "schema_guard": schema_guard_result.to_dict(),
        "cached_results": len(cache) if hasattr(cache, "__len__") else None,
    }
