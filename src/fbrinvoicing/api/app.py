from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from fbrinvoicing.api.routes_auth import router as auth_router
from fbrinvoicing.api.routes_invoices import router as invoices_router
from fbrinvoicing.api.routes_reference import router as reference_router
from fbrinvoicing.api.routes_tenants import router as tenants_router
from fbrinvoicing.api.security import ENGINE_VERSION
from fbrinvoicing.bootstrap import build_services
from fbrinvoicing.config import Settings
from fbrinvoicing.observability import (
    bind_run_id,
    current_run_id,
    log_event,
    new_run_id,
    redact_api_key,
    reset_run_id,
)

# -----------------------------------------------------------------------------
# App setup
# -----------------------------------------------------------------------------
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests install their own services (mock gateway transport) before startup.
    services = getattr(app.state, "services", None)
    if services is None:
        try:
            services = build_services()
        except Exception:  # pragma: no cover - logged, retried lazily per request
            logger.exception("Service bootstrap failed")
        app.state.services = services
    yield
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.aclose()
    app.state.services = None


app = FastAPI(title="fbr-invoicing API", version="v1", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(reference_router)
app.include_router(invoices_router)
app.include_router(auth_router)
app.include_router(tenants_router)


@app.middleware("http")
async def attach_run_id(request: Request, call_next):
    run_id = current_run_id() or new_run_id()
    token = bind_run_id(run_id)
    redacted_key = redact_api_key(request.headers.get("X-API-Key"))
    log_event("request.start", path=str(request.url.path), api_key=redacted_key)
    try:
        response = await call_next(request)
        response.headers["X-Run-ID"] = run_id
        return response
    finally:
        log_event("request.end", path=str(request.url.path), api_key=redacted_key)
        reset_run_id(token)


def _redact_message(msg: str) -> str:
    if msg.lower().startswith("value error, "):
        msg = msg.split(", ", 1)[1]
    lowered = msg.lower()
    if "key" in lowered or "token" in lowered or "secret" in lowered:
        return "Invalid request payload"
    return msg


def _normalize_validation_errors(raw_errors: List[Dict[str, Any]]) -> Dict[str, Any]:
    fields: List[Dict[str, str]] = []
    for err in raw_errors:
        loc = err.get("loc", [])
        loc_parts = [str(part) for part in loc if part != "body"]
        path = ".".join(["request", *loc_parts]) if loc_parts else "request"
        message = _redact_message(err.get("msg", "Invalid request"))
        fields.append({"path": path, "message": message})
    return {"error": "VALIDATION_ERROR", "fields": fields}


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
):  # pragma: no cover - exercised via system tests
    content = _normalize_validation_errors(exc.errors())
    return JSONResponse(status_code=422, content=content)


@app.exception_handler(ValidationError)
async def handle_pydantic_validation_error(
    request: Request, exc: ValidationError
):  # pragma: no cover - raised outside request parsing
    content = _normalize_validation_errors(exc.errors())
    return JSONResponse(status_code=422, content=content)


class VersionResp(BaseModel):
    engine_version: str
    build: Optional[str] = None
    gateway: str


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "status": "ok"}


@app.get("/v1/version", response_model=VersionResp)
def version(request: Request) -> VersionResp:
    services = getattr(request.app.state, "services", None)
    settings = services.settings if services is not None else Settings.from_env()
    return VersionResp(
        engine_version=ENGINE_VERSION,
        build=os.getenv("GIT_COMMIT"),
        gateway=settings.base_url,
    )
