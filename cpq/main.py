"""
CPQ Activity Service — FastAPI application

Wires the activity batching engine into an HTTP surface: editing-context
lifecycle, bulk operation markers, component writes, and log queries.

Lifespan:
  startup  → logging, idempotent schema sync + stale marker sweep,
             component activity gate, scheduler (sweep job + batch timers)
  shutdown → forced flush of every open editing context, scheduler stop
"""

import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.sessions import SessionMiddleware

from .config import settings
from .logging_config import setup_logging
from .routers import activity, components
from .scheduler import configure_scheduler, scheduler
from .schemas.errors import ErrorResponse
from .services.flush_coordinator import get_coordinator
from .services.suppression_gate import install_component_listeners
from .startup import run_startup_migrations


@asynccontextmanager
async def lifespan(app: FastAPI):
    testing = bool(os.environ.get("TESTING"))
    if not testing:
        setup_logging()
    run_startup_migrations()
    install_component_listeners()

    run_scheduler = settings.scheduler_enabled and not testing
    if run_scheduler:
        configure_scheduler()
        scheduler.start()
        logger.info("Scheduler started")
    yield

    written = get_coordinator().teardown_all()
    if written:
        logger.info("Flushed {} activity entries from open contexts on shutdown", written)
    if run_scheduler:
        scheduler.shutdown(wait=False)


app = FastAPI(title="CPQ Activity", version="1.0.0", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    body = ErrorResponse(error=str(exc.detail), status_code=exc.status_code, request_id=_request_id(request))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        error="Validation error",
        status_code=422,
        request_id=_request_id(request),
        detail=[{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()],
    )
    return JSONResponse(status_code=422, content=body.model_dump())


@app.get("/health")
def health():
    return {"status": "ok", "open_contexts": len(get_coordinator().open_contexts())}


app.include_router(activity.router)
app.include_router(components.router)
