import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from realty.api.v1.router import router as v1_router
from realty.core.config import settings
from realty.core.errors import AppError
from realty.core.logging import setup_logging
from realty.core.telemetry import setup_telemetry
from realty.services.providers import build_handles

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    handles = build_handles(settings)
    app.state.handles = handles
    try:
        yield
    finally:
        await handles.aclose()


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    body: dict = {"error": exc.message}
    if exc.status_code >= 500:
        log.error("%s %s -> %s %r", request.method, request.url.path, exc.status_code, exc)
        if settings.is_dev:
            body["details"] = {"kind": exc.kind.value, **exc.context}
    return JSONResponse(status_code=exc.status_code, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors:
        return JSONResponse(status_code=400, content={"error": "Invalid request"})
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    message = first.get("msg", "Invalid value")
    return JSONResponse(status_code=400, content={"error": f"Invalid {field}: {message}" if field else message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("%s %s crashed", request.method, request.url.path)
    body: dict = {"error": "Internal server error"}
    if settings.is_dev:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


setup_logging()

app = FastAPI(title="Realty API", version="0.1.0", lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

setup_telemetry(app)
app.include_router(v1_router)
