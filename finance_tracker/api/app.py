"""
HTTP API application

create_app() wires a LedgerService into FastAPI, installs the JSON error
handlers and, when SCHEDULER_ENABLED is set, starts the scheduled jobs
for the lifetime of the app.

Run locally with:
    finance-tracker-api
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from finance_tracker import __version__
from finance_tracker.api import routes, webhooks
from finance_tracker.api.scheduler import scheduler_loop
from finance_tracker.audit import configure_logging
from finance_tracker.config import Settings, get_settings
from finance_tracker.orchestrator import LedgerService, create_app_components
from finance_tracker.services.messaging import MessagingError
from finance_tracker.services.storage import DuplicateError, NotFoundError, StorageError


logger = structlog.get_logger(__name__)


def _first_error(errors: list) -> str:
    if not errors:
        return "Invalid request"
    err = errors[0]
    location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    message = err.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def install_error_handlers(app: FastAPI) -> None:
    """Map domain and infrastructure errors to {"error": message} bodies."""

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _first_error(exc.errors())})

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": _first_error(exc.errors())})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(DuplicateError)
    async def duplicate_handler(request: Request, exc: DuplicateError):
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("storage_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(MessagingError)
    async def messaging_error_handler(request: Request, exc: MessagingError):
        logger.error("messaging_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
        )
        return JSONResponse(status_code=500, content={"error": "Unknown error"})


def create_app(
    service: Optional[LedgerService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Pre-built service (tests pass one over in-memory storage)
        settings: Configuration used when service is not given
    """
    settings = settings or (service.settings if service else get_settings())
    if service is None:
        service, _ = create_app_components(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.app.debug_mode)
        app.state._bg_tasks = []
        scheduler_settings = settings.scheduler
        if scheduler_settings.enabled:
            task = asyncio.create_task(scheduler_loop(service, scheduler_settings))
            app.state._bg_tasks.append(task)
        logger.info(
            "api_started",
            environment=settings.app.app_environment,
            scheduler=scheduler_settings.enabled,
        )
        try:
            yield
        finally:
            for task in app.state._bg_tasks:
                task.cancel()
            if app.state._bg_tasks:
                await asyncio.gather(*app.state._bg_tasks, return_exceptions=True)

    app = FastAPI(
        title="Finance Tracker",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    install_error_handlers(app)
    app.include_router(routes.router)
    app.include_router(webhooks.router)
    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.app.debug_mode)
    uvicorn.run(
        create_app(settings=settings),
        host=settings.app.api_host,
        port=settings.app.api_port,
    )


if __name__ == "__main__":
    main()
