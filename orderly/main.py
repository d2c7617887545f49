from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.rest import router as rest_router
from .clock import Clock
from .container import build_container
from .errors import BackendError, EditNotAllowedError, NotFoundError, UnauthorizedError, ValidationError
from .logging import ServiceLogger, setup_logging
from .settings import Settings, load_settings


def create_app(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    setup_logging(settings.log_level)
    logger = ServiceLogger("api")

    container = build_container(settings, transport=transport, clock=clock)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await container.http.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        description="Eligibility, totals and diff submission for customer order edits.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.container = container

    @app.exception_handler(NotFoundError)
    async def handle_not_found(_, __):
        return JSONResponse(status_code=404, content={"detail": "Not found"})

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(_, __):
        return JSONResponse(status_code=401, content={"detail": "Unauthorized"})

    @app.exception_handler(ValidationError)
    async def handle_validation(_, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": exc.detail})

    @app.exception_handler(EditNotAllowedError)
    async def handle_edit_not_allowed(_, exc: EditNotAllowedError):
        return JSONResponse(status_code=403, content={"detail": "Order cannot be edited", "errors": exc.errors})

    @app.exception_handler(BackendError)
    async def handle_backend(request: Request, exc: BackendError):
        logger.error("Backend failure", path=request.url.path, detail=exc.detail)
        return JSONResponse(
            status_code=502,
            content={"detail": "The order service is unavailable. Please try again."},
        )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header, "") or container.id_provider.new_id()
        response = await call_next(request)
        response.headers[settings.request_id_header] = request_id
        return response

    app.include_router(rest_router)
    app.include_router(rest_router, prefix="/v1")

    return app


app = create_app(load_settings())
