"""Application factory and top-level wiring for the asset tracker API.

``create_app`` brings together configuration, logging, the database schema,
middleware, error handling and the API routers. ``app`` is the instance
uvicorn serves.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .core.config import settings
from .core.errors import (
    AssetTrackerError,
    domain_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from .core.logging import configure_logging
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware, SecurityHeadersMiddleware

# Importing the models registers every table with the metadata.
from . import models  # noqa: F401
from .routers import (
    api_auth,
    api_borrow,
    api_departments,
    api_disposals,
    api_inventory,
    api_reports,
)


def create_app(*, init_db: bool = True) -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    if init_db:
        # Fresh databases get every table; older ones get additive upgrades.
        Base.metadata.create_all(bind=engine)
        run_migrations(engine)

    app = FastAPI(title=settings.APP_NAME, version=__version__)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(AssetTrackerError, domain_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    for module in (api_auth, api_inventory, api_borrow, api_disposals, api_reports, api_departments):
        app.include_router(module.router)

    @app.get("/health", tags=["meta"])
    async def health() -> dict[str, bool]:
        return {"ok": True}

    Instrumentator().instrument(app).expose(app, include_in_schema=False)
    return app


app = create_app()

__all__ = ["app", "create_app"]
