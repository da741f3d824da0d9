"""
Risk Register FastAPI Application — local, single-tenant UI gateway.

Lifecycle of the store owned by the app:
    construct → hydrate from storage → serve → flush on shutdown
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from riskregister.api.routes.health import router as health_router
from riskregister.api.routes.risks import router as risks_router
from riskregister.config import settings
from riskregister.storage.factory import create_storage
from riskregister.store.persistence import PersistedRiskStore
from riskregister.store.risk_store import RiskStore

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("riskregister")


def build_store() -> PersistedRiskStore:
    """Store backed by the configured storage, hydrated and ready to use."""
    store = PersistedRiskStore(
        RiskStore(default_categories=settings.default_categories),
        create_storage(settings),
        key=settings.storage_key,
    )
    store.hydrate()
    return store


def create_app(store: PersistedRiskStore | None = None) -> FastAPI:
    """
    Build the application.

    Pass a ready store to skip building one from settings (tests do this);
    an injected store is used as-is and is not hydrated or flushed here.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = store is None
        app.state.store = build_store() if owned else store
        logger.info(f"Risk register ready with {len(app.state.store.risks)} risk(s)")
        try:
            yield
        finally:
            if owned:
                app.state.store.close()

    app = FastAPI(
        title="Risk Register",
        description="Risk register with scoring, filtering, stats and CSV import/export",
        version="1.0.0",
        lifespan=lifespan,
    )

    if store is not None:
        app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(risks_router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error on {request.url.path}: {exc.errors()}")
        # rejected input is left out; it may not be JSON-encodable (inf, nan)
        errors = [{k: v for k, v in err.items() if k != "input"} for err in exc.errors()]
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})

    return app


app = create_app()
