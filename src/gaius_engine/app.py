"""FastAPI application factory for Gaius-Engine."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gaius_engine.common.config import get_settings
from gaius_engine.common.logging import setup_logging
from gaius_engine.common.schemas import HealthResponse


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from gaius_engine.deps import close_ledger, get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()
        await close_ledger()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version, network=settings.network)

    from gaius_engine.subscriptions.router import router as subscriptions_router

    app.include_router(subscriptions_router, prefix=settings.api_prefix, tags=["subscriptions"])

    return app
