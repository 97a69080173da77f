from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from damqueue.config.logging import setup_logging
from damqueue.config.settings import Settings, settings as default_settings
from damqueue.infra.database import Database
from damqueue.v1.assets.routes import router as dam_router
from damqueue.v1.core.exceptions import (
    DamQueueException,
    RequestContextMiddleware,
    dam_queue_exception_handler,
    general_exception_handler,
)
from damqueue.v1.healthz import router as health_router
from damqueue.v1.infra.jobs.routes import router as jobs_router


def create_app(
    settings: Settings | None = None, database: Database | None = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings
    owns_database = database is None
    database = database or Database(settings)

    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_database:
            await database.close()

    app = FastAPI(
        title=settings.app_name,
        description="Durable polling job queue for asset processing",
        version=settings.version,
        debug=settings.debug,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.database = database

    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(DamQueueException, dam_queue_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")
    app.include_router(dam_router, prefix="/v1")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "damqueue.main:create_app",
        factory=True,
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        workers=1 if default_settings.debug else default_settings.workers,
    )
