import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import Base, engine
from app.exception_handlers import register_exception_handlers
from app.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from app.routes import auth, external_identity, monitoring, tenants

setup_structured_logging(log_level=settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up the application...")
    # Schema is managed by Alembic outside development
    if settings.environment == "development":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")
    yield
    logger.info("Shutting down the application...")
    await engine.dispose()


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Tenant provisioning and authentication API",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)

    register_exception_handlers(app)

    # Include routers
    app.include_router(monitoring.router)
    app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
    app.include_router(external_identity.router, prefix="/api/v1/auth/external-identity", tags=["External Identity"])
    app.include_router(tenants.router, prefix="/api/v1/tenants")

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
