import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text

from .config import settings
from .core.consistency import store_errors
from .core.middleware import ExceptionHandlingMiddleware, install_exception_handlers
from .database import build_engine, build_session_factory
from .dependencies import get_db
from .models import Base
from .schema.result import Result

# Import routes
from .api.v1 import access, forks, subscriptions

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the engine for the life of the process."""
    engine = build_engine(settings)
    if settings.CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")

    app.state.session_factory = build_session_factory(engine)
    try:
        yield
    finally:
        engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        description="RecipeShare API - Shared recipe collections with copy-on-write editing",
        lifespan=lifespan,
    )

    # Exception handling: app-level handlers for HTTP and validation errors,
    # middleware for anything that escapes them
    install_exception_handlers(app, log_internal_errors=True)
    app.add_middleware(ExceptionHandlingMiddleware, log_internal_errors=True)

    # Include routers
    app.include_router(access.router, prefix=f"{settings.API_V1_STR}", tags=["access"])
    app.include_router(forks.router, prefix=f"{settings.API_V1_STR}", tags=["forks"])
    app.include_router(
        subscriptions.router,
        prefix=f"{settings.API_V1_STR}",
        tags=["subscriptions"]
    )

    @app.get("/", response_model=Result[dict])
    async def root():
        """Root endpoint with API information"""
        return Result.successful(
            data={
                "message": f"Welcome to {settings.PROJECT_NAME} API",
                "version": settings.VERSION,
                "docs": "/docs",
                "status": "online",
            }
        )

    @app.get("/health", response_model=Result[dict])
    async def health_check(db: Session = Depends(get_db)):
        """Health check endpoint for monitoring"""
        with store_errors("health check"):
            db.execute(text("SELECT 1"))
        return Result.successful(data={"status": "healthy", "database": "connected"})

    return app


app = create_app()
