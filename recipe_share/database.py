from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import Settings, settings as default_settings


def build_engine(settings: Optional[Settings] = None) -> Engine:
    """
    Create the database engine for the process.

    The engine is owned by the process entry point (see ``main.lifespan``) and
    handed to components through a session factory; nothing in the package
    keeps a module-level pool.
    """
    settings = settings or default_settings

    if settings.DATABASE_URL.startswith("sqlite"):
        # SQLite doesn't support connection pooling arguments
        return create_engine(
            settings.DATABASE_URL,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.DB_STATEMENT_TIMEOUT_MS / 1000,
            },
            echo=settings.DEBUG
        )

    connect_args = {}
    if settings.DATABASE_URL.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"

    # Configure connection pool for PostgreSQL/MySQL
    return create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=3600,   # Recycle connections after 1 hour
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args=connect_args,
        echo=settings.DEBUG
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """One session per transaction; repositories flush, the caller commits."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
