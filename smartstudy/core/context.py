"""Application context: the resources that live as long as the server.

Lifecycle is ``initialize()`` -> serve -> ``close()``; ``create_app`` drives it
from the FastAPI lifespan hook.
"""
import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from smartstudy.core.config import Settings
from smartstudy.db.base import Base
from smartstudy.services.email_service import EmailService
from smartstudy.services.storage_service import StorageService

logger = logging.getLogger("smartstudy.context")


class AppContext:
    """Owns the database engine, session factory and outbound adapters."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: Optional[Engine] = None
        self.session_factory: Optional[sessionmaker] = None
        self.storage: Optional[StorageService] = None
        self.email: Optional[EmailService] = None

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None

    def initialize(self) -> None:
        if self.is_initialized:
            return

        url = self.settings.DATABASE_URL
        if not url:
            raise RuntimeError("DATABASE_URL is not configured. Set the DATABASE_URL env var.")

        logger.info("Initializing database engine")
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # one shared connection, otherwise each session sees an empty database
                kwargs["poolclass"] = StaticPool
            self.engine = create_engine(url, **kwargs)
        else:
            # pool_pre_ping avoids stale/closed connections on managed databases
            self.engine = create_engine(url, pool_pre_ping=True)

        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        # Import all models so they are registered with Base
        import smartstudy.models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

        self.storage = StorageService(self.settings)
        self.email = EmailService(self.settings)
        logger.info(
            "Application context ready (storage=%s, email=%s)",
            self.storage.provider,
            "smtp" if self.email.is_configured else "disabled",
        )

    def session(self) -> Session:
        if self.session_factory is None:
            raise RuntimeError("Application context is not initialized")
        return self.session_factory()

    def close(self) -> None:
        if self.engine is not None:
            logger.info("Closing database connections")
            self.engine.dispose()
        self.engine = None
        self.session_factory = None
