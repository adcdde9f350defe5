"""
Database management utilities: schema creation, Alembic migrations and health checks.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app.core.config import get_settings
from app.core.timeutils import utc_now
from app.db import models  # noqa: F401  registers the tables on Base.metadata
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

EXPECTED_TABLES = sorted(Base.metadata.tables)


class DatabaseManager:
    """
    Database management utility for migrations and operations.
    Handles schema versioning, migration execution and health checks.
    """

    def __init__(self, db_engine: AsyncEngine = engine):
        self.settings = get_settings()
        self.engine = db_engine
        self.alembic_cfg = Config("alembic.ini")
        self.alembic_cfg.set_main_option("sqlalchemy.url", str(self.settings.DB_URL))

    async def get_current_revision(self, session: Optional[AsyncSession] = None) -> Optional[str]:
        """Get the current database revision, or None when Alembic never ran."""

        def _revision(sync_conn) -> Optional[str]:
            return MigrationContext.configure(sync_conn).get_current_revision()

        if session is not None:
            conn = await session.connection()
            return await conn.run_sync(_revision)
        async with self.engine.connect() as conn:
            return await conn.run_sync(_revision)

    async def run_migrations_async(self, target_revision: Optional[str] = None) -> bool:
        """Run Alembic migrations from an async context without event-loop conflicts."""
        try:
            rev = target_revision or "heads"
            await asyncio.to_thread(command.upgrade, self.alembic_cfg, rev)
            logger.info(f"Successfully ran migrations to {target_revision or 'head'}")
            return True
        except Exception as e:
            logger.error(f"Error running migrations: {e}")
            return False

    async def create_all(self) -> None:
        """Create any missing tables straight from the ORM metadata."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured from metadata")

    async def check_database_health(self, session: AsyncSession) -> Dict[str, Any]:
        """Connectivity, schema and migration checks over the given session."""
        health_status: Dict[str, Any] = {
            "status": "healthy",
            "checks": {},
            "timestamp": utc_now().isoformat(),
        }

        try:
            start_time = utc_now()
            await session.execute(text("SELECT 1"))
            health_status["checks"]["connectivity"] = {
                "status": "pass",
                "response_time_ms": int((utc_now() - start_time).total_seconds() * 1000),
            }

            conn = await session.connection()
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            missing_tables = [t for t in EXPECTED_TABLES if t not in tables]
            health_status["checks"]["schema"] = {
                "status": "pass" if not missing_tables else "fail",
                "total_tables": len(tables),
                "missing_tables": missing_tables,
            }

            current = await self.get_current_revision(session)
            health_status["checks"]["migrations"] = {
                # create_all deployments never stamp a revision
                "status": "pass" if current or self.settings.DB_AUTO_CREATE else "warn",
                "current_revision": current,
            }

            checks = health_status["checks"].values()
            if any(c["status"] == "fail" for c in checks):
                health_status["status"] = "unhealthy"
            elif any(c["status"] == "warn" for c in checks):
                health_status["status"] = "degraded"

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            health_status["status"] = "unhealthy"
            health_status["error"] = str(e)

        return health_status


# Global database manager instance
db_manager = DatabaseManager()


async def initialize_database() -> None:
    """Create the schema at startup (DB_AUTO_CREATE) or bring it to the latest migration."""
    settings = get_settings()
    logger.info("Initializing database...")
    if settings.DB_AUTO_CREATE:
        await db_manager.create_all()
        return

    if not await db_manager.run_migrations_async():
        logger.error("Database migrations failed")
        raise RuntimeError("Failed to run database migrations")
    logger.info("Database migrations completed successfully")
