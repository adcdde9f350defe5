import asyncio
import logging
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.core.authorization import UserRole
from app.core.config import get_settings
from app.core.logging import setup_logging
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.repositories.user import InternalUserRepository
from app.services.auth import AuthService

logger = logging.getLogger(__name__)

DEFAULT_STAFF = (
    ("tecnico@portalti.com.br", "Técnico TI", "tecnico123", UserRole.IT_STAFF),
    ("gestor@portalti.com.br", "Gestor TI", "gestor123", UserRole.MANAGER),
)


async def seed() -> None:
    """Seed the bootstrap admin and sample staff for development.

    Returns:
        None
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as session:
        svc = AuthService()
        admin, created = await svc.ensure_admin(
            session,
            email=os.getenv("ADMIN_EMAIL", "admin@portalti.com.br"),
            name="Administrador",
            password=os.getenv("ADMIN_PASSWORD", "admin123"),
        )
        logger.info("Seeded admin user" if created else "Admin user already exists; skipping")

        repo = InternalUserRepository()
        for email, name, password, role in DEFAULT_STAFF:
            if await repo.get_by_email(session, email):
                logger.info(f"{email} already exists; skipping")
                continue
            await svc.register_internal(session, UserRole.ADMIN, email=email, name=name, password=password, role=role)
            logger.info(f"Seeded {role.value} user {email}")
        await session.commit()


if __name__ == "__main__":
    setup_logging(get_settings().LOG_LEVEL)
    asyncio.run(seed())
