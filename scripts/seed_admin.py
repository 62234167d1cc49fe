"""
Seed the first admin account, a default partner group and tracking API keys.

Idempotent: an existing admin is left alone (its integration keys are created
if missing).

Usage:
    python scripts/seed_admin.py admin@example.com 'S3cretPass!' "Ops Admin"
"""
import argparse
import asyncio
import logging

from sqlalchemy import select

from reftrack.database import async_session_factory, dispose_engine
from reftrack.models.enums import Role, UserStatus
from reftrack.models.partner_group import PartnerGroup
from reftrack.models.user import User
from reftrack.services.affiliates import hash_password
from reftrack.services.commission import DEFAULT_COMMISSION_RATE
from reftrack.services.integration import generate_keys, get_integration

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def seed(email: str, password: str, name: str) -> None:
    async with async_session_factory() as session:
        email = email.strip().lower()
        result = await session.execute(select(User).where(User.email == email))
        admin = result.scalar_one_or_none()

        if admin:
            logger.info("User %s already exists (role=%s). Skipping.", email, admin.role)
        else:
            admin = User(
                email=email,
                name=name,
                password_hash=hash_password(password),
                role=Role.ADMIN.value,
                status=UserStatus.ACTIVE.value,
            )
            session.add(admin)
            await session.flush()
            logger.info("Admin created: %s (id=%s)", email, admin.id)

        result = await session.execute(select(PartnerGroup).where(PartnerGroup.is_default == True))  # noqa: E712
        if result.scalar_one_or_none() is None:
            session.add(PartnerGroup(
                name="Default",
                description="Standard commission tier",
                commission_rate=DEFAULT_COMMISSION_RATE,
                is_default=True,
            ))
            logger.info("Default partner group created (rate=%.2f)", DEFAULT_COMMISSION_RATE)

        integration = await get_integration(session, admin.id)
        if integration is None:
            integration = await generate_keys(session, admin.id)
        logger.info("Tracking public key: %s", integration.public_key)

        await session.commit()

    await dispose_engine()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the first reftrack admin")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("name", nargs="?", default="Admin")
    args = parser.parse_args()
    asyncio.run(seed(args.email, args.password, args.name))


if __name__ == "__main__":
    main()
