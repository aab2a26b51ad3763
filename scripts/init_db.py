#!/usr/bin/env python3
"""Setup script for the BookerOS API: migrations plus seed data."""

import asyncio
import logging
import os
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from sqlalchemy import func, select  # noqa: E402

from bookeros.core.database import async_session_factory, close_db  # noqa: E402
from bookeros.core.permissions import Role  # noqa: E402
from bookeros.core.security import hash_password  # noqa: E402
from bookeros.models import Business, Coupon, RetentionConfig, Tour, User  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_migrations():
    """Upgrade the schema to the latest revision."""
    logger.info("Running database migrations...")
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_seed_data():
    """Create the administrator, default retention rates and a demo catalogue."""
    logger.info("Creating seed data...")

    async with async_session_factory() as db:
        try:
            existing_users = await db.scalar(select(func.count()).select_from(User))
            if existing_users:
                logger.info("Seed data already exists, skipping...")
                return

            admin = User(
                username=os.getenv("BOOKEROS_ADMIN_USERNAME", "admin"),
                email=os.getenv("BOOKEROS_ADMIN_EMAIL", "admin@bookeros.com"),
                password_hash=hash_password(os.getenv("BOOKEROS_ADMIN_PASSWORD", "admin123")),
                full_name="Platform Administrator",
                role=Role.MASTER_ADMIN.value,
            )
            db.add(admin)

            db.add(RetentionConfig())

            business = Business(name="Demo Tours", contact_email="hello@demotours.example")
            db.add(business)
            await db.flush()

            owner = User(
                username="demo_business",
                email="owner@demotours.example",
                password_hash=hash_password("demo123"),
                full_name="Demo Tours Owner",
                role=Role.BUSINESS.value,
                business_id=business.id,
            )
            db.add(owner)

            db.add(Tour(
                name="Cenote Snorkel Adventure",
                location="Tulum, Quintana Roo",
                price=Decimal("1200.00"),
                capacity=12,
                category="tour",
                description="Half-day snorkel through three cenotes with a certified guide",
                duration="5 hours",
                departure_time="08:00",
                includes=["Transport", "Snorkel gear", "Lunch"],
                business_id=business.id,
            ))

            db.add(Coupon(
                code="WELCOME10",
                discount_type="percent",
                discount_value=Decimal("10"),
                expiration_date=datetime.utcnow() + timedelta(days=90),
                usage_limit=100,
                business_id=business.id,
            ))

            await db.commit()
            logger.info("Seed data created successfully!")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create seed data: {e}")
            raise


async def main():
    """Main setup function."""
    logger.info("Starting BookerOS setup...")

    # Alembic runs its own event loop for the async engine
    await asyncio.to_thread(run_migrations)
    await create_seed_data()
    await close_db()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn bookeros.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
