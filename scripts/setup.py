#!/usr/bin/env python3
"""Setup script for the tour reservation core: migrate, then seed a small catalogue."""

import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from booking_core.core.database import async_session_factory, close_db, utcnow
from booking_core.models import TourPackage, TripType
from booking_core.services.catalog_service import CatalogService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def setup_database():
    """Bring the schema up to the latest revision."""
    logger.info("Running database migrations...")

    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")

    logger.info("Database migrations completed")


async def create_sample_data():
    """Create one open trip and one private trip, each with a few departures."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing = (await db.execute(select(func.count()).select_from(TourPackage))).scalar_one()
        if existing > 0:
            logger.info("Sample data already exists, skipping...")
            return

        catalog = CatalogService(db)
        base_date = utcnow().replace(hour=6, minute=0, second=0, microsecond=0) + timedelta(days=30)

        bromo = await catalog.create_package(
            title="Bromo Sunrise Open Trip",
            slug="bromo-sunrise-open-trip",
            trip_type=TripType.OPEN_TRIP,
        )
        for week in range(4):
            await catalog.create_departure(
                package_id=bromo.id,
                departure_date=base_date + timedelta(days=week * 7),
                price_per_person=350_000,
                max_participants=15,
            )

        komodo = await catalog.create_package(
            title="Komodo Private Sailing",
            slug="komodo-private-sailing",
            trip_type=TripType.PRIVATE_TRIP,
        )
        for week in range(2):
            departure = await catalog.create_departure(
                package_id=komodo.id,
                departure_date=base_date + timedelta(days=week * 14),
            )
            for group_number, (price, size) in enumerate([(12_000_000, 6), (18_000_000, 10)], start=1):
                await catalog.add_group(
                    departure_id=departure.id,
                    group_number=group_number,
                    price=price,
                    max_participants=size,
                )

    logger.info("Sample data created successfully!")


async def seed():
    try:
        await create_sample_data()
    finally:
        await close_db()


def main():
    """Main setup function."""
    logger.info("Starting tour reservation core setup...")

    # Alembic's env drives its own event loop, so migrate before seeding
    setup_database()
    asyncio.run(seed())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn booking_core.main:app --reload")


if __name__ == "__main__":
    main()
