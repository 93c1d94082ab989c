"""
MongoDB access.

The Motor client is created by the application lifespan (see server.py) and
kept on ``app.state``. Handlers receive the database through ``get_db``.
"""
import logging

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from config import Settings

logger = logging.getLogger(__name__)


def create_client(settings: Settings) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(settings.mongo_url, tz_aware=True)


def get_db(request: Request) -> AsyncIOMotorDatabase:
    """FastAPI dependency returning the database owned by the running app."""
    return request.app.state.db


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the unique and query indexes used by the routers."""
    await db.blood_units.create_index("id", unique=True)
    await db.blood_units.create_index("unit_id", unique=True)
    await db.blood_units.create_index([("blood_type", ASCENDING), ("status", ASCENDING)])
    await db.blood_units.create_index("expiration_date")
    await db.blood_units.create_index("donor_id")
    await db.blood_units.create_index([("location.facility", ASCENDING), ("location.storage_unit", ASCENDING)])

    await db.donors.create_index("id", unique=True)
    await db.donors.create_index("donor_id", unique=True)
    await db.donors.create_index("email", unique=True)
    await db.donors.create_index([("last_name", ASCENDING), ("first_name", ASCENDING)])

    await db.users.create_index("id", unique=True)
    await db.users.create_index("email", unique=True)

    await db.storage_units.create_index("id", unique=True)
    await db.storage_units.create_index("storage_unit_id", unique=True)
    await db.storage_logs.create_index([("storage_unit_id", ASCENDING), ("facility_id", ASCENDING)], unique=True)

    await db.reports.create_index("report_id", unique=True)
    await db.audit_logs.create_index([("timestamp", DESCENDING)])

    logger.info("MongoDB indexes ensured on %s", db.name)
