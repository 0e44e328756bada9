"""
Application ID service.

Business rules:
- Every submission gets an application ID before anything is rendered.
- Format: YYYYMMDD-NNNN (4-digit zero-padded sequence, restarting each UTC day).
- Displayed on the PDF badge as APP-<id>.
- Concurrency-safe: atomic counter in MongoDB, one document per day.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo import ReturnDocument
from database import database

logger = logging.getLogger(__name__)

COUNTERS_COLLECTION = "counters"
APP_ID_COUNTER_PREFIX = "app_seq_"
APP_ID_FORMAT = "{day}-{seq:04d}"


def format_app_id(day: str, seq: int) -> str:
    return APP_ID_FORMAT.format(day=day, seq=seq)


async def get_next_app_id(now: Optional[datetime] = None) -> str:
    """
    Generate the next application ID using an atomic counter.
    Uses counters collection: { _id: "app_seq_YYYYMMDD", seq: N }.
    Returns YYYYMMDD-NNNN.
    """
    db = database.get_db()
    day = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")
    counter_id = f"{APP_ID_COUNTER_PREFIX}{day}"

    result = await db[COUNTERS_COLLECTION].find_one_and_update(
        {"_id": counter_id},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    seq = (result or {}).get("seq", 1)

    app_id = format_app_id(day, seq)
    logger.info(f"Assigned application ID {app_id}")
    return app_id
