import logging
import asyncio
from typing import Any, Dict, Optional
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
import certifi
from core.config import settings

logger = logging.getLogger(__name__)

_mongo_client: Optional[AsyncIOMotorClient] = None
_mongo_db: Optional[AsyncIOMotorDatabase] = None

# (collection, keys, options)
INDEXES = [
    ("users", "email", {"unique": True, "name": "u_email"}),
    ("users", "role", {"name": "i_role"}),
    ("bins", "qr_code", {"unique": True, "name": "u_qr_code"}),
    ("bins", [("user_id", 1), ("created_at", -1)], {"name": "i_user_created"}),
    ("collection_schedules", [("user_id", 1), ("scheduled_date", -1)], {"name": "i_user_date"}),
    ("collection_schedules", "bin_ids", {"name": "i_bins"}),
    ("special_collections", "date", {"name": "i_date"}),
    ("special_collections", "user_id", {"name": "i_sc_user"}),
]

def _client_kwargs(uri: str) -> Dict[str, Any]:
    kwargs = {
        "serverSelectionTimeoutMS": 30000,
        "connectTimeoutMS": 20000,
        "socketTimeoutMS": 20000,
    }
    # Atlas and other TLS endpoints get the certifi CA bundle
    if "mongodb.net" in uri or uri.startswith("mongodb+srv://"):
        kwargs.update({"tls": True, "tlsCAFile": certifi.where(), "retryWrites": True})
    if uri.startswith("mongodb+srv://"):
        kwargs["directConnection"] = False
    return kwargs

def get_mongo_db() -> Optional[AsyncIOMotorDatabase]:
    """Lazily connect; None when MONGO_URI is not configured."""
    global _mongo_client, _mongo_db
    if _mongo_db is not None:
        return _mongo_db
    if not settings.MONGO_URI:
        logger.warning("MONGO_URI is not set")
        return None
    _mongo_client = AsyncIOMotorClient(settings.MONGO_URI, **_client_kwargs(settings.MONGO_URI))
    _mongo_db = _mongo_client[settings.MONGO_DB]
    return _mongo_db

def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a path/body id; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None

async def init_mongo_indexes():
    db = get_mongo_db()
    if db is None:
        return
    # Retry to ride out primary election / networking delays at boot
    for attempt in range(1, 6):
        try:
            await db.command({"ping": 1})
            for collection, keys, options in INDEXES:
                await db[collection].create_index(keys, **options)
            return
        except Exception as e:
            wait_s = min(2 ** attempt, 15)
            logger.warning(f"Mongo not ready (attempt {attempt}): {e}; retrying in {wait_s}s")
            await asyncio.sleep(wait_s)
    logger.error("Mongo index initialization failed after retries")
