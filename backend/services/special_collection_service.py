from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from fastapi import HTTPException
from config import config
from db.mongodb import get_mongo_db, to_object_id
from schemas.user_schema import User
from utils.errors import ValidationError, InternalError
from utils.responses import serialize_doc
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)

REQUIRED_BOOKING_FIELDS = ("date", "timeSlot", "wasteType", "location", "weight", "totalAmount")

def _collection():
    mdb = get_mongo_db()
    if mdb is None:
        raise InternalError("Database not available")
    return mdb.special_collections

def parse_utc_datetime(value: str) -> datetime:
    """Parse an ISO date or datetime into a naive UTC datetime."""
    try:
        parsed = datetime.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError("Invalid date")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed

def day_bounds(value: str):
    """Inclusive [start, end] of the UTC calendar day containing value."""
    parsed = parse_utc_datetime(value)
    start = datetime(parsed.year, parsed.month, parsed.day)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start, end

@timeit("check_availability")
async def check_availability(date: Optional[str]) -> List[str]:
    """Slots on the given day whose booking count is still under the limit.

    Advisory only: nothing is reserved, and bookings are not re-checked
    against the limit when they are written.
    """
    if not date:
        raise ValidationError("Date is required")
    start, end = day_bounds(date)
    try:
        bookings = await _collection().find(
            {"date": {"$gte": start, "$lte": end}}, {"time_slot": 1}
        ).to_list(length=None)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error checking availability for {date}: {e}")
        raise InternalError("Server Error")

    per_slot = Counter(b.get("time_slot") for b in bookings)
    limit = config.get_slot_limit()
    return [slot for slot in config.get_time_slots() if per_slot[slot] < limit]

def _validate_location(location) -> dict:
    if not isinstance(location, dict):
        raise ValidationError("Location must include latitude and longitude")
    try:
        return {"latitude": float(location["latitude"]), "longitude": float(location["longitude"])}
    except (KeyError, TypeError, ValueError):
        raise ValidationError("Location must include latitude and longitude")

@timeit("create_special_collection")
async def create_schedule(current_user: User, payload: dict):
    if any(payload.get(field) in (None, "") for field in REQUIRED_BOOKING_FIELDS):
        raise ValidationError("Please provide all required fields")
    time_slot = payload["timeSlot"]
    if time_slot not in config.get_time_slots():
        raise ValidationError("Invalid time slot")
    try:
        weight = float(payload["weight"])
        total_amount = float(payload["totalAmount"])
    except (TypeError, ValueError):
        raise ValidationError("Weight and total amount must be numbers")

    now = datetime.utcnow()
    doc = {
        "user_id": to_object_id(current_user.user_id),
        "date": parse_utc_datetime(payload["date"]),
        "time_slot": time_slot,
        "waste_type": payload["wasteType"],
        "location": _validate_location(payload["location"]),
        "remarks": payload.get("remarks"),
        "weight": weight,
        "total_amount": total_amount,
        "payment_status": payload.get("paymentStatus") or "Paid",
        "status": "Pending",
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await _collection().insert_one(doc)
    except Exception as e:
        logger.error(f"Error creating special collection: {e}")
        raise InternalError("Failed to create schedule")
    doc["_id"] = result.inserted_id
    logger.info(f"Special collection {doc['_id']} booked for {doc['date'].date()} {time_slot}")
    return serialize_doc(doc)

async def get_all_schedules():
    """All bookings, newest first, with the owner's email attached."""
    try:
        mdb = get_mongo_db()
        if mdb is None:
            raise InternalError("Database not available")
        schedules = await mdb.special_collections.find({}).sort([("date", -1)]).to_list(length=None)
        owner_ids = list({s["user_id"] for s in schedules if s.get("user_id")})
        owners = await mdb.users.find({"_id": {"$in": owner_ids}}, {"email": 1}).to_list(length=None)
        by_id = {o["_id"]: o for o in owners}
        for s in schedules:
            s["user"] = by_id.get(s.get("user_id"))
        return serialize_doc(schedules)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing special collections: {e}")
        raise InternalError("Server Error")

async def get_my_schedules(user_id: str):
    oid = to_object_id(user_id)
    if oid is None:
        return []
    try:
        schedules = await _collection().find({"user_id": oid}).sort([("date", -1)]).to_list(length=None)
        return serialize_doc(schedules)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing special collections for {user_id}: {e}")
        raise InternalError("Server Error")
