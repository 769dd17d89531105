import math
from datetime import datetime, timedelta
from fastapi import HTTPException
from pymongo import ReturnDocument
from db.mongodb import get_mongo_db, to_object_id
from schemas.user_schema import User
from services.collection_service import populate_bins, get_schedule_or_404
from utils.errors import ValidationError, NotFoundError, InternalError
from utils.responses import serialize_doc
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ["scheduled", "in-progress"]
COLLECTOR_BIN_FIELDS = {"bin_name": 1, "bin_type": 1, "capacity": 1, "location": 1, "qr_code": 1}

def _db():
    mdb = get_mongo_db()
    if mdb is None:
        raise InternalError("Database not available")
    return mdb

def _today_range():
    start = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)

async def _attach_owners(schedules):
    owner_ids = list({s["user_id"] for s in schedules if s.get("user_id")})
    owners = await _db().users.find({"_id": {"$in": owner_ids}}, {"email": 1, "name": 1}).to_list(length=None)
    by_id = {o["_id"]: o for o in owners}
    for s in schedules:
        s["user"] = by_id.get(s.get("user_id"))
    return schedules

@timeit("get_today_schedules")
async def get_today_schedules():
    start, end = _today_range()
    try:
        schedules = await (
            _db().collection_schedules.find({"scheduled_date": {"$gte": start, "$lt": end}})
            .sort([("time_slot", 1)])
            .to_list(length=None)
        )
        await populate_bins(schedules, COLLECTOR_BIN_FIELDS)
        await _attach_owners(schedules)
        return {"success": True, "data": serialize_doc(schedules), "count": len(schedules)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting today schedules: {e}")
        raise InternalError("Server Error")

@timeit("verify_bin")
async def verify_bin_and_schedule(qr_code: str) -> dict:
    """Match a scanned bin to today's active schedule.

    Returns a body with "verified" False when the bin exists but has nothing
    scheduled today; the route reports that as 404.
    """
    if not qr_code:
        raise ValidationError("qrCode is required")
    try:
        mdb = _db()
        bin_doc = await mdb.bins.find_one({"qr_code": qr_code})
        if not bin_doc:
            raise NotFoundError("Bin not found with this QR code")
        owner = await mdb.users.find_one({"_id": bin_doc.get("user_id")}, {"email": 1, "name": 1})

        start, end = _today_range()
        schedule = await mdb.collection_schedules.find_one({
            "bin_ids": bin_doc["_id"],
            "scheduled_date": {"$gte": start, "$lt": end},
            "status": {"$in": ACTIVE_STATUSES},
        })
        if not schedule:
            return {
                "success": False,
                "verified": False,
                "message": "No active schedule found for this bin today",
            }
        await populate_bins([schedule])
        schedule["user"] = owner
        return {
            "success": True,
            "verified": True,
            "schedule": serialize_doc(schedule),
            "bin": serialize_doc(bin_doc),
            "user": serialize_doc(owner),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error verifying bin: {e}")
        raise InternalError("Server Error")

async def _finish(schedule: dict, update: dict, collector: User) -> dict:
    now = datetime.utcnow()
    update.update({
        "collected_at": now,
        "collector_id": to_object_id(collector.user_id),
        "updated_at": now,
    })
    updated = await _db().collection_schedules.find_one_and_update(
        {"_id": schedule["_id"]}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise NotFoundError("Schedule not found")
    await populate_bins([updated])
    return serialize_doc(updated)

@timeit("complete_collection")
async def complete_collection(schedule_id: str, waste_level, notes, collector: User):
    try:
        schedule = await get_schedule_or_404(schedule_id)
        try:
            level = float(waste_level)
        except (TypeError, ValueError):
            raise ValidationError("Waste level must be between 0 and 100")
        if not math.isfinite(level) or level < 0 or level > 100:
            raise ValidationError("Waste level must be between 0 and 100")
        data = await _finish(schedule, {"status": "completed", "waste_level": level, "notes": notes}, collector)
        logger.info(f"Collection {schedule_id} completed by {collector.user_id}")
        return {"success": True, "message": "Collection completed successfully", "data": data}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error completing collection: {e}")
        raise InternalError("Server Error")

@timeit("reject_collection")
async def reject_collection(schedule_id: str, reason, collector: User):
    try:
        schedule = await get_schedule_or_404(schedule_id)
        if not reason or not str(reason).strip():
            raise ValidationError("Rejection reason is required")
        data = await _finish(schedule, {"status": "rejected", "rejected_reason": str(reason).strip()}, collector)
        logger.info(f"Collection {schedule_id} rejected by {collector.user_id}")
        return {"success": True, "message": "Collection rejected successfully", "data": data}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error rejecting collection: {e}")
        raise InternalError("Server Error")
