import math
from collections import Counter
from datetime import datetime
from typing import List, Optional
from fastapi import HTTPException
from pymongo import ReturnDocument
from config import config
from db.mongodb import get_mongo_db, to_object_id
from schemas.collection_schema import CollectionUpdate
from schemas.user_schema import User
from services.special_collection_service import parse_utc_datetime
from utils.errors import ValidationError, NotFoundError, InternalError, PermissionDeniedError
from utils.responses import serialize_doc
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)

STATUSES = ("scheduled", "in-progress", "completed", "rejected", "cancelled")
BIN_SUMMARY_FIELDS = {"bin_name": 1, "bin_type": 1, "capacity": 1, "location": 1}

def _db():
    mdb = get_mongo_db()
    if mdb is None:
        raise InternalError("Database not available")
    return mdb

async def populate_bins(schedules: List[dict], fields: Optional[dict] = None) -> List[dict]:
    """Attach the referenced bin documents to each schedule under "bins"."""
    bin_ids = list({bid for s in schedules for bid in s.get("bin_ids", [])})
    if bin_ids:
        bins = await _db().bins.find({"_id": {"$in": bin_ids}}, fields or BIN_SUMMARY_FIELDS).to_list(length=None)
    else:
        bins = []
    by_id = {b["_id"]: b for b in bins}
    for s in schedules:
        s["bins"] = [by_id[bid] for bid in s.get("bin_ids", []) if bid in by_id]
    return schedules

@timeit("create_collection")
async def create_collection(payload: dict, current_user: User):
    user_id = payload.get("userId") or current_user.user_id
    bin_ids = payload.get("binIds")
    scheduled_date = payload.get("scheduledDate")
    time_slot = payload.get("timeSlot")
    if not user_id or not bin_ids or not scheduled_date or not time_slot:
        raise ValidationError("Please provide all required fields: userId, binIds, scheduledDate, timeSlot")
    if not isinstance(bin_ids, list):
        raise ValidationError("binIds must be a non-empty array")
    if not current_user.owns_or_manages(user_id):
        raise PermissionDeniedError()
    collection_type = payload.get("collectionType") or "regular"
    if collection_type not in ("regular", "special"):
        raise ValidationError("collectionType must be 'regular' or 'special'")

    user_oid = to_object_id(user_id)
    bin_oids = [to_object_id(b) for b in bin_ids]
    if user_oid is None or any(b is None for b in bin_oids):
        raise ValidationError("One or more bins not found or do not belong to the user")
    bin_oids = list(dict.fromkeys(bin_oids))
    when = parse_utc_datetime(scheduled_date)

    try:
        mdb = _db()
        owned = await mdb.bins.count_documents({"_id": {"$in": bin_oids}, "user_id": user_oid})
        if owned != len(bin_oids):
            raise ValidationError("One or more bins not found or do not belong to the user")

        now = datetime.utcnow()
        doc = {
            "user_id": user_oid,
            "collector_id": None,
            "bin_ids": bin_oids,
            "scheduled_date": when,
            "time_slot": time_slot,
            "collection_type": collection_type,
            "status": "scheduled",
            "waste_level": 0,
            "notes": None,
            "collected_at": None,
            "rejected_reason": None,
            "created_at": now,
            "updated_at": now,
        }
        result = await mdb.collection_schedules.insert_one(doc)
        doc["_id"] = result.inserted_id
        await populate_bins([doc])
        logger.info(f"Scheduled collection {doc['_id']} for user {user_id} on {when.date()}")
        return {"success": True, "data": serialize_doc(doc)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating collection: {e}")
        raise InternalError("Error creating collection schedule")

async def get_collections():
    try:
        mdb = _db()
        schedules = await mdb.collection_schedules.find({}).sort([("scheduled_date", -1)]).to_list(length=None)
        await populate_bins(schedules)
        owner_ids = list({s["user_id"] for s in schedules if s.get("user_id")})
        owners = await mdb.users.find({"_id": {"$in": owner_ids}}, {"email": 1, "name": 1}).to_list(length=None)
        by_id = {o["_id"]: o for o in owners}
        for s in schedules:
            s["user"] = by_id.get(s.get("user_id"))
        return {"success": True, "data": serialize_doc(schedules)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting collections: {e}")
        raise InternalError("Server Error")

async def get_collections_by_user(user_id: str, page: int = 1, limit: int = 20, status: Optional[str] = None):
    pagination_cfg = config.get_pagination_config()
    page = max(int(page or pagination_cfg.get("default_page", 1)), 1)
    limit = min(max(int(limit or pagination_cfg.get("default_limit", 20)), 1), int(pagination_cfg.get("max_limit", 100)))
    query = {"user_id": to_object_id(user_id)}
    if status:
        query["status"] = status
    try:
        mdb = _db()
        schedules = await (
            mdb.collection_schedules.find(query)
            .sort([("scheduled_date", -1)])
            .skip((page - 1) * limit)
            .limit(limit)
            .to_list(length=None)
        )
        await populate_bins(schedules)
        total = await mdb.collection_schedules.count_documents(query)
        return {
            "success": True,
            "data": serialize_doc(schedules),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting user collections: {e}")
        raise InternalError("Server Error")

@timeit("get_collection_summary")
async def get_collection_summary(user_id: str):
    try:
        schedules = await _db().collection_schedules.find({"user_id": to_object_id(user_id)}).to_list(length=None)
        await populate_bins(schedules, {"bin_type": 1, "capacity": 1, "bin_name": 1})
        now = datetime.utcnow()
        by_status = Counter(s.get("status") for s in schedules)

        by_bin_type = Counter()
        for s in schedules:
            missing = len(s.get("bin_ids", [])) - len(s["bins"])
            by_bin_type.update(b.get("bin_type") or "unknown" for b in s["bins"])
            if missing:
                by_bin_type["unknown"] += missing

        recent_limit = int(config.get("collections.recent_activity_limit", 5))
        recent = sorted(schedules, key=lambda s: s.get("updated_at") or datetime.min, reverse=True)[:recent_limit]
        return {
            "success": True,
            "data": {
                "totalCollections": len(schedules),
                "completed": by_status["completed"],
                "pending": by_status["scheduled"],
                "inProgress": by_status["in-progress"],
                "rejected": by_status["rejected"],
                "cancelled": by_status["cancelled"],
                "upcoming": sum(
                    1 for s in schedules
                    if s.get("status") == "scheduled" and s.get("scheduled_date") and s["scheduled_date"] > now
                ),
                "byBinType": dict(by_bin_type),
                "recentActivity": serialize_doc(recent),
            },
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting collection summary: {e}")
        raise InternalError("Server Error")

async def get_upcoming_collections(user_id: str):
    try:
        schedules = await (
            _db().collection_schedules.find({
                "user_id": to_object_id(user_id),
                "status": "scheduled",
                "scheduled_date": {"$gte": datetime.utcnow()},
            })
            .sort([("scheduled_date", 1)])
            .limit(int(config.get("collections.upcoming_limit", 5)))
            .to_list(length=None)
        )
        await populate_bins(schedules)
        return {"success": True, "data": serialize_doc(schedules)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting upcoming collections: {e}")
        raise InternalError("Server Error")

async def get_schedule_or_404(schedule_id: str) -> dict:
    oid = to_object_id(schedule_id)
    doc = await _db().collection_schedules.find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFoundError("Collection schedule not found")
    return doc

async def update_collection(schedule_id: str, data: CollectionUpdate, current_user: User):
    try:
        existing = await get_schedule_or_404(schedule_id)
        if not current_user.owns_or_manages(existing.get("user_id")):
            raise PermissionDeniedError()

        update = data.model_dump(exclude_none=True)
        if "collector_id" in update:
            collector_oid = to_object_id(update["collector_id"])
            if collector_oid is None:
                raise ValidationError("Invalid collector id")
            update["collector_id"] = collector_oid
        if update.get("status") == "completed" and existing.get("status") != "completed":
            update["collected_at"] = datetime.utcnow()
        update["updated_at"] = datetime.utcnow()

        updated = await _db().collection_schedules.find_one_and_update(
            {"_id": existing["_id"]}, {"$set": update}, return_document=ReturnDocument.AFTER
        )
        if not updated:
            raise NotFoundError("Collection schedule not found")
        await populate_bins([updated])
        return {"success": True, "data": serialize_doc(updated)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating collection {schedule_id}: {e}")
        raise InternalError("Error updating collection")

async def delete_collection(schedule_id: str, current_user: User):
    try:
        existing = await get_schedule_or_404(schedule_id)
        if not current_user.owns_or_manages(existing.get("user_id")):
            raise PermissionDeniedError()
        await _db().collection_schedules.delete_one({"_id": existing["_id"]})
        return {"success": True, "message": "Collection schedule removed successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting collection {schedule_id}: {e}")
        raise InternalError("Server Error")
