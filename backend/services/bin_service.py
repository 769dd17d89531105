from collections import Counter
from datetime import datetime
from fastapi import HTTPException
from pymongo import ReturnDocument
from db.mongodb import get_mongo_db, to_object_id
from schemas.bin_schema import BinCreate, BinUpdate
from schemas.user_schema import User
from utils.errors import NotFoundError, InternalError, PermissionDeniedError
from utils.qr import generate_bin_code, qr_data_url
from utils.responses import serialize_doc
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)

def _db():
    mdb = get_mongo_db()
    if mdb is None:
        raise InternalError("Database not available")
    return mdb

async def _get_owned_bin(bin_id: str, current_user: User) -> dict:
    oid = to_object_id(bin_id)
    doc = await _db().bins.find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFoundError("Bin not found")
    if not current_user.owns_or_manages(doc.get("user_id")):
        raise PermissionDeniedError()
    return doc

@timeit("create_bin")
async def create_bin(data: BinCreate, current_user: User):
    owner_id = data.user_id or current_user.user_id
    if owner_id != current_user.user_id and current_user.role != "manager":
        raise PermissionDeniedError()
    try:
        mdb = _db()
        owner_oid = to_object_id(owner_id)
        if owner_oid is None or not await mdb.users.find_one({"_id": owner_oid}, {"_id": 1}):
            raise NotFoundError("User not found")

        now = datetime.utcnow()
        doc = {
            "qr_code": generate_bin_code(),
            "user_id": owner_oid,
            "location": data.location.model_dump(),
            "bin_type": data.bin_type,
            "capacity": data.capacity,
            "bin_name": data.bin_name or f"{data.bin_type} Bin",
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        result = await mdb.bins.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info(f"Created bin {doc['_id']} ({doc['qr_code']}) for user {owner_id}")
        return {**serialize_doc(doc), "qrCodeImage": qr_data_url(doc["qr_code"])}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating bin: {e}")
        raise InternalError("Error creating bin")

async def get_bins():
    """All bins with owner email, newest first (managers)."""
    try:
        mdb = _db()
        bins = await mdb.bins.find({}).sort([("created_at", -1)]).to_list(length=None)
        owner_ids = list({b["user_id"] for b in bins if b.get("user_id")})
        owners = await mdb.users.find({"_id": {"$in": owner_ids}}, {"email": 1, "name": 1}).to_list(length=None)
        by_id = {o["_id"]: o for o in owners}
        for b in bins:
            b["user"] = by_id.get(b.get("user_id"))
        return serialize_doc(bins)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing bins: {e}")
        raise InternalError("Server Error")

async def _bins_for_user(user_id: str) -> list:
    oid = to_object_id(user_id)
    if oid is None:
        return []
    return await _db().bins.find({"user_id": oid}).sort([("created_at", -1)]).to_list(length=None)

async def get_bins_by_user(user_id: str):
    try:
        bins = await _bins_for_user(user_id)
        return {"count": len(bins), "bins": serialize_doc(bins)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing bins for {user_id}: {e}")
        raise InternalError("Server Error")

@timeit("get_user_bin_stats")
async def get_user_bin_stats(user_id: str):
    """Counts by type, active/inactive split and summed capacity for one user's bins."""
    try:
        bins = await _bins_for_user(user_id)
        active = sum(1 for b in bins if b.get("is_active", True))
        return {
            "totalBins": len(bins),
            "activeBins": active,
            "inactiveBins": len(bins) - active,
            "binTypeStats": dict(Counter(b.get("bin_type") for b in bins)),
            "totalCapacity": sum(b.get("capacity", 0) for b in bins),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error computing bin stats for {user_id}: {e}")
        raise InternalError("Server Error")

async def get_bin_by_id(bin_id: str, current_user: User):
    try:
        doc = await _get_owned_bin(bin_id, current_user)
        return {**serialize_doc(doc), "qrCodeImage": qr_data_url(doc["qr_code"])}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching bin {bin_id}: {e}")
        raise InternalError("Server Error")

async def get_bin_qr_code(bin_id: str, current_user: User):
    try:
        doc = await _get_owned_bin(bin_id, current_user)
        return {
            "qrCode": doc["qr_code"],
            "qrCodeImage": qr_data_url(doc["qr_code"]),
            "binDetails": serialize_doc({
                "id": doc["_id"],
                "bin_name": doc.get("bin_name"),
                "type": doc.get("bin_type"),
                "capacity": doc.get("capacity"),
                "location": doc.get("location"),
                "user": doc.get("user_id"),
            }),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generating QR code for bin {bin_id}: {e}")
        raise InternalError("Error generating QR code")

async def update_bin(bin_id: str, data: BinUpdate, current_user: User):
    try:
        doc = await _get_owned_bin(bin_id, current_user)
        update = data.model_dump(exclude_none=True)
        update["updated_at"] = datetime.utcnow()
        updated = await _db().bins.find_one_and_update(
            {"_id": doc["_id"]}, {"$set": update}, return_document=ReturnDocument.AFTER
        )
        if not updated:
            raise NotFoundError("Bin not found")
        return serialize_doc(updated)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating bin {bin_id}: {e}")
        raise InternalError("Error updating bin")

async def delete_bin(bin_id: str, current_user: User):
    try:
        doc = await _get_owned_bin(bin_id, current_user)
        await _db().bins.delete_one({"_id": doc["_id"]})
        logger.info(f"Deleted bin {bin_id}")
        return {"message": "Bin removed successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting bin {bin_id}: {e}")
        raise InternalError("Server Error")
