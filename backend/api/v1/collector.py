from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from schemas.user_schema import User as UserSchema
from api.dependencies import collector_required, payload_str
from services.collector_service import get_today_schedules, verify_bin_and_schedule, complete_collection, reject_collection
from utils.timing import timeit

router = APIRouter(prefix="/api/collector")

@router.get("/schedules")
@timeit()
async def today_schedules(current_user: UserSchema = Depends(collector_required)):
    return await get_today_schedules()

@router.post("/verify-bin")
@timeit()
async def verify_bin(payload: dict, current_user: UserSchema = Depends(collector_required)):
    result = await verify_bin_and_schedule(payload_str(payload, "qrCode"))
    return JSONResponse(content=result, status_code=200 if result["verified"] else 404)

@router.put("/complete-collection")
@timeit()
async def complete(payload: dict, current_user: UserSchema = Depends(collector_required)):
    return await complete_collection(
        payload.get("scheduleId"), payload.get("wasteLevel"), payload.get("notes"), current_user
    )

@router.put("/reject-collection")
@timeit()
async def reject(payload: dict, current_user: UserSchema = Depends(collector_required)):
    return await reject_collection(payload.get("scheduleId"), payload.get("reason"), current_user)
