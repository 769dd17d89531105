from typing import Optional
from fastapi import APIRouter, Depends
from schemas.user_schema import User as UserSchema
from api.dependencies import get_current_user, manager_required, ensure_self_or_manager
from services.special_collection_service import check_availability, create_schedule, get_all_schedules, get_my_schedules
from utils.timing import timeit

router = APIRouter(prefix="/api/collections")

@router.get("/availability")
@timeit()
async def availability(date: Optional[str] = None):
    return await check_availability(date)

@router.post("", status_code=201)
@timeit()
async def create_special_collection(payload: dict, current_user: UserSchema = Depends(get_current_user)):
    return await create_schedule(current_user, payload)

@router.get("/all")
@timeit()
async def all_special_collections(current_user: UserSchema = Depends(manager_required)):
    return await get_all_schedules()

@router.get("/my-schedules/{user_id}")
@timeit()
async def my_special_collections(user_id: str, current_user: UserSchema = Depends(get_current_user)):
    ensure_self_or_manager(current_user, user_id)
    return await get_my_schedules(user_id)
