from typing import Optional
from fastapi import APIRouter, Depends
from schemas.user_schema import User as UserSchema
from schemas.collection_schema import CollectionUpdate
from api.dependencies import get_current_user, manager_required, ensure_self_or_manager
from services.collection_service import (
    create_collection,
    get_collections,
    get_collections_by_user,
    get_collection_summary,
    get_upcoming_collections,
    update_collection,
    delete_collection,
)
from utils.timing import timeit

router = APIRouter(prefix="/api/collections/regular")

@router.post("", status_code=201)
@timeit()
async def create(payload: dict, current_user: UserSchema = Depends(get_current_user)):
    return await create_collection(payload, current_user)

@router.get("")
@timeit()
async def list_all(current_user: UserSchema = Depends(manager_required)):
    return await get_collections()

@router.get("/user/{user_id}")
@timeit()
async def list_for_user(
    user_id: str,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    current_user: UserSchema = Depends(get_current_user),
):
    ensure_self_or_manager(current_user, user_id)
    return await get_collections_by_user(user_id, page, limit, status)

@router.get("/summary/{user_id}")
@timeit()
async def summary(user_id: str, current_user: UserSchema = Depends(get_current_user)):
    ensure_self_or_manager(current_user, user_id)
    return await get_collection_summary(user_id)

@router.get("/upcoming/{user_id}")
@timeit()
async def upcoming(user_id: str, current_user: UserSchema = Depends(get_current_user)):
    ensure_self_or_manager(current_user, user_id)
    return await get_upcoming_collections(user_id)

@router.put("/{schedule_id}")
@timeit()
async def update(schedule_id: str, data: CollectionUpdate, current_user: UserSchema = Depends(get_current_user)):
    return await update_collection(schedule_id, data, current_user)

@router.delete("/{schedule_id}")
@timeit()
async def delete(schedule_id: str, current_user: UserSchema = Depends(get_current_user)):
    return await delete_collection(schedule_id, current_user)
