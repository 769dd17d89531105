from fastapi import APIRouter, Depends
from schemas.user_schema import User as UserSchema
from schemas.bin_schema import BinCreate, BinUpdate
from api.dependencies import get_current_user, manager_required, ensure_self_or_manager
from services.bin_service import (
    create_bin,
    get_bins,
    get_bins_by_user,
    get_user_bin_stats,
    get_bin_by_id,
    get_bin_qr_code,
    update_bin,
    delete_bin,
)
from utils.timing import timeit

router = APIRouter(prefix="/api/bins")

@router.post("", status_code=201)
@timeit()
async def create(data: BinCreate, current_user: UserSchema = Depends(get_current_user)):
    return await create_bin(data, current_user)

@router.get("")
@timeit()
async def list_all(current_user: UserSchema = Depends(manager_required)):
    return await get_bins()

@router.get("/user/{user_id}")
@timeit()
async def list_for_user(user_id: str, current_user: UserSchema = Depends(get_current_user)):
    ensure_self_or_manager(current_user, user_id)
    return await get_bins_by_user(user_id)

@router.get("/user/{user_id}/stats")
@timeit()
async def stats_for_user(user_id: str, current_user: UserSchema = Depends(get_current_user)):
    ensure_self_or_manager(current_user, user_id)
    return await get_user_bin_stats(user_id)

@router.get("/{bin_id}")
@timeit()
async def get_one(bin_id: str, current_user: UserSchema = Depends(get_current_user)):
    return await get_bin_by_id(bin_id, current_user)

@router.get("/{bin_id}/qrcode")
@timeit()
async def qr_code(bin_id: str, current_user: UserSchema = Depends(get_current_user)):
    return await get_bin_qr_code(bin_id, current_user)

@router.put("/{bin_id}")
@timeit()
async def update(bin_id: str, data: BinUpdate, current_user: UserSchema = Depends(get_current_user)):
    return await update_bin(bin_id, data, current_user)

@router.delete("/{bin_id}")
@timeit()
async def delete(bin_id: str, current_user: UserSchema = Depends(get_current_user)):
    return await delete_bin(bin_id, current_user)
