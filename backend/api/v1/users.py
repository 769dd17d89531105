from fastapi import APIRouter, Depends, Response
from schemas.user_schema import User as UserSchema, UserUpdate, AdminUserCreate, AdminUserUpdate
from api.dependencies import get_current_user, manager_required, payload_str
from services.user_service import (
    get_user_profile,
    update_user_profile,
    change_password,
    delete_user,
    list_users,
    admin_create_user,
    admin_update_user,
)
from utils.responses import no_store_json
from utils.timing import timeit

router = APIRouter(prefix="/api/users")

@router.get("/me")
@timeit()
async def read_users_me(current_user: UserSchema = Depends(get_current_user)):
    return no_store_json(await get_user_profile(current_user.user_id))

@router.patch("/me")
@timeit()
async def update_me(data: UserUpdate, current_user: UserSchema = Depends(get_current_user)):
    return no_store_json(await update_user_profile(current_user.user_id, data))

@router.delete("/me", status_code=204)
@timeit()
async def delete_me(current_user: UserSchema = Depends(get_current_user)):
    await delete_user(current_user.user_id)
    return Response(status_code=204)

@router.patch("/update-password")
@timeit()
async def update_password(payload: dict, current_user: UserSchema = Depends(get_current_user)):
    return no_store_json(await change_password(
        current_user.user_id,
        payload_str(payload, "currentPassword", strip=False),
        payload_str(payload, "newPassword", strip=False),
        payload_str(payload, "confirmPassword", strip=False),
    ))

# --- Manager functions ---

@router.get("")
@timeit()
async def get_all_users(current_user: UserSchema = Depends(manager_required)):
    return no_store_json(await list_users())

@router.post("/admin", status_code=201)
@timeit()
async def create_user_by_manager(user: AdminUserCreate, current_user: UserSchema = Depends(manager_required)):
    return no_store_json(await admin_create_user(user), status_code=201)

@router.patch("/{user_id}")
@timeit()
async def update_user_by_manager(user_id: str, data: AdminUserUpdate, current_user: UserSchema = Depends(manager_required)):
    return no_store_json(await admin_update_user(user_id, data))

@router.delete("/{user_id}", status_code=204)
@timeit()
async def delete_user_by_manager(user_id: str, current_user: UserSchema = Depends(manager_required)):
    await delete_user(user_id)
    return Response(status_code=204)
