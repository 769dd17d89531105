from fastapi import APIRouter
from schemas.user_schema import UserCreate
from services.user_service import create_user, login_user, request_password_reset, reset_password_with_otp
from api.dependencies import payload_str
from utils.responses import no_store_json
from utils.timing import timeit

router = APIRouter(prefix="/api/users")

@router.post("", status_code=201)
@timeit()
async def register(user: UserCreate):
    return no_store_json(await create_user(user), status_code=201)

@router.post("/login")
@timeit()
async def login(payload: dict):
    email = payload_str(payload, "email")
    password = payload_str(payload, "password", strip=False)
    return no_store_json(await login_user(email, password))

@router.post("/forgot-password")
@timeit()
async def forgot_password(payload: dict):
    email = payload_str(payload, "email")
    return no_store_json(await request_password_reset(email))

@router.patch("/reset-password")
@timeit()
async def reset_password(payload: dict):
    email = payload_str(payload, "email")
    otp = payload_str(payload, "otp")
    password = payload_str(payload, "password", strip=False)
    confirm_password = payload_str(payload, "confirmPassword", strip=False)
    return no_store_json(await reset_password_with_otp(email, otp, password, confirm_password))
