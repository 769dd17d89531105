from fastapi import APIRouter, Depends
from schemas.user_schema import User as UserSchema
from api.dependencies import get_current_user
from services.payment_service import create_payment_intent
from utils.timing import timeit

router = APIRouter(prefix="/api/payments")

@router.post("/create-payment-intent")
@timeit()
async def payment_intent(payload: dict, current_user: UserSchema = Depends(get_current_user)):
    return await create_payment_intent(payload.get("amount"))
