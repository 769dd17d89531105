from schemas.user_schema import UserCreate, UserUpdate, AdminUserCreate, AdminUserUpdate
from core.security import get_password_hash, verify_password, create_access_token, generate_otp, hash_otp
from db.mongodb import get_mongo_db, to_object_id
from config import config
from fastapi import HTTPException
from starlette.concurrency import run_in_threadpool
from datetime import timedelta, datetime
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from utils.timing import timeit
from utils.email import send_password_reset_email, send_welcome_email, send_account_creation_email
from utils.errors import (
    ValidationError,
    InvalidOrExpiredError,
    AuthenticationError,
    NotFoundError,
    InternalError,
)
from utils.responses import serialize_doc
import logging

logger = logging.getLogger(__name__)

# Never leave the users collection
PRIVATE_USER_FIELDS = ("hashed_password", "password_reset_otp_hash", "password_reset_expires_at")

def normalize_email(email: str) -> str:
    return (email or "").strip().lower()

def _users():
    mongo = get_mongo_db()
    if mongo is None:
        raise InternalError("Database not available")
    return mongo.users

def public_user(doc: dict) -> dict:
    return serialize_doc({k: v for k, v in doc.items() if k not in PRIVATE_USER_FIELDS})

def issue_token(doc: dict) -> str:
    return create_access_token(
        data={"sub": str(doc["_id"]), "email": doc.get("email"), "role": doc.get("role", "user")}
    )

def _token_response(doc: dict) -> dict:
    return {
        "status": "success",
        "token": issue_token(doc),
        "data": {"user": public_user(doc)},
    }

async def _insert_user(user: UserCreate, role: str) -> dict:
    users = _users()
    email = normalize_email(user.email)
    if await users.find_one({"email": email}):
        raise ValidationError("Email already registered")
    now = datetime.utcnow()
    doc = {
        "name": user.name,
        "email": email,
        "hashed_password": get_password_hash(user.password),
        "role": role,
        "status": "active",
        "household_members": user.household_members,
        "address": user.address,
        "city": user.city,
        "password_changed_at": now,
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await users.insert_one(doc)
    except DuplicateKeyError:
        raise ValidationError("Email already registered")
    doc["_id"] = result.inserted_id
    return doc

@timeit("create_user")
async def create_user(user: UserCreate):
    """Self-registration; the account always gets the plain user role."""
    try:
        doc = await _insert_user(user, "user")
        if not await run_in_threadpool(send_welcome_email, doc["email"], doc.get("name")):
            # Registration still succeeds without the welcome mail
            logger.warning(f"Welcome email not sent to {doc['email']}")
        return _token_response(doc)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating user: {e}")
        raise InternalError()

async def admin_create_user(user: AdminUserCreate):
    try:
        doc = await _insert_user(user, user.role)
        if not await run_in_threadpool(send_account_creation_email, doc["email"], doc.get("name"), user.password):
            logger.warning(f"Account creation email not sent to {doc['email']}")
        return {"status": "success", "data": {"user": public_user(doc)}}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating user as manager: {e}")
        raise InternalError()

async def login_user(email: str, password: str):
    """Login user and return a bearer token"""
    if not email or not password:
        raise ValidationError("Please provide email and password!")
    try:
        user = await _users().find_one({"email": normalize_email(email)})
        if not user or not verify_password(password, user.get("hashed_password", "")):
            raise AuthenticationError("Incorrect email or password")
        if user.get("status", "active") != "active":
            raise AuthenticationError("Your account is inactive. Please contact an administrator.")
        return _token_response(user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error logging in user: {e}")
        raise InternalError("Something went wrong!")


@timeit("request_password_reset")
async def request_password_reset(email: str):
    """Generate an OTP for password reset and send it via email.

    Only the digest and expiry are stored. They are persisted before delivery
    and cleared again when delivery fails.
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email is required")
    users = _users()
    try:
        user = await users.find_one({"email": email}, {"_id": 1, "email": 1})
    except Exception as e:
        logger.error(f"Error looking up user for password reset: {e}")
        raise InternalError()
    if not user:
        raise NotFoundError("There is no user with that email address.")

    otp_code = generate_otp()
    expires_at = datetime.utcnow() + timedelta(minutes=config.get_otp_expires_minutes())
    try:
        digest = hash_otp(otp_code)
        await users.update_one(
            {"_id": user["_id"]},
            {"$set": {"password_reset_otp_hash": digest, "password_reset_expires_at": expires_at}},
        )
    except Exception as e:
        logger.error(f"Error storing password reset OTP for {email}: {e}")
        raise InternalError()

    if not await run_in_threadpool(send_password_reset_email, email, otp_code):
        # Only this request's code; a newer one issued meanwhile stays redeemable
        try:
            await users.update_one(
                {"_id": user["_id"], "password_reset_otp_hash": digest},
                {"$unset": {"password_reset_otp_hash": "", "password_reset_expires_at": ""}},
            )
        except Exception as e:
            logger.error(f"Error clearing undeliverable OTP for {email}: {e}")
        raise InternalError("There was an error sending the email. Please try again later.")

    logger.info(f"Password reset OTP issued for user {user['_id']}")
    return {"status": "success", "message": "OTP sent to your email address!"}


@timeit("reset_password_with_otp")
async def reset_password_with_otp(email: str, otp_code: str, new_password: str, confirm_password: str):
    """Verify the OTP, set the new password and log the user in.

    Wrong code, expired code and unknown email all raise the same error.
    A confirmation mismatch leaves the OTP in place so the user can retry.
    """
    email = normalize_email(email)
    if not email or not otp_code or not new_password:
        raise ValidationError("Email, OTP and new password are required")
    users = _users()
    try:
        match = {
            "email": email,
            "password_reset_otp_hash": hash_otp(otp_code),
            "password_reset_expires_at": {"$gt": datetime.utcnow()},
        }
        user = await users.find_one(match, {"_id": 1})
        if not user:
            raise InvalidOrExpiredError()

        if new_password != confirm_password:
            raise ValidationError("New password and confirm password do not match.")

        # Re-applying the match consumes the code at most once under concurrent redeems
        updated = await users.find_one_and_update(
            {**match, "_id": user["_id"]},
            {
                "$set": {
                    "hashed_password": get_password_hash(new_password),
                    "password_changed_at": datetime.utcnow(),
                    "updated_at": datetime.utcnow(),
                },
                "$unset": {"password_reset_otp_hash": "", "password_reset_expires_at": ""},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise InvalidOrExpiredError()

        logger.info(f"Password reset completed for user {updated['_id']}")
        return {"status": "success", "token": issue_token(updated), "user": public_user(updated)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error resetting password with OTP: {e}")
        raise InternalError("Something went wrong.")


async def _get_user_doc(user_id: str) -> dict:
    oid = to_object_id(user_id)
    user = await _users().find_one({"_id": oid}) if oid else None
    if not user:
        raise NotFoundError("User not found")
    return user

@timeit("get_user_profile")
async def get_user_profile(user_id: str):
    try:
        user = await _get_user_doc(user_id)
        return {"status": "success", "data": {"user": public_user(user)}}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting user profile: {e}")
        raise InternalError()

async def _apply_user_update(user_id: str, update: dict) -> dict:
    oid = to_object_id(user_id)
    if oid is None:
        raise NotFoundError("No user found with that ID.")
    update["updated_at"] = datetime.utcnow()
    updated = await _users().find_one_and_update(
        {"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise NotFoundError("No user found with that ID.")
    return updated

async def update_user_profile(user_id: str, user_update: UserUpdate):
    try:
        updated = await _apply_user_update(user_id, user_update.model_dump(exclude_unset=True))
        return {"status": "success", "data": {"user": public_user(updated)}}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating user profile: {e}")
        raise InternalError()

async def change_password(user_id: str, current_password: str, new_password: str, confirm_password: str):
    """Change own password and return a fresh token."""
    try:
        user = await _get_user_doc(user_id)
        if not current_password or not verify_password(current_password, user.get("hashed_password", "")):
            raise AuthenticationError("Your current password is wrong.")
        if not new_password:
            raise ValidationError("New password is required")
        if new_password != confirm_password:
            raise ValidationError("New password and confirm password do not match.")
        updated = await _apply_user_update(user_id, {
            "hashed_password": get_password_hash(new_password),
            "password_changed_at": datetime.utcnow(),
        })
        return _token_response(updated)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error changing password: {e}")
        raise InternalError("An error occurred while changing the password.")

async def delete_user(user_id: str):
    try:
        oid = to_object_id(user_id)
        result = await _users().delete_one({"_id": oid}) if oid else None
        if not result or result.deleted_count == 0:
            raise NotFoundError("No user found with that ID.")
        logger.info(f"Deleted user {user_id}")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting user: {e}")
        raise InternalError("Error deleting user.")

async def list_users():
    try:
        users = await _users().find({}).sort([("created_at", -1)]).to_list(length=None)
        return {
            "status": "success",
            "results": len(users),
            "data": {"users": [public_user(u) for u in users]},
        }
    except Exception as e:
        logger.error(f"Error listing users: {e}")
        raise InternalError("Could not fetch users.")

async def admin_update_user(user_id: str, user_update: AdminUserUpdate):
    try:
        update = user_update.model_dump(exclude_unset=True)
        if "email" in update:
            update["email"] = normalize_email(update["email"])
        try:
            updated = await _apply_user_update(user_id, update)
        except DuplicateKeyError:
            raise ValidationError("Email already registered")
        return {"status": "success", "data": {"user": public_user(updated)}}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating user as manager: {e}")
        raise InternalError()
