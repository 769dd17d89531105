from typing import Optional
from fastapi import Depends
from core.security import oauth2_scheme, verify_token
from schemas.user_schema import User as UserSchema
from db.mongodb import get_mongo_db, to_object_id
from utils.errors import AuthenticationError, PermissionDeniedError, InternalError, ValidationError
import logging

logger = logging.getLogger(__name__)

async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> UserSchema:
    if not token:
        raise AuthenticationError("Not authenticated")
    payload = verify_token(token)
    if not payload:
        raise AuthenticationError()

    oid = to_object_id(payload.get("sub"))
    if oid is None:
        raise AuthenticationError()

    mdb = get_mongo_db()
    if mdb is None:
        raise InternalError("Database not available")

    # Role and status come from the stored user, not the token, so demotions apply immediately
    doc = await mdb.users.find_one({"_id": oid}, {"hashed_password": 0})
    if not doc:
        raise AuthenticationError("The user belonging to this token no longer exists")
    if doc.get("status", "active") != "active":
        raise AuthenticationError("Your account is inactive. Please contact an administrator.")

    return UserSchema(
        user_id=str(doc["_id"]),
        email=doc.get("email", ""),
        role=doc.get("role", "user"),
        name=doc.get("name"),
        status=doc.get("status", "active"),
    )

def require_roles(*roles: str):
    """Dependency factory gating a route on the caller's role."""
    async def _check(current_user: UserSchema = Depends(get_current_user)) -> UserSchema:
        if current_user.role not in roles:
            raise PermissionDeniedError()
        return current_user
    return _check

manager_required = require_roles("manager")
collector_required = require_roles("collector", "manager")

def ensure_self_or_manager(current_user: UserSchema, user_id: str) -> None:
    if not current_user.owns_or_manages(user_id):
        raise PermissionDeniedError()

def payload_str(payload: dict, key: str, strip: bool = True) -> str:
    """Read a scalar body field as text; "" when absent, 400 for objects, arrays and booleans."""
    value = payload.get(key)
    if value is None:
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError(f"{key} must be a string")
    value = str(value)
    return value.strip() if strip else value
