from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import OAuth2PasswordBearer
from core.config import settings
from config import config
import hashlib
import hmac
import secrets
import logging

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token scheme; auto_error is off so routes can return their own 401
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def verify_token(token: str) -> Optional[dict]:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            return None
        return payload
    except JWTError as e:
        logger.warning(f"JWT decode failed: {e}")
        return None

def generate_otp() -> str:
    """Return a 6-digit one-time code; the leading digit is never zero."""
    otp_cfg = config.get_otp_config()
    low = int(otp_cfg.get("otp_min", 100000))
    high = int(otp_cfg.get("otp_max", 999999))
    return str(low + secrets.randbelow(high - low + 1))

def hash_otp(otp_code: str) -> str:
    """One-way digest of an OTP as stored on the user document.

    Plain SHA-256 by default; HMAC-SHA256 when OTP_HASH_KEY is configured.
    Switching between the two invalidates codes issued before the switch.
    """
    data = (otp_code or "").encode("utf-8")
    if settings.OTP_HASH_KEY:
        return hmac.new(settings.OTP_HASH_KEY.encode("utf-8"), data, hashlib.sha256).hexdigest()
    return hashlib.sha256(data).hexdigest()
