"""
Sessions and credentials: bcrypt password hashes, JWT bearer tokens and the
``protect`` / ``admin`` route guards.
"""
import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

import config
from database import get_db, now, oid
from errors import AuthorizationError, ValidationError

logger = logging.getLogger(__name__)

SALT_ROUNDS = 10

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(SALT_ROUNDS)).decode("utf-8")


def check_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_token(user_id: str) -> str:
    issued = now()
    payload = {
        "sub": user_id,
        "iat": issued,
        "exp": issued + timedelta(minutes=config.JWT_EXPIRES_MINUTES),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> str:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthorizationError("Session expired, please log in again")
    except jwt.InvalidTokenError:
        raise AuthorizationError("Not authorized, token failed")
    return payload["sub"]


def generate_otp(length: int = 6) -> str:
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


def digest(token: str) -> str:
    """Reset tokens are only ever stored as SHA-256 digests."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "username": user.get("username"),
        "phone": user.get("phone"),
        "address": user.get("address"),
        "role": user.get("role", "user"),
        "is_admin": bool(user.get("is_admin")),
        "is_active": user.get("is_active", True),
        "email_verified": bool(user.get("email_verified")),
    }


def protect(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Require an authenticated session; returns the caller's user document."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthorizationError("Not authorized, no token")
    user_id = decode_token(credentials.credentials)
    try:
        user = db["user"].find_one({"_id": oid(user_id)})
    except ValidationError:
        raise AuthorizationError("Not authorized, token failed")
    if not user:
        raise AuthorizationError("Not authorized, user not found")
    if not user.get("is_active", True):
        raise AuthorizationError("Account is deactivated", status_code=403)
    return user


def admin(user: Dict[str, Any] = Depends(protect)) -> Dict[str, Any]:
    """Require an administrator; runs after ``protect``."""
    if not user.get("is_admin"):
        logger.warning("Non-admin %s denied admin route", user.get("email"))
        raise AuthorizationError("Not authorized as an admin", status_code=403)
    return user
