"""Auth endpoints — admin login.

Admins authenticate with email + password (argon2id hash) and receive an
HS256 JWT. Guests never authenticate; endpoints that adapt to admins read
the bearer token optionally (see dependencies.get_is_admin).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import APIRouter, Depends, HTTPException
from jose import JWTError, jwt
from sqlmodel import Session, select

from callreveal.config import get_settings
from callreveal.db import get_session
from callreveal.models.auth import AdminRead, AdminUser, LoginRequest, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

JWT_ALGORITHM = "HS256"

_hasher = PasswordHasher()


# --- Password + JWT helpers ---


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def create_access_token(admin: AdminUser) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": admin.id,
        "email": admin.email,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate an admin JWT. Raises HTTPException 401 on failure."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if payload.get("type") != "access" or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return payload


def ensure_admin(db: Session, email: str, password: str) -> AdminUser:
    """Create the admin account, or reset its password if it exists."""
    email = email.strip().lower()
    admin = db.exec(select(AdminUser).where(AdminUser.email == email)).first()
    if admin is None:
        admin = AdminUser(email=email, password_hash=hash_password(password))
        logger.info("Created admin account %s", email)
    else:
        admin.password_hash = hash_password(password)
        logger.info("Reset password for admin account %s", email)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


# --- Endpoints ---


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: Session = Depends(get_session)) -> TokenResponse:
    """Verify admin credentials and issue a JWT."""
    email = body.email.strip().lower()
    admin = db.exec(select(AdminUser).where(AdminUser.email == email)).first()
    # Same response for unknown email and wrong password
    if admin is None or not verify_password(admin.password_hash, body.password):
        logger.warning("Failed admin login for %s", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(admin),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        admin=AdminRead.model_validate(admin),
    )
