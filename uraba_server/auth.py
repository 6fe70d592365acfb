# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication: JWT and password hashing."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from uraba_server.config import settings
from uraba_server.errors import AuthenticationError, InvalidTokenError
from uraba_server.models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Identity carried by a verified bearer token."""

    user_id: int
    email: str
    role: str
    is_temporary: bool = False


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain, hashed)


def legacy_document_number_matches(user: User, plain: str) -> bool:
    """Migration path for bootstrap accounts stored without a password hash.

    Such accounts log in with their document number. Remove once every
    account has a hash.
    """
    if user.password_hash or not user.document_number:
        return False
    logger.warning("User %s authenticated via legacy document-number fallback", user.id)
    return secrets.compare_digest(plain.encode(), user.document_number.encode())


def check_user_password(user: User, plain: str) -> bool:
    if user.password_hash:
        return verify_password(plain, user.password_hash)
    return legacy_document_number_matches(user, plain)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def issue_user_token(user: User, is_temporary: bool = False) -> str:
    """Signed credential for a logged-in user."""
    return create_access_token(
        {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role,
            "is_temporary": is_temporary,
        }
    )


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
        return payload
    except JWTError:
        return None


def current_user_from_token(token: str) -> CurrentUser:
    """Resolve identity from a bearer token. Raises InvalidTokenError."""
    payload = decode_token(token)
    if not payload:
        raise InvalidTokenError("Invalid or expired token")
    try:
        return CurrentUser(
            user_id=int(payload["sub"]),
            email=payload["email"],
            role=payload["role"],
            is_temporary=bool(payload.get("is_temporary", False)),
        )
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError("Invalid token") from None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    """Dependency: 401 when no bearer token is sent, 403 when it does not verify."""
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return current_user_from_token(credentials.credentials)
