# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication API routes."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from uraba_server.api.schemas import LoginResponse, UserCreate, UserLogin, UserResponse
from uraba_server.auth import (
    CurrentUser,
    check_user_password,
    get_current_user,
    hash_password,
    issue_user_token,
)
from uraba_server.database import get_db
from uraba_server.errors import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from uraba_server.models import User
from uraba_server.models.user import ROLE_CLIENT
from uraba_server.rate_limit import rate_limit_dep
from uraba_server.services.tokens import TokenStore, get_token_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(rate_limit_dep)])
async def register(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Create a client account. Without a password the document number becomes the password."""
    result = await db.execute(
        select(User).where(
            or_(func.lower(User.email) == data.email, User.document_number == data.document_number)
        )
    )
    if result.scalars().first():
        raise ConflictError("Document number or email already registered")
    user = User(
        first_name=data.first_name,
        second_name=data.second_name,
        last_name=data.last_name,
        second_last_name=data.second_last_name,
        document_number=data.document_number,
        email=data.email,
        address=data.address,
        phone=data.phone,
        role=ROLE_CLIENT,
        password_hash=hash_password(data.password or data.document_number),
        is_email_verified=False,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Document number or email already registered") from None
    await db.commit()
    await db.refresh(user)
    logger.info("Client %s registered", user.id)
    return {
        "message": "Client registered",
        "user": UserResponse.model_validate(user).model_dump(mode="json"),
    }


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(rate_limit_dep)])
async def login(
    data: UserLogin,
    db: AsyncSession = Depends(get_db),
    tokens: TokenStore = Depends(get_token_store),
) -> LoginResponse:
    """Authenticate and return JWT.

    Accounts without a verified email need a session_id from /verify-token;
    that session is spent by this call and the JWT is marked temporary.
    """
    result = await db.execute(select(User).where(func.lower(User.email) == data.email))
    user = result.scalar_one_or_none()
    if not user or not check_user_password(user, data.password):
        raise AuthenticationError("Invalid credentials")

    is_temporary = False
    if not user.is_email_verified:
        if not data.session_id or not tokens.redeem_session(data.session_id, data.email):
            raise AuthorizationError(
                "Email not verified",
                code="EMAIL_NOT_VERIFIED",
                requires_token=True,
                detail="Verify your email or use a one-time access code",
            )
        is_temporary = True
        logger.info("User %s logged in with a verified session", user.id)

    return LoginResponse(
        token=issue_user_token(user, is_temporary=is_temporary),
        user=UserResponse.model_validate(user),
        is_temporary=is_temporary,
    )


@router.get("/verify")
async def verify(
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Check a bearer token and return the user it belongs to."""
    result = await db.execute(select(User).where(User.id == current.user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise AuthenticationError("User not found")
    return {
        "valid": True,
        "user": UserResponse.model_validate(user).model_dump(mode="json"),
        "is_temporary": current.is_temporary,
    }


@router.get("/verify-email")
async def verify_email(
    token: str = Query(..., min_length=1, description="Token from the verification email"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Mark an account's email as permanently verified."""
    result = await db.execute(select(User).where(User.verification_token == token))
    user = result.scalar_one_or_none()
    if not user:
        raise ValidationError("Invalid or already used verification link")
    user.is_email_verified = True
    user.verification_token = None
    await db.commit()
    logger.info("User %s verified their email", user.id)
    return {"message": "Email verified. You can now sign in."}


@router.post("/logout")
async def logout() -> dict:
    """Tokens are stateless; the client discards its copy."""
    return {"message": "Logged out"}
