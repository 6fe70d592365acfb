# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""One-time access codes (second factor) and verification-email resend."""

import secrets

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from uraba_server.api.schemas import ResendVerificationRequest, SendTokenRequest, VerifyTokenRequest
from uraba_server.config import settings
from uraba_server.database import get_db
from uraba_server.errors import NotFoundError, ValidationError
from uraba_server.models import User
from uraba_server.rate_limit import rate_limit_dep
from uraba_server.services.email import send_access_code_email, send_verification_link_email
from uraba_server.services.tokens import TokenStore, get_token_store

router = APIRouter(tags=["tokens"], dependencies=[Depends(rate_limit_dep)])


@router.post("/send-token")
async def send_token(
    data: SendTokenRequest,
    tokens: TokenStore = Depends(get_token_store),
) -> dict:
    """Issue a 6-digit code for the email, replacing any pending one, and mail it."""
    code = tokens.issue(data.email)
    ttl = settings.verification_code_ttl_minutes
    await send_access_code_email(data.email, code, ttl)
    return {
        "success": True,
        "message": "Access code sent",
        "expires_in_minutes": ttl,
    }


@router.post("/verify-token")
async def verify_token(
    data: VerifyTokenRequest,
    tokens: TokenStore = Depends(get_token_store),
) -> dict:
    """Exchange a code for a session_id usable for one login."""
    session = tokens.consume(data.email, data.token)
    return {
        "success": True,
        "message": "Code verified. You can now sign in.",
        "session_id": session.session_id,
    }


@router.post("/resend-verification")
async def resend_verification(
    data: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Issue a fresh email-verification link for an unverified account."""
    result = await db.execute(select(User).where(func.lower(User.email) == data.email))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    if user.is_email_verified:
        raise ValidationError("Email already verified")
    user.verification_token = secrets.token_hex(32)
    await db.commit()
    await send_verification_link_email(user.email, user.verification_token, user.full_name)
    return {"success": True, "message": "Verification email sent"}
