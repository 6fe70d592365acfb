# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic schemas for API request/response."""

from datetime import date, datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, StringConstraints

RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
# Emails are stored and looked up lowercased
EmailAddress = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, to_lower=True)]
NewEmailAddress = Annotated[EmailStr, AfterValidator(str.lower)]
# Passwords are compared exactly as sent
Password = Annotated[str, StringConstraints(min_length=1)]


# Auth
class UserCreate(BaseModel):
    first_name: RequiredStr
    second_name: str | None = None
    last_name: RequiredStr
    second_last_name: str | None = None
    document_number: RequiredStr
    email: NewEmailAddress
    address: RequiredStr
    phone: RequiredStr
    password: str | None = None


class UserLogin(BaseModel):
    email: EmailAddress
    password: Password
    session_id: str | None = None


class UserResponse(BaseModel):
    id: int
    first_name: str
    second_name: str | None = None
    last_name: str
    second_last_name: str | None = None
    document_number: str
    email: str
    address: str
    phone: str
    role: str
    is_email_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    message: str = "Login successful"
    token: str
    user: UserResponse
    requires_token: bool = False
    is_temporary: bool


# One-time codes
class SendTokenRequest(BaseModel):
    email: EmailAddress


class VerifyTokenRequest(BaseModel):
    email: EmailAddress
    token: RequiredStr


class ResendVerificationRequest(BaseModel):
    email: EmailAddress


# Packages
class PackageCreate(BaseModel):
    sender_name: RequiredStr
    recipient_name: RequiredStr
    delivery_address: RequiredStr
    weight: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    client_id: int


class StatusUpdate(BaseModel):
    status: RequiredStr


class MessengerAssignment(BaseModel):
    messenger_id: int


class PackageResponse(BaseModel):
    id: int
    tracking_code: str
    sender_name: str
    recipient_name: str
    delivery_address: str
    weight: float | None = None
    cost: float
    client_id: int
    assigned_messenger_id: int | None = None
    status: str
    created_at: datetime
    client_name: str | None = None
    messenger_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class TrackingResponse(PackageResponse):
    current_location: str
    estimated_delivery: date
