# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Application errors. Each maps to an HTTP status; handlers live in main.py."""

from typing import Any


class AppError(Exception):
    """Base error rendered as {"error": message, **extra}."""

    status_code = 500

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationError(AppError):
    """Missing or malformed input."""

    status_code = 400


class AuthenticationError(AppError):
    """Bad credentials or missing bearer token."""

    status_code = 401


class AuthorizationError(AppError):
    """Role or ownership mismatch."""

    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """Duplicate unique key."""

    status_code = 409


class InvalidTokenError(AuthorizationError):
    """Bearer credential failed signature, expiry or claim checks."""


class TokenNotFoundError(ValidationError):
    """No one-time code is pending for the email."""


class TokenExpiredError(ValidationError):
    """The one-time code exists but is past its expiry."""


class TokenMismatchError(ValidationError):
    """The submitted code differs from the pending one."""
