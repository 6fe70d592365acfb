# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""One-time access codes and verified sessions.

A code is issued per email and exchanged (once) for a verified session. The
session lets an account whose email is not yet permanently verified log in a
single time. Both live only in process memory; expired entries are dropped
lazily by consume() and in bulk by sweep(), which the app runs periodically.
"""

import asyncio
import logging
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from uraba_server.config import settings
from uraba_server.errors import TokenExpiredError, TokenMismatchError, TokenNotFoundError

logger = logging.getLogger(__name__)

CODE_MIN = 100000
CODE_MAX = 999999
# Wrong guesses allowed before a pending code is discarded
MAX_CODE_ATTEMPTS = 5


@dataclass
class VerificationToken:
    code: str
    expires_at: float
    failed_attempts: int = 0


@dataclass
class VerifiedSession:
    session_id: str
    email: str
    expires_at: float


class TokenStore(Protocol):
    """Interface the routes depend on; swap in a shared backend without touching callers."""

    def issue(self, email: str) -> str: ...

    def consume(self, email: str, submitted_code: str) -> VerifiedSession: ...

    def resolve_session(self, session_id: str) -> str | None: ...

    def redeem_session(self, session_id: str, email: str) -> bool: ...

    def sweep(self) -> int: ...


class InMemoryTokenStore:
    """Lock-protected dict store. Every read-modify-write runs under one lock."""

    def __init__(
        self,
        code_ttl_seconds: float,
        session_ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.code_ttl_seconds = code_ttl_seconds
        self.session_ttl_seconds = session_ttl_seconds
        self._clock = clock
        self._codes: dict[str, VerificationToken] = {}
        self._sessions: dict[str, VerifiedSession] = {}
        self._lock = threading.Lock()

    def issue(self, email: str) -> str:
        """Create a 6-digit code for email, replacing any pending one."""
        code = str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))
        with self._lock:
            self._codes[email] = VerificationToken(
                code=code,
                expires_at=self._clock() + self.code_ttl_seconds,
            )
        logger.info("Access code issued for %s", email)
        return code

    def consume(self, email: str, submitted_code: str) -> VerifiedSession:
        """Exchange a pending code for a verified session.

        Raises TokenNotFoundError, TokenExpiredError (entry removed) or
        TokenMismatchError. A mismatch keeps the entry until MAX_CODE_ATTEMPTS
        wrong guesses have been made against it. On success the code is gone, so a
        second submission of the same code sees TokenNotFoundError.
        """
        with self._lock:
            now = self._clock()
            record = self._codes.get(email)
            if record is None:
                raise TokenNotFoundError("No code found for this email. Request a new one.")
            if now > record.expires_at:
                del self._codes[email]
                raise TokenExpiredError("Code expired. Request a new one.")
            if not secrets.compare_digest(record.code, str(submitted_code)):
                record.failed_attempts += 1
                if record.failed_attempts >= MAX_CODE_ATTEMPTS:
                    del self._codes[email]
                    logger.warning(
                        "Access code for %s discarded after %d failed attempts", email, record.failed_attempts
                    )
                    raise TokenMismatchError("Too many invalid attempts. Request a new code.")
                raise TokenMismatchError("Invalid code")
            del self._codes[email]
            session = VerifiedSession(
                session_id=secrets.token_hex(16),
                email=email,
                expires_at=now + self.session_ttl_seconds,
            )
            self._sessions[session.session_id] = session
        logger.info("Access code verified for %s", email)
        return session

    def resolve_session(self, session_id: str) -> str | None:
        """Email bound to a live session, or None. Does not consume it."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or self._clock() > session.expires_at:
                return None
            return session.email

    def redeem_session(self, session_id: str, email: str) -> bool:
        """Consume a live session belonging to email. True at most once per session."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.email != email:
                return False
            if self._clock() > session.expires_at:
                return False
            del self._sessions[session_id]
            return True

    def sweep(self) -> int:
        """Drop every expired code and session. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            stale_codes = [k for k, v in self._codes.items() if now > v.expires_at]
            stale_sessions = [k for k, v in self._sessions.items() if now > v.expires_at]
            for key in stale_codes:
                del self._codes[key]
            for key in stale_sessions:
                del self._sessions[key]
        return len(stale_codes) + len(stale_sessions)


async def sweep_expired_tokens(store: TokenStore, interval_seconds: float) -> None:
    """Sweep the store every interval_seconds until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = store.sweep()
        except Exception:
            logger.exception("Token sweep failed")
            continue
        if removed:
            logger.info("Swept %d expired codes/sessions", removed)


token_store = InMemoryTokenStore(
    code_ttl_seconds=settings.verification_code_ttl_minutes * 60,
    session_ttl_seconds=settings.verified_session_ttl_hours * 3600,
)


def get_token_store() -> TokenStore:
    """FastAPI dependency returning the process-wide store."""
    return token_store
