# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Token store: code issuance, single-use consumption, expiry and sweeping."""

import asyncio
import threading

import pytest

from uraba_server.errors import TokenExpiredError, TokenMismatchError, TokenNotFoundError
from uraba_server.services.tokens import MAX_CODE_ATTEMPTS, InMemoryTokenStore, sweep_expired_tokens


def test_issue_returns_six_digit_code(token_store):
    for _ in range(50):
        code = token_store.issue("a@example.com")
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999


def test_reissue_invalidates_previous_code(token_store):
    first = token_store.issue("a@example.com")
    second = token_store.issue("a@example.com")
    while second == first:
        second = token_store.issue("a@example.com")
    with pytest.raises(TokenMismatchError):
        token_store.consume("a@example.com", first)
    session = token_store.consume("a@example.com", second)
    assert session.email == "a@example.com"


def test_code_is_single_use(token_store):
    code = token_store.issue("a@example.com")
    token_store.consume("a@example.com", code)
    with pytest.raises(TokenNotFoundError):
        token_store.consume("a@example.com", code)


def test_unknown_email_is_not_found(token_store):
    with pytest.raises(TokenNotFoundError):
        token_store.consume("nobody@example.com", "123456")


def test_expired_code_rejected_and_removed(token_store, clock):
    code = token_store.issue("a@example.com")
    clock.advance(token_store.code_ttl_seconds + 1)
    with pytest.raises(TokenExpiredError):
        token_store.consume("a@example.com", code)
    with pytest.raises(TokenNotFoundError):
        token_store.consume("a@example.com", code)


def test_code_valid_right_at_expiry(token_store, clock):
    code = token_store.issue("a@example.com")
    clock.advance(token_store.code_ttl_seconds)
    assert token_store.consume("a@example.com", code).email == "a@example.com"


def test_mismatch_keeps_pending_code(token_store):
    code = token_store.issue("a@example.com")
    wrong = "000000" if code != "000000" else "111111"
    with pytest.raises(TokenMismatchError):
        token_store.consume("a@example.com", wrong)
    assert token_store.consume("a@example.com", code)


def test_session_lifetime_and_resolution(token_store, clock):
    code = token_store.issue("a@example.com")
    session = token_store.consume("a@example.com", code)
    assert len(session.session_id) == 32
    assert session.expires_at == clock() + token_store.session_ttl_seconds
    assert token_store.resolve_session(session.session_id) == "a@example.com"
    # resolving does not consume
    assert token_store.resolve_session(session.session_id) == "a@example.com"
    clock.advance(token_store.session_ttl_seconds + 1)
    assert token_store.resolve_session(session.session_id) is None
    assert token_store.resolve_session("missing") is None


def test_redeem_session_once_for_matching_email(token_store):
    code = token_store.issue("a@example.com")
    session = token_store.consume("a@example.com", code)
    assert token_store.redeem_session(session.session_id, "b@example.com") is False
    assert token_store.redeem_session(session.session_id, "a@example.com") is True
    assert token_store.redeem_session(session.session_id, "a@example.com") is False


def test_redeem_expired_session_fails(token_store, clock):
    session = token_store.consume("a@example.com", token_store.issue("a@example.com"))
    clock.advance(token_store.session_ttl_seconds + 1)
    assert token_store.redeem_session(session.session_id, "a@example.com") is False


def test_sweep_removes_only_expired_entries(token_store, clock):
    token_store.issue("old@example.com")
    old_session = token_store.consume("s@example.com", token_store.issue("s@example.com"))
    clock.advance(token_store.session_ttl_seconds + 1)
    fresh_code = token_store.issue("new@example.com")

    assert token_store.sweep() == 2
    assert token_store.resolve_session(old_session.session_id) is None
    with pytest.raises(TokenNotFoundError):
        token_store.consume("old@example.com", "123456")
    assert token_store.consume("new@example.com", fresh_code)
    assert token_store.sweep() == 0


def test_concurrent_consume_only_one_wins():
    store = InMemoryTokenStore(code_ttl_seconds=300, session_ttl_seconds=3600)
    code = store.issue("a@example.com")
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    lock = threading.Lock()

    def attempt():
        barrier.wait()
        try:
            store.consume("a@example.com", code)
            result = "ok"
        except TokenNotFoundError:
            result = "not_found"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert outcomes.count("ok") == 1
    assert outcomes.count("not_found") == 7


@pytest.mark.anyio
async def test_sweeper_task_runs_until_cancelled(token_store, clock):
    token_store.issue("a@example.com")
    clock.advance(token_store.code_ttl_seconds + 1)
    task = asyncio.create_task(sweep_expired_tokens(token_store, 0.01))
    await asyncio.sleep(0.05)
    assert token_store.sweep() == 0
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


def test_code_discarded_after_max_failed_attempts(token_store):
    code = token_store.issue("a@example.com")
    wrong = "000000" if code != "000000" else "111111"
    for _ in range(MAX_CODE_ATTEMPTS - 1):
        with pytest.raises(TokenMismatchError):
            token_store.consume("a@example.com", wrong)
    with pytest.raises(TokenMismatchError, match="Too many"):
        token_store.consume("a@example.com", wrong)
    with pytest.raises(TokenNotFoundError):
        token_store.consume("a@example.com", code)


class _FlakyStore:
    def __init__(self) -> None:
        self.calls = 0

    def sweep(self) -> int:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("backend unavailable")
        return 0


@pytest.mark.anyio
async def test_sweeper_survives_failing_sweep():
    store = _FlakyStore()
    task = asyncio.create_task(sweep_expired_tokens(store, 0.01))
    await asyncio.sleep(0.1)
    assert not task.done()
    assert store.calls > 1
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
