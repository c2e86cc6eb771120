"""Unit tests for services.password_reset_service."""

from __future__ import annotations

import pytest

from errors import ErrorCode, ValidationError
from services.password_reset_service import PasswordResetService
from shared.crypto import hash_token
from tests.fakes import FakeResetTokenRepository

EMAIL = "a@x.com"


@pytest.fixture
def repo():
    return FakeResetTokenRepository()


@pytest.fixture
def resets(repo, clock):
    return PasswordResetService(repo, expiry_minutes=15, clock=clock)


async def _invalid(coro):
    with pytest.raises(ValidationError) as exc_info:
        await coro
    assert exc_info.value.error_code == ErrorCode.INVALID_OR_EXPIRED_TOKEN


async def test_issue_stores_hash_with_expiry(resets, repo, clock):
    issued = await resets.issue(EMAIL)
    (stored,) = repo.docs.values()
    assert stored["token_hash"] == hash_token(issued.token)
    assert stored["used"] is False
    assert (issued.expires_at - clock.now).total_seconds() == 15 * 60
    assert resets.expiry_minutes == 15


async def test_find_valid(resets):
    issued = await resets.issue(EMAIL)
    record = await resets.find_valid(issued.token)
    assert record.email == EMAIL


async def test_find_valid_tolerates_whitespace(resets):
    issued = await resets.issue(EMAIL)
    assert (await resets.find_valid(f" {issued.token}\n")).email == EMAIL


@pytest.mark.parametrize("token", [None, "", "short", "c" * 43])
async def test_find_valid_rejects_unknown_or_malformed(resets, token):
    await _invalid(resets.find_valid(token))


async def test_expired(resets, clock):
    issued = await resets.issue(EMAIL)
    clock.advance(minutes=15)
    await _invalid(resets.find_valid(issued.token))


async def test_single_use(resets):
    issued = await resets.issue(EMAIL)
    record = await resets.find_valid(issued.token)
    await resets.consume(record)
    await _invalid(resets.find_valid(issued.token))
    await _invalid(resets.consume(record))


async def test_new_token_supersedes_old(resets):
    first = await resets.issue(EMAIL)
    second = await resets.issue(EMAIL)
    await _invalid(resets.find_valid(first.token))
    assert (await resets.find_valid(second.token)).email == EMAIL


async def test_other_emails_untouched(resets):
    mine = await resets.issue(EMAIL)
    await resets.issue("b@x.com")
    assert (await resets.find_valid(mine.token)).email == EMAIL


async def test_cleanup(resets, repo, clock):
    used = await resets.issue(EMAIL)
    await resets.consume(await resets.find_valid(used.token))
    await resets.issue("b@x.com")

    clock.advance(minutes=20)
    # both are past expires_at
    assert await resets.cleanup_expired() == 2
    assert repo.docs == {}
