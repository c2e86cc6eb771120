"""
Unit tests for services.auth_service.AuthService.

Runs the full account flows against the in-memory repositories and the
recording email provider wired by the ``container`` fixture.
"""

from __future__ import annotations

import pytest
from pymongo.errors import AutoReconnect

from errors import (
    AuthenticationError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from repositories.errors import DuplicateKey
from schemas.models.refresh_token import DeviceInfo
from shared.crypto import CredentialHasher, hash_token

PASSWORD = "secret1"


@pytest.fixture
def auth(container):
    return container.auth


@pytest.fixture
def account(repos, fast_hasher):
    """A verified, active user whose password is PASSWORD."""
    return repos.users.seed(password_hash=fast_hasher.hash(PASSWORD))


async def _register(auth, username="alice", email="a@x.com"):
    return await auth.register(username, "Alice A", email, PASSWORD)


# ---------------------------------------------------------------------------
# register / verify / resend
# ---------------------------------------------------------------------------


class TestRegister:
    async def test_creates_unverified_user_and_mails_code(self, auth, repos, email):
        result = await _register(auth, email=" A@X.com ")

        assert result.verification_sent is True
        assert result.otp_expires_at is not None
        assert result.user.email == "a@x.com"
        assert result.user.role == "user"
        assert result.user.email_verified is False
        assert result.user.is_active is True
        assert result.user.password_hash is None

        stored = repos.users.raw(result.user.id)
        assert stored["password_hash"].startswith("$argon2id$")
        assert PASSWORD not in stored.values()
        assert email.last_otp("a@x.com").isdigit()

    async def test_duplicate_email(self, auth):
        await _register(auth)
        with pytest.raises(ConflictError) as exc_info:
            await _register(auth, username="alice2", email="A@x.com")
        assert exc_info.value.error_code == ErrorCode.EMAIL_EXISTS
        assert exc_info.value.status_code == 409

    async def test_duplicate_username(self, auth):
        await _register(auth)
        with pytest.raises(ConflictError) as exc_info:
            await _register(auth, email="other@x.com")
        assert exc_info.value.error_code == ErrorCode.USERNAME_EXISTS

    async def test_unique_index_race_maps_to_conflict(self, auth, repos, mocker):
        mocker.patch.object(
            repos.users, "create", side_effect=DuplicateKey("username")
        )
        with pytest.raises(ConflictError) as exc_info:
            await _register(auth)
        assert exc_info.value.error_code == ErrorCode.USERNAME_EXISTS

    async def test_weak_password(self, auth, repos):
        with pytest.raises(ValidationError) as exc_info:
            await auth.register("alice", "Alice A", "a@x.com", "abc")
        assert exc_info.value.field == "password"
        assert exc_info.value.details == ["At least 6 characters"]
        assert repos.users.docs == {}

    async def test_email_failure_keeps_account(self, auth, repos, email):
        email.succeed = False
        result = await _register(auth)
        assert result.verification_sent is False
        assert repos.users.raw(result.user.id) is not None

    async def test_mailer_exception_keeps_account(self, auth, repos, email, mocker):
        mocker.patch.object(
            email, "send_verification_email", side_effect=RuntimeError("template")
        )
        result = await _register(auth)
        assert result.verification_sent is False
        assert result.otp_expires_at is not None
        assert repos.users.raw(result.user.id) is not None

    async def test_otp_store_failure_keeps_account(self, auth, container, repos, mocker):
        mocker.patch.object(
            repos.otps, "create", side_effect=AutoReconnect("primary stepped down")
        )
        result = await _register(auth)
        assert result.verification_sent is False
        assert result.otp_expires_at is None
        assert repos.users.raw(result.user.id) is not None

    async def test_store_failure_is_generic(self, auth, repos, mocker):
        mocker.patch.object(
            repos.users, "find_by_email", side_effect=AutoReconnect("boom")
        )
        with pytest.raises(ServerError) as exc_info:
            await _register(auth)
        assert exc_info.value.message == "Service temporarily unavailable"


class TestVerifyEmail:
    async def test_success_sends_welcome(self, auth, container, repos, email):
        result = await _register(auth)
        user = await auth.verify_email("a@x.com", email.last_otp("a@x.com"))

        assert user.email_verified is True
        assert repos.users.raw(result.user.id)["email_verified"] is True
        await container.dispatcher.drain()
        assert len(email.of_kind("welcome")) == 1

    async def test_email_is_normalized(self, auth, email):
        await _register(auth)
        user = await auth.verify_email(" A@X.COM", email.last_otp("a@x.com"))
        assert user.email_verified

    async def test_wrong_code(self, auth, email):
        await _register(auth)
        code = email.last_otp("a@x.com")
        wrong = "000000" if code != "000000" else "111111"
        with pytest.raises(ValidationError) as exc_info:
            await auth.verify_email("a@x.com", wrong)
        assert exc_info.value.error_code == ErrorCode.INVALID_OR_EXPIRED_CODE

    async def test_unknown_user(self, auth):
        with pytest.raises(NotFoundError) as exc_info:
            await auth.verify_email("ghost@x.com", "123456")
        assert exc_info.value.error_code == ErrorCode.USER_NOT_FOUND

    async def test_already_verified(self, auth, account):
        with pytest.raises(ValidationError) as exc_info:
            await auth.verify_email(account.email, "123456")
        assert exc_info.value.error_code == ErrorCode.ALREADY_VERIFIED


class TestResendOtp:
    async def test_new_code_replaces_old(self, auth, email, mocker):
        mocker.patch(
            "services.otp_service.generate_otp_code", side_effect=["111111", "222222"]
        )
        await _register(auth)
        delivery = await auth.resend_otp("a@x.com")
        assert delivery.email_sent is True

        with pytest.raises(ValidationError):
            await auth.verify_email("a@x.com", "111111")
        assert (await auth.verify_email("a@x.com", "222222")).email_verified

    async def test_mailer_exception_is_reported(self, auth, email, mocker):
        await _register(auth)
        mocker.patch.object(
            email, "send_verification_email", side_effect=RuntimeError("template")
        )
        delivery = await auth.resend_otp("a@x.com")
        assert delivery.email_sent is False

    async def test_verified_user_cannot_resend(self, auth, account):
        with pytest.raises(ValidationError) as exc_info:
            await auth.resend_otp(account.email)
        assert exc_info.value.error_code == ErrorCode.ALREADY_VERIFIED

    async def test_unknown_user(self, auth):
        with pytest.raises(NotFoundError):
            await auth.resend_otp("ghost@x.com")


# ---------------------------------------------------------------------------
# login / refresh / logout
# ---------------------------------------------------------------------------


class TestLogin:
    async def test_success(self, auth, container, repos, account, clock):
        device = DeviceInfo(device_type="mobile", browser="Safari", os="iOS")
        result = await auth.login(" alice ", PASSWORD, device)

        assert result.user.id == account.id
        assert result.user.password_hash is None
        assert result.expires_in == 86400
        assert container.access_tokens.verify(result.access_token).user_id == str(
            account.id
        )
        stored = repos.refresh_tokens.raw_by_hash(hash_token(result.refresh_token))
        assert stored["device_info"]["device_type"] == "mobile"
        assert (result.refresh_expires_at - clock.now).days == 7

        raw_user = repos.users.raw(account.id)
        assert raw_user["last_login_at"] == clock.now
        assert raw_user["last_login_device"] == "mobile"

    async def test_wrong_password_and_unknown_user_look_identical(self, auth, account):
        with pytest.raises(AuthenticationError) as wrong_password:
            await auth.login("alice", "wrong-password")
        with pytest.raises(AuthenticationError) as unknown_user:
            await auth.login("nobody", PASSWORD)

        assert wrong_password.value.to_dict() == unknown_user.value.to_dict()
        assert wrong_password.value.error_code == ErrorCode.INVALID_CREDENTIALS
        assert wrong_password.value.status_code == 401

    async def test_unknown_user_still_spends_a_hash(self, auth, container, mocker):
        spy = mocker.spy(container.hasher, "verify")
        with pytest.raises(AuthenticationError):
            await auth.login("nobody", PASSWORD)
        assert spy.call_count == 1

    async def test_unverified_with_right_password(self, auth, repos, fast_hasher):
        repos.users.seed(email_verified=False, password_hash=fast_hasher.hash(PASSWORD))
        with pytest.raises(ForbiddenError) as exc_info:
            await auth.login("alice", PASSWORD)
        assert exc_info.value.error_code == ErrorCode.EMAIL_NOT_VERIFIED

    async def test_unverified_with_wrong_password(self, auth, repos, fast_hasher):
        repos.users.seed(email_verified=False, password_hash=fast_hasher.hash(PASSWORD))
        with pytest.raises(AuthenticationError) as exc_info:
            await auth.login("alice", "wrong-password")
        assert exc_info.value.error_code == ErrorCode.INVALID_CREDENTIALS

    async def test_inactive(self, auth, repos, fast_hasher):
        repos.users.seed(is_active=False, password_hash=fast_hasher.hash(PASSWORD))
        with pytest.raises(ForbiddenError) as exc_info:
            await auth.login("alice", PASSWORD)
        assert exc_info.value.error_code == ErrorCode.ACCOUNT_INACTIVE

    async def test_account_without_password(self, auth, repos):
        repos.users.seed()
        with pytest.raises(AuthenticationError) as exc_info:
            await auth.login("alice", PASSWORD)
        assert exc_info.value.error_code == ErrorCode.INVALID_CREDENTIALS

    async def test_outdated_hash_is_upgraded(self, auth, repos):
        old = CredentialHasher(time_cost=2, memory_cost=8, parallelism=1)
        user = repos.users.seed(password_hash=old.hash(PASSWORD))
        await auth.login("alice", PASSWORD)
        new_hash = repos.users.raw(user.id)["password_hash"]
        assert "t=1" in new_hash
        assert (await auth.login("alice", PASSWORD)).user.id == user.id

    async def test_each_login_opens_a_session(self, auth, container, account):
        await auth.login("alice", PASSWORD)
        await auth.login("alice", PASSWORD)
        assert len(await container.refresh_tokens.list_sessions(account.id)) == 2


class TestRefreshAndLogout:
    async def test_refresh(self, auth, account):
        login = await auth.login("alice", PASSWORD)
        result = await auth.refresh(login.refresh_token)
        assert result.refresh_token == login.refresh_token
        assert result.user.id == account.id

    async def test_refresh_failure_propagates(self, auth):
        with pytest.raises(ValidationError) as exc_info:
            await auth.refresh(None)
        assert exc_info.value.error_code == ErrorCode.INVALID_FORMAT

    async def test_logout_then_refresh(self, auth, account):
        login = await auth.login("alice", PASSWORD)
        assert await auth.logout(login.refresh_token) is True
        with pytest.raises(AuthenticationError) as exc_info:
            await auth.refresh(login.refresh_token)
        assert exc_info.value.error_code == ErrorCode.TOKEN_REVOKED

    async def test_logout_never_fails(self, auth, repos, mocker):
        assert await auth.logout(None) is False
        assert await auth.logout("d" * 43) is False
        mocker.patch.object(
            repos.refresh_tokens, "find_by_hash", side_effect=AutoReconnect("down")
        )
        assert await auth.logout("d" * 43) is False

    async def test_unexpected_refresh_error_is_generic(
        self, auth, repos, account, mocker
    ):
        login = await auth.login("alice", PASSWORD)
        mocker.patch.object(
            repos.refresh_tokens, "find_by_hash", side_effect=ValueError("bad row")
        )
        with pytest.raises(ServerError) as exc_info:
            await auth.refresh(login.refresh_token)
        assert exc_info.value.message == "Service temporarily unavailable"
        assert await auth.logout(login.refresh_token) is False

    async def test_logout_all(self, auth, container, account):
        first = await auth.login("alice", PASSWORD)
        await auth.login("alice", PASSWORD)
        assert await auth.logout_all(account.id) == 2
        with pytest.raises(AuthenticationError):
            await auth.refresh(first.refresh_token)


# ---------------------------------------------------------------------------
# passwords
# ---------------------------------------------------------------------------


class TestChangePassword:
    async def test_success(self, auth, container, email, account):
        await auth.change_password(account.id, PASSWORD, "new-secret")
        await auth.login("alice", "new-secret")
        with pytest.raises(AuthenticationError):
            await auth.login("alice", PASSWORD)
        await container.dispatcher.drain()
        assert len(email.of_kind("password_changed")) == 1

    async def test_wrong_current(self, auth, account):
        with pytest.raises(ValidationError) as exc_info:
            await auth.change_password(account.id, "nope-nope", "new-secret")
        assert exc_info.value.error_code == ErrorCode.CURRENT_PASSWORD_INCORRECT
        assert exc_info.value.field == "current_password"

    async def test_unchanged(self, auth, account):
        with pytest.raises(ValidationError) as exc_info:
            await auth.change_password(account.id, PASSWORD, PASSWORD)
        assert exc_info.value.error_code == ErrorCode.PASSWORD_UNCHANGED

    async def test_weak_new_password(self, auth, account):
        with pytest.raises(ValidationError) as exc_info:
            await auth.change_password(account.id, PASSWORD, "abc")
        assert exc_info.value.field == "new_password"

    async def test_unknown_user(self, auth):
        with pytest.raises(NotFoundError):
            await auth.change_password("65a000000000000000000000", PASSWORD, "x" * 8)

    async def test_sessions_survive(self, auth, account):
        login = await auth.login("alice", PASSWORD)
        await auth.change_password(account.id, PASSWORD, "new-secret")
        assert (await auth.refresh(login.refresh_token)).user.id == account.id


class TestForgotAndResetPassword:
    async def test_forgot_mails_a_token(self, auth, container, email, account):
        assert await auth.forgot_password("A@x.com") is None
        await container.dispatcher.drain()
        token = email.last_reset_token("a@x.com")
        record = await auth.verify_reset_token(token)
        assert record.email == "a@x.com"

    @pytest.mark.parametrize("case", ["unknown", "inactive"])
    async def test_forgot_is_silent_for_unusable_accounts(
        self, auth, container, repos, email, case
    ):
        if case == "inactive":
            repos.users.seed(is_active=False)
        assert await auth.forgot_password("a@x.com") is None
        await container.dispatcher.drain()
        assert email.of_kind("password_reset") == []
        assert repos.reset_tokens.docs == {}

    async def test_forgot_survives_mail_failure(self, auth, container, email, account):
        email.succeed = False
        assert await auth.forgot_password("a@x.com") is None
        await container.dispatcher.drain()

    async def test_forgot_is_silent_when_store_fails(
        self, auth, container, repos, email, account, mocker
    ):
        mocker.patch.object(
            repos.reset_tokens,
            "invalidate_for_email",
            side_effect=AutoReconnect("primary stepped down"),
        )
        assert await auth.forgot_password("a@x.com") is None
        await container.dispatcher.drain()
        assert email.of_kind("password_reset") == []

    async def _reset_token(self, auth, container, email):
        await auth.forgot_password("a@x.com")
        await container.dispatcher.drain()
        return email.last_reset_token("a@x.com")

    async def test_reset_revokes_every_session(self, auth, container, email, account):
        first = await auth.login("alice", PASSWORD)
        await auth.login("alice", PASSWORD)
        token = await self._reset_token(auth, container, email)

        assert await auth.reset_password(token, "brand-new") == 2
        with pytest.raises(AuthenticationError) as exc_info:
            await auth.refresh(first.refresh_token)
        assert exc_info.value.error_code == ErrorCode.TOKEN_REVOKED
        await auth.login("alice", "brand-new")
        await container.dispatcher.drain()
        assert len(email.of_kind("password_changed")) == 1

    async def test_token_is_single_use(self, auth, container, email, account):
        token = await self._reset_token(auth, container, email)
        await auth.reset_password(token, "brand-new")
        with pytest.raises(ValidationError) as exc_info:
            await auth.reset_password(token, "another-one")
        assert exc_info.value.error_code == ErrorCode.INVALID_OR_EXPIRED_TOKEN

    async def test_weak_password_keeps_token(self, auth, container, email, account):
        token = await self._reset_token(auth, container, email)
        with pytest.raises(ValidationError) as exc_info:
            await auth.reset_password(token, "abc")
        assert exc_info.value.field == "new_password"
        assert (await auth.verify_reset_token(token)).email == "a@x.com"

    async def test_expired_token(self, auth, container, email, account, clock):
        token = await self._reset_token(auth, container, email)
        clock.advance(minutes=16)
        with pytest.raises(ValidationError) as exc_info:
            await auth.reset_password(token, "brand-new")
        assert exc_info.value.error_code == ErrorCode.INVALID_OR_EXPIRED_TOKEN

    async def test_account_deactivated_after_request(
        self, auth, container, repos, email, account
    ):
        token = await self._reset_token(auth, container, email)
        repos.users.raw(account.id)["is_active"] = False
        with pytest.raises(ForbiddenError) as exc_info:
            await auth.reset_password(token, "brand-new")
        assert exc_info.value.error_code == ErrorCode.ACCOUNT_INACTIVE
