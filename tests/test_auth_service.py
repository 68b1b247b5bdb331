"""Tests for the authentication service."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from blogplatform.models.compromised_refresh_token import CompromisedRefreshToken
from blogplatform.models.user import Role
from blogplatform.services.auth import (
    ACCOUNT_LOCKED,
    ACCOUNT_LOCKED_NOW,
    EMAIL_ALREADY_EXISTS,
    INVALID_ACCESS_TOKEN,
    INVALID_CREDENTIALS,
    INVALID_REFRESH_TOKEN,
    PASSWORDS_DO_NOT_MATCH,
    USER_NOT_FOUND,
    AuthService,
)
from blogplatform.services.token import TokenService, hash_token
from tests.conftest import TEST_PASSWORD
from tests.fakes import FakeClock, InMemoryCompromisedTokenStore, RacingCompromisedTokenStore

WRONG_PASSWORD = "Wr0ng!Password"


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_issues_valid_tokens(self, auth_service, token_service):
        result = await auth_service.register("a@x.com", TEST_PASSWORD, TEST_PASSWORD, "Ann X")

        assert result.success
        assert result.errors == ()
        assert token_service.verify_access_token(result.access_token)
        assert result.refresh_token
        assert result.access_token_expires_at > datetime.now(UTC)
        assert result.profile.email == "a@x.com"
        assert result.profile.full_name == "Ann X"
        assert result.profile.roles == (Role.USER,)

    @pytest.mark.asyncio
    async def test_register_assigns_user_role_claim(self, auth_service, token_service):
        result = await auth_service.register("a@x.com", TEST_PASSWORD, TEST_PASSWORD, "Ann X")

        principal = token_service.read_access_token(result.access_token)
        assert principal.roles == frozenset({Role.USER})
        assert principal.user_id == str(result.profile.user_id)

    @pytest.mark.asyncio
    async def test_duplicate_email(self, auth_service, user_factory):
        await user_factory(email="a@x.com")

        result = await auth_service.register("A@X.com", TEST_PASSWORD, TEST_PASSWORD, "Ann")

        assert not result.success
        assert result.errors == (EMAIL_ALREADY_EXISTS,)
        assert result.access_token is None

    @pytest.mark.asyncio
    async def test_password_mismatch(self, auth_service):
        result = await auth_service.register("a@x.com", TEST_PASSWORD, "Different1!", "Ann")

        assert result.errors == (PASSWORDS_DO_NOT_MATCH,)

    @pytest.mark.asyncio
    async def test_password_policy_errors_are_returned(self, auth_service, user_store):
        result = await auth_service.register("a@x.com", "weakpassword", "weakpassword", "Ann")

        assert not result.success
        assert "Passwords must have at least one digit ('0'-'9')." in result.errors
        assert await user_store.find_by_email("a@x.com") is None


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_success(self, auth_service, token_service, user_factory, user_store):
        await user_factory(email="a@x.com")

        result = await auth_service.login("a@x.com", TEST_PASSWORD)

        assert result.success
        assert token_service.verify_access_token(result.access_token)
        user = await user_store.find_by_email("a@x.com")
        assert user.last_login_at is not None

    @pytest.mark.asyncio
    async def test_unknown_email_and_wrong_password_look_the_same(
        self, auth_service, user_factory
    ):
        await user_factory(email="a@x.com")

        unknown = await auth_service.login("nobody@x.com", TEST_PASSWORD)
        wrong = await auth_service.login("a@x.com", WRONG_PASSWORD)

        assert unknown.errors == wrong.errors == (INVALID_CREDENTIALS,)

    @pytest.mark.asyncio
    async def test_lockout_after_five_failures(self, auth_service, user_factory):
        await user_factory(email="a@x.com")

        results = [await auth_service.login("a@x.com", WRONG_PASSWORD) for _ in range(5)]
        sixth = await auth_service.login("a@x.com", TEST_PASSWORD)

        assert [r.errors for r in results[:4]] == [(INVALID_CREDENTIALS,)] * 4
        assert results[4].errors == (ACCOUNT_LOCKED_NOW,)
        assert not sixth.success
        assert sixth.errors[0].startswith("Account is locked. Please try again after ")
        assert INVALID_CREDENTIALS not in sixth.errors

    @pytest.mark.asyncio
    async def test_locked_account_skips_password_check(self, auth_service, user_factory, user_store):
        await user_factory(email="a@x.com")
        user = await user_store.find_by_email("a@x.com")
        user.lockout_end = datetime.now(UTC) + timedelta(minutes=10)

        await auth_service.login("a@x.com", WRONG_PASSWORD)

        assert user.access_failed_count == 0

    @pytest.mark.asyncio
    async def test_last_login_failure_does_not_block_login(
        self, auth_service, user_factory, user_store, monkeypatch
    ):
        await user_factory(email="a@x.com")

        async def broken_update(user):
            raise SQLAlchemyError("write failed")

        monkeypatch.setattr(user_store, "update", broken_update)

        result = await auth_service.login("a@x.com", TEST_PASSWORD)

        assert result.success


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_rotates_tokens(self, auth_service, token_service, user_factory):
        first = await user_factory()

        second = await auth_service.refresh_token(first.access_token, first.refresh_token)

        assert second.success
        assert second.refresh_token != first.refresh_token
        assert token_service.verify_access_token(second.access_token)
        assert await token_service.is_refresh_token_compromised(first.refresh_token)

    @pytest.mark.asyncio
    async def test_refresh_token_is_single_use(self, auth_service, user_factory):
        login = await user_factory()

        first = await auth_service.refresh_token(login.access_token, login.refresh_token)
        second = await auth_service.refresh_token(login.access_token, login.refresh_token)

        assert first.success
        assert not second.success
        assert second.errors == (INVALID_REFRESH_TOKEN,)

    @pytest.mark.asyncio
    async def test_rotation_records_reason(self, auth_service, user_factory, db_session):
        login = await user_factory()

        await auth_service.refresh_token(login.access_token, login.refresh_token)

        row = (
            await db_session.execute(
                select(CompromisedRefreshToken).where(
                    CompromisedRefreshToken.token_hash == hash_token(login.refresh_token)
                )
            )
        ).scalar_one()
        assert row.reason == "token_refresh"

    @pytest.mark.asyncio
    async def test_refresh_with_expired_access_token(
        self, jwt_settings, token_store, user_store, user_factory
    ):
        login = await user_factory()
        user = await user_store.find_by_email("alice@example.com")
        past = TokenService(
            jwt_settings, token_store, clock=FakeClock(datetime.now(UTC) - timedelta(hours=2))
        )
        expired_access = past.issue_access_token(user, [Role.USER])
        assert not past.verify_access_token(expired_access)

        service = AuthService(user_store, TokenService(jwt_settings, token_store))
        result = await service.refresh_token(expired_access, login.refresh_token)

        assert result.success

    @pytest.mark.asyncio
    async def test_compromised_refresh_token_short_circuits(self, auth_service, user_factory):
        login = await user_factory()
        await auth_service.logout(login.profile.user_id, login.refresh_token)

        # Garbage access token: rejection must come from the blacklist check
        result = await auth_service.refresh_token("garbage", login.refresh_token)

        assert result.errors == (INVALID_REFRESH_TOKEN,)

    @pytest.mark.asyncio
    async def test_invalid_access_token(self, auth_service, user_factory):
        login = await user_factory()

        result = await auth_service.refresh_token("garbage", login.refresh_token)

        assert result.errors == (INVALID_ACCESS_TOKEN,)

    @pytest.mark.asyncio
    async def test_unknown_user(self, jwt_settings, token_store, user_store, token_service):
        from blogplatform.models.user import User

        ghost = User(id=uuid4(), email="ghost@x.com", full_name="Ghost", security_stamp="s")
        access = token_service.issue_access_token(ghost, [Role.USER])
        service = AuthService(user_store, token_service)

        result = await service.refresh_token(access, token_service.issue_refresh_token())

        assert result.errors == (USER_NOT_FOUND,)

    @pytest.mark.asyncio
    async def test_locked_out_user(self, auth_service, user_factory, user_store):
        login = await user_factory()
        user = await user_store.find_by_email("alice@example.com")
        user.lockout_end = datetime.now(UTC) + timedelta(minutes=10)

        result = await auth_service.refresh_token(login.access_token, login.refresh_token)

        assert result.errors == (ACCOUNT_LOCKED,)

    @pytest.mark.asyncio
    async def test_revoked_access_token_cannot_refresh(self, auth_service, user_factory):
        login = await user_factory()
        await auth_service.revoke_all_tokens(login.profile.user_id)

        result = await auth_service.refresh_token(login.access_token, login.refresh_token)

        assert result.errors == (INVALID_REFRESH_TOKEN,)

    @pytest.mark.asyncio
    async def test_concurrent_refresh_loses_race(self, jwt_settings, user_store, user_factory):
        login = await user_factory()
        service = AuthService(
            user_store, TokenService(jwt_settings, RacingCompromisedTokenStore())
        )

        result = await service.refresh_token(login.access_token, login.refresh_token)

        assert result.errors == (INVALID_REFRESH_TOKEN,)

    @pytest.mark.asyncio
    async def test_refresh_purges_expired_entries(self, jwt_settings, user_store, user_factory):
        login = await user_factory()
        store = InMemoryCompromisedTokenStore()
        clock = FakeClock(datetime.now(UTC))
        tokens = TokenService(jwt_settings, store, clock=clock)
        old_clock = FakeClock(datetime.now(UTC) - timedelta(days=10))
        await TokenService(jwt_settings, store, clock=old_clock).compromise_refresh_token(
            "stale", "logout"
        )

        result = await AuthService(user_store, tokens).refresh_token(
            login.access_token, login.refresh_token
        )

        assert result.success
        assert hash_token("stale") not in store.records
        assert hash_token(login.refresh_token) in store.records


class TestLogoutAndRevoke:
    @pytest.mark.asyncio
    async def test_logout_blacklists_refresh_token(self, auth_service, user_factory):
        login = await user_factory()

        assert await auth_service.logout(login.profile.user_id, login.refresh_token) is True
        result = await auth_service.refresh_token(login.access_token, login.refresh_token)

        assert result.errors == (INVALID_REFRESH_TOKEN,)

    @pytest.mark.asyncio
    async def test_logout_is_idempotent(self, auth_service, user_factory, db_session):
        login = await user_factory()

        assert await auth_service.logout(login.profile.user_id, login.refresh_token)
        assert await auth_service.logout(login.profile.user_id, login.refresh_token)

        rows = (await db_session.execute(select(CompromisedRefreshToken))).scalars().all()
        assert len(rows) == 1
        assert rows[0].reason == "logout"

    @pytest.mark.asyncio
    async def test_revoke_all_rotates_stamp(self, auth_service, user_factory, user_store):
        login = await user_factory()
        user = await user_store.find_by_email("alice@example.com")
        before = user.security_stamp

        assert await auth_service.revoke_all_tokens(str(login.profile.user_id)) is True

        assert user.security_stamp != before

    @pytest.mark.asyncio
    async def test_revoke_all_unknown_user(self, auth_service):
        assert await auth_service.revoke_all_tokens(uuid4()) is False

    @pytest.mark.asyncio
    async def test_validate_token_user(self, auth_service, token_service, user_factory):
        login = await user_factory()
        principal = token_service.read_access_token(login.access_token)

        assert await auth_service.validate_token_user(principal) is not None

        await auth_service.revoke_all_tokens(login.profile.user_id)

        assert await auth_service.validate_token_user(principal) is None


class TestUserInfo:
    @pytest.mark.asyncio
    async def test_get_user_info(self, auth_service, user_factory):
        login = await user_factory(email="a@x.com", full_name="Ann X")

        profile = await auth_service.get_user_info(login.profile.user_id)

        assert profile.email == "a@x.com"
        assert profile.full_name == "Ann X"
        assert profile.roles == (Role.USER,)

    @pytest.mark.asyncio
    async def test_get_user_info_unknown(self, auth_service):
        assert await auth_service.get_user_info(uuid4()) is None


class TestFailedLoginPersistence:
    @pytest.mark.asyncio
    async def test_failed_attempt_survives_commit(
        self, auth_service, user_factory, db_session, session_factory, password_hasher
    ):
        from blogplatform.services.user_store import SqlAlchemyUserStore

        await user_factory(email="a@x.com")
        await db_session.commit()

        result = await auth_service.login("a@x.com", WRONG_PASSWORD)
        await db_session.commit()

        assert result.errors == (INVALID_CREDENTIALS,)
        async with session_factory() as session:
            user = await SqlAlchemyUserStore(session, hasher=password_hasher).find_by_email(
                "a@x.com"
            )
            assert user.access_failed_count == 1

    @pytest.mark.asyncio
    async def test_lockout_survives_commit(
        self, auth_service, user_factory, db_session, session_factory, password_hasher
    ):
        from blogplatform.services.user_store import SqlAlchemyUserStore

        await user_factory(email="a@x.com")
        for _ in range(5):
            result = await auth_service.login("a@x.com", WRONG_PASSWORD)
        await db_session.commit()

        assert result.errors == (ACCOUNT_LOCKED_NOW,)
        async with session_factory() as session:
            store = SqlAlchemyUserStore(session, hasher=password_hasher)
            user = await store.find_by_email("a@x.com")
            assert await store.is_locked_out(user) is True
