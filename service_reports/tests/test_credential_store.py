"""
Tests for the shared credential store.
"""

import asyncio
import gc

import pytest

from service_reports.app.adapters.credential_store import CredentialStore, TokenSet
from shared.errors import AuthenticationError


def token_set(suffix: str = "1") -> TokenSet:
    return TokenSet(
        session_token=f"access-{suffix}",
        renewal_token=f"refresh-{suffix}",
        anti_forgery_token=f"csrf-{suffix}",
    )


class CountingLogin:
    """Login callable that yields control before returning a new token set."""

    def __init__(self, error: Exception = None):
        self.calls = 0
        self.error = error

    async def __call__(self) -> TokenSet:
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error
        return token_set(str(self.calls))


class TestTokenSet:
    """Test cases for TokenSet."""

    def test_from_cookies_requires_all_three(self):
        with pytest.raises(AuthenticationError) as exc_info:
            TokenSet.from_cookies({"accessToken": "a", "refreshToken": "r"})

        assert exc_info.value.message == "Failed to extract authentication tokens"
        assert exc_info.value.details["csrfToken"] is False

    def test_auth_headers(self):
        headers = token_set().auth_headers()

        assert headers["X-CSRF-TOKEN"] == "csrf-1"
        assert headers["Cookie"] == "accessToken=access-1; refreshToken=refresh-1"

    def test_repr_hides_token_values(self):
        assert "access-1" not in repr(token_set())

    def test_empty_set_is_invalid(self):
        assert TokenSet().is_valid is False


class TestCredentialStore:
    """Test cases for CredentialStore."""

    @pytest.mark.asyncio
    async def test_ensure_authenticated_logs_in_once(self):
        login = CountingLogin()
        store = CredentialStore(login)

        first = await store.ensure_authenticated()
        second = await store.ensure_authenticated()

        assert first is second
        assert login.calls == 1
        assert store.is_authenticated

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_login(self):
        login = CountingLogin()
        store = CredentialStore(login)

        results = await asyncio.gather(*(store.ensure_authenticated() for _ in range(10)))

        assert login.calls == 1
        assert store.login_count == 1
        assert all(result == results[0] for result in results)

    @pytest.mark.asyncio
    async def test_concurrent_callers_all_see_login_failure(self):
        login = CountingLogin(error=AuthenticationError("Login rejected: bad credentials"))
        store = CredentialStore(login)

        results = await asyncio.gather(
            *(store.ensure_authenticated() for _ in range(5)),
            return_exceptions=True
        )

        assert login.calls == 1
        assert all(isinstance(result, AuthenticationError) for result in results)
        assert store.is_authenticated is False

    @pytest.mark.asyncio
    async def test_failed_login_is_retried_on_next_call(self):
        login = CountingLogin(error=AuthenticationError("Login rejected"))
        store = CredentialStore(login)

        with pytest.raises(AuthenticationError):
            await store.ensure_authenticated()

        login.error = None
        tokens = await store.ensure_authenticated()

        assert tokens.is_valid
        assert login.calls == 2

    @pytest.mark.asyncio
    async def test_reauthenticate_replaces_stale_set(self):
        login = CountingLogin()
        store = CredentialStore(login)
        stale = await store.ensure_authenticated()

        fresh = await store.reauthenticate(stale)

        assert fresh != stale
        assert store.tokens == fresh
        assert login.calls == 2

    @pytest.mark.asyncio
    async def test_reauthenticate_skips_login_when_already_refreshed(self):
        login = CountingLogin()
        store = CredentialStore(login)
        stale = await store.ensure_authenticated()
        fresh = await store.reauthenticate(stale)

        again = await store.reauthenticate(stale)

        assert again is fresh
        assert login.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_reauthentication_is_single_flight(self):
        login = CountingLogin()
        store = CredentialStore(login)
        stale = await store.ensure_authenticated()

        await asyncio.gather(*(store.reauthenticate(stale) for _ in range(10)))

        assert login.calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_login(self):
        login = CountingLogin()
        store = CredentialStore(login)

        waiter = asyncio.ensure_future(store.ensure_authenticated())
        other = asyncio.ensure_future(store.ensure_authenticated())
        await asyncio.sleep(0)
        waiter.cancel()

        tokens = await other

        assert tokens.is_valid
        assert login.calls == 1

    @pytest.mark.asyncio
    async def test_incomplete_login_result_is_rejected(self):
        async def partial_login():
            return TokenSet(session_token="a")

        store = CredentialStore(partial_login)

        with pytest.raises(AuthenticationError):
            await store.ensure_authenticated()
        assert store.is_authenticated is False

    @pytest.mark.asyncio
    async def test_clear(self):
        store = CredentialStore(CountingLogin())
        await store.ensure_authenticated()

        store.clear()

        assert store.is_authenticated is False

    @pytest.mark.asyncio
    async def test_failed_login_with_all_callers_cancelled_is_not_reported_unhandled(self):
        loop = asyncio.get_running_loop()
        unhandled = []
        loop.set_exception_handler(lambda _loop, context: unhandled.append(context))
        try:
            login = CountingLogin(error=AuthenticationError("Login rejected"))
            store = CredentialStore(login)

            waiter = asyncio.ensure_future(store.ensure_authenticated())
            await asyncio.sleep(0)
            waiter.cancel()
            await asyncio.sleep(0.05)
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert login.calls == 1
        assert store._pending is None
        assert unhandled == []

    @pytest.mark.asyncio
    async def test_pending_login_is_released_after_success(self):
        store = CredentialStore(CountingLogin())

        await store.ensure_authenticated()
        await asyncio.sleep(0)

        assert store._pending is None
