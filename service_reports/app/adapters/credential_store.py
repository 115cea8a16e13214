"""
Shared session-token state for the upstream API.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Mapping, Optional

from shared.errors import AuthenticationError
from shared.logging import get_logger

SESSION_COOKIE = "accessToken"
RENEWAL_COOKIE = "refreshToken"
ANTI_FORGERY_COOKIE = "csrfToken"
ANTI_FORGERY_HEADER = "X-CSRF-TOKEN"


@dataclass(frozen=True)
class TokenSet:
    """The three upstream session tokens. Replaced as a whole, never patched."""

    session_token: str = field(default="", repr=False)
    renewal_token: str = field(default="", repr=False)
    anti_forgery_token: str = field(default="", repr=False)

    @property
    def is_valid(self) -> bool:
        return bool(self.session_token and self.renewal_token and self.anti_forgery_token)

    @classmethod
    def from_cookies(cls, cookies: Mapping[str, str]) -> "TokenSet":
        """Build a complete set from extracted cookies or raise AuthenticationError."""
        tokens = cls(
            session_token=cookies.get(SESSION_COOKIE, ""),
            renewal_token=cookies.get(RENEWAL_COOKIE, ""),
            anti_forgery_token=cookies.get(ANTI_FORGERY_COOKIE, ""),
        )
        if not tokens.is_valid:
            raise AuthenticationError(
                "Failed to extract authentication tokens",
                details={
                    SESSION_COOKIE: bool(tokens.session_token),
                    RENEWAL_COOKIE: bool(tokens.renewal_token),
                    ANTI_FORGERY_COOKIE: bool(tokens.anti_forgery_token),
                },
            )
        return tokens

    def auth_headers(self) -> Dict[str, str]:
        return {
            ANTI_FORGERY_HEADER: self.anti_forgery_token,
            "Cookie": f"{SESSION_COOKIE}={self.session_token}; {RENEWAL_COOKIE}={self.renewal_token}",
        }


class CredentialStore:
    """
    Guarded holder of the current TokenSet with single-flight login.

    Readers take the current set by reference; since sets are immutable and
    published with a single assignment, a reader sees either the previous or
    the new set, never a mix. Writes only happen inside the single pending
    login task, so at most one runs at a time: concurrent callers await that
    task and share its outcome, and a caller being cancelled does not cancel
    the shared login.
    """

    def __init__(self, login: Callable[[], Awaitable[TokenSet]]):
        self._login = login
        self._tokens = TokenSet()
        self._pending: Optional[asyncio.Task] = None
        self.login_count = 0
        self.logger = get_logger("reports.credential_store")

    @property
    def tokens(self) -> TokenSet:
        return self._tokens

    @property
    def is_authenticated(self) -> bool:
        return self._tokens.is_valid

    async def ensure_authenticated(self) -> TokenSet:
        """Return a valid TokenSet, logging in first when none is held."""
        tokens = self._tokens
        if tokens.is_valid:
            return tokens
        return await self._login_once()

    async def reauthenticate(self, stale: TokenSet) -> TokenSet:
        """Replace ``stale`` with a fresh set, unless another caller already did."""
        current = self._tokens
        if current.is_valid and current != stale:
            return current
        return await self._login_once()

    def clear(self) -> None:
        """Drop the held set so the next caller logs in again."""
        self._tokens = TokenSet()

    async def _login_once(self) -> TokenSet:
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._run_login())
            self._pending.add_done_callback(self._login_finished)
        return await asyncio.shield(self._pending)

    def _login_finished(self, task: asyncio.Task) -> None:
        if self._pending is task:
            self._pending = None
        # Marks a failure as retrieved even when every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    async def _run_login(self) -> TokenSet:
        self.login_count += 1
        self.logger.debug("Logging in to upstream API", attempt=self.login_count)
        tokens = await self._login()
        if not tokens.is_valid:
            raise AuthenticationError("Login returned an incomplete token set")
        self._tokens = tokens
        self.logger.debug(
            "Upstream session established",
            session_token_length=len(tokens.session_token),
            renewal_token_length=len(tokens.renewal_token),
        )
        return tokens
