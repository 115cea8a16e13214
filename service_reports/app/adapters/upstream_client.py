"""
Authenticated client for the upstream student-management API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from shared.errors import (
    AuthenticationError,
    ConfigurationError,
    InvalidArgument,
    TransportError,
    UpstreamError,
)
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryError, retry_on_exception

from ..domain.models import Entity, EntitySummary
from .cookies import extract_cookie_directives
from .credential_store import CredentialStore, TokenSet


class UpstreamClient:
    """
    Client for the upstream API using a service account.

    The client logs in with the configured identity/secret, keeps the session
    tokens in a shared CredentialStore and sends them with every call. A 401
    on an authenticated call triggers exactly one re-login and one retry.
    Network failures are retried by the transport layer up to
    ``retry_attempts`` times before surfacing as TransportError.
    """

    def __init__(
        self,
        base_url: str,
        identity: str,
        secret: str,
        *,
        entity_path: str = "/students",
        timeout: float = 30.0,
        health_timeout: float = 5.0,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        if not identity or not secret:
            raise ConfigurationError("Service credentials not configured")

        self.base_url = base_url.rstrip("/")
        self.entity_path = "/" + entity_path.strip("/")
        self.health_timeout = health_timeout
        self.logger = get_logger("reports.upstream_client")

        self._identity = identity
        self._secret = secret
        self._transport = transport
        self.metrics = metrics
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

        self.retry_config = RetryConfig.for_retries(retry_attempts, retry_delay)
        self._send_with_retry = retry_on_exception(
            (httpx.TransportError,), config=self.retry_config
        )(self._send_once)

        self.credentials = CredentialStore(self._login)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
        self.logger.debug("Upstream client closed")

    async def ensure_authenticated(self) -> TokenSet:
        return await self.credentials.ensure_authenticated()

    async def _send_once(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._client.request(method, path, **kwargs)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._send_with_retry(method, path, **kwargs)
        except RetryError as exc:
            raise TransportError(
                f"Upstream request failed: {exc.last_exception}",
                details={"method": method, "path": path, "attempts": exc.attempts}
            ) from exc

    async def _login(self) -> TokenSet:
        """Submit service credentials and extract the session tokens from the response cookies."""
        self.logger.debug("Authenticating with upstream API", base_url=self.base_url)

        response = await self._send(
            "POST",
            "/auth/login",
            json={"username": self._identity, "password": self._secret},
        )

        if response.is_error:
            message, details = self._error_payload(response)
            raise AuthenticationError(
                f"Login rejected: {message}",
                details={"status_code": response.status_code, "error": details}
            )

        cookies = extract_cookie_directives(response.headers.get_list("set-cookie"))
        tokens = TokenSet.from_cookies(cookies)
        self._record("upstream_login")
        return tokens

    async def request_with_auth(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Send an authenticated request, re-authenticating once on an expired session."""
        tokens = await self.credentials.ensure_authenticated()
        response = await self._send(method, path, params=params, headers=tokens.auth_headers())
        if response.status_code != 401:
            return response

        self.logger.info("Upstream session expired, re-authenticating", path=path)
        self._record("upstream_reauthentication")
        tokens = await self.credentials.reauthenticate(tokens)
        response = await self._send(method, path, params=params, headers=tokens.auth_headers())
        if response.status_code == 401:
            self.credentials.clear()
            message, _ = self._error_payload(response)
            raise AuthenticationError(
                "Upstream rejected session after re-authentication",
                details={"status_code": 401, "path": path, "error": message}
            )
        return response

    async def fetch_entity(self, entity_id: int) -> Entity:
        """Retrieve a single student by id."""
        if entity_id <= 0:
            raise InvalidArgument(f"invalid entity ID: {entity_id}", details={"entity_id": entity_id})

        path = f"{self.entity_path}/{entity_id}"
        self.logger.debug("Fetching entity", entity_id=entity_id, path=path)

        response = await self.request_with_auth("GET", path)
        data = self._unwrap(response)
        if not isinstance(data, dict):
            raise UpstreamError(response.status_code, "Malformed entity payload", "data is not an object")
        try:
            return Entity.model_validate(data)
        except ValidationError as exc:
            raise UpstreamError(response.status_code, "Malformed entity payload", str(exc)) from exc

    async def list_entities(self, filters: Optional[Dict[str, str]] = None) -> List[EntitySummary]:
        """Retrieve students, dropping blank filters before building the query."""
        params = {
            key: value
            for key, value in sorted((filters or {}).items())
            if value is not None and value.strip()
        }
        self.logger.debug("Listing entities", filters=params)

        response = await self.request_with_auth("GET", self.entity_path, params=params or None)
        data = self._unwrap(response)
        if data is None:
            return []
        if not isinstance(data, list):
            raise UpstreamError(response.status_code, "Malformed entity list payload", "data is not a list")
        try:
            return [EntitySummary.model_validate(item) for item in data]
        except ValidationError as exc:
            raise UpstreamError(response.status_code, "Malformed entity list payload", str(exc)) from exc

    async def health_probe(self) -> None:
        """Unauthenticated reachability check against the base path."""
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.health_timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get("/")
            except httpx.HTTPError as exc:
                raise TransportError(f"health check request failed: {exc}") from exc

        if response.status_code >= 500:
            raise UpstreamError(
                response.status_code,
                f"Upstream API is experiencing server errors (status: {response.status_code})"
            )

    def _record(self, event: str) -> None:
        if self.metrics is not None:
            self.metrics.record_business_event(event)

    def _unwrap(self, response: httpx.Response) -> Any:
        """Return ``data`` from the ``{success, data, message}`` envelope."""
        self.logger.debug(
            "Received upstream response",
            status_code=response.status_code,
            body_size=len(response.content)
        )

        if response.is_error:
            message, details = self._error_payload(response)
            raise UpstreamError(response.status_code, message, details)

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(response.status_code, "Malformed upstream response", str(exc)) from exc

        if not isinstance(payload, dict):
            raise UpstreamError(response.status_code, "Malformed upstream response", "envelope is not an object")
        if not payload.get("success"):
            raise UpstreamError(
                response.status_code,
                payload.get("message") or "Upstream request failed",
                "API returned success=false"
            )
        return payload.get("data")

    @staticmethod
    def _error_payload(response: httpx.Response) -> "tuple[str, Optional[str]]":
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"]), payload.get("error")
        return response.reason_phrase or f"HTTP {response.status_code}", response.text or None
