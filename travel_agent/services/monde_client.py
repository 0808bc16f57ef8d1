"""Async HTTP client for the Monde back-office REST API (v2, JSON:API).

Every request carries ``Authorization: Bearer <token>``. The token comes
from a ``CredentialCache`` fed by ``MondeClient.login`` (``POST /tokens``).

Failure handling
────────────────
* 401 → invalidate the token, log in again once, retry the request once.
  A second 401 is raised as ``ApiError`` (no third attempt).
* 204 → ``{}`` (nothing to parse).
* Any other non-2xx → ``ApiError`` carrying status and raw body.
* Network-level failure → ``TransportError``; never retried.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any

import httpx

from travel_agent.config import MONDE_BASE_URL, MONDE_TIMEOUT_SECONDS, require_env
from travel_agent.errors import ApiError, AuthError, ConfigurationError, TransportError
from travel_agent.services.credentials import CredentialCache
from travel_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

JSONAPI_MEDIA_TYPE = "application/vnd.api+json"

JsonDict = dict[str, Any]


class MondeClient:
    """Authenticated JSON:API client.

    ``http_client`` and ``credentials`` are injectable for tests; by default a
    fresh ``httpx.AsyncClient`` and ``CredentialCache`` are created.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        login: str | None = None,
        password: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        credentials: CredentialCache | None = None,
    ):
        self._base_url = (base_url or MONDE_BASE_URL).rstrip("/")
        self._login_name = login
        self._password = password
        self._client = http_client or httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Accept": JSONAPI_MEDIA_TYPE, "Content-Type": JSONAPI_MEDIA_TYPE},
            timeout=MONDE_TIMEOUT_SECONDS,
        )
        self._credentials = credentials or CredentialCache(self.login)

    @property
    def credentials(self) -> CredentialCache:
        return self._credentials

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Authentication ───────────────────────────────────────────────

    async def login(self) -> str:
        """Exchange the configured login/password for a bearer token."""
        try:
            attributes = {
                "login": self._login_name or require_env("MONDE_LOGIN"),
                "password": self._password or require_env("MONDE_PASSWORD"),
            }
        except ConfigurationError as exc:
            raise AuthError(str(exc)) from exc

        payload = {"data": {"type": "tokens", "attributes": attributes}}
        t0 = time.perf_counter()
        try:
            response = await self._client.post(
                "/tokens",
                content=json.dumps(payload),
                headers={"Accept": JSONAPI_MEDIA_TYPE, "Content-Type": JSONAPI_MEDIA_TYPE},
            )
        except httpx.RequestError as exc:
            metrics.record_failure("monde-auth", "POST /tokens", type(exc).__name__)
            logger.error("Monde login could not reach the server: %s", exc)
            raise AuthError(f"Monde login failed: {exc}") from exc
        elapsed = (time.perf_counter() - t0) * 1000

        if not response.is_success:
            metrics.record_failure(
                "monde-auth", "POST /tokens", str(response.status_code), latency_ms=elapsed,
            )
            logger.error("Monde login rejected: %d %s", response.status_code, response.text)
            raise AuthError(
                f"Monde login failed: {response.status_code} {response.reason_phrase}"
            )

        try:
            token = response.json()["data"]["attributes"]["token"]
        except (ValueError, KeyError, TypeError) as exc:
            metrics.record_failure("monde-auth", "POST /tokens", "malformed", latency_ms=elapsed)
            raise AuthError("Monde login response did not contain a token") from exc

        metrics.record_success("monde-auth", "POST /tokens", latency_ms=elapsed)
        logger.info("Obtained Monde API token")
        return token

    # ── Requests ─────────────────────────────────────────────────────

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: JsonDict | None = None,
        *,
        params: dict[str, Any] | None = None,
    ) -> JsonDict:
        """Send an authenticated request and return the parsed JSON body."""
        token = await self._credentials.get_token()
        response = await self._send(method, endpoint, token, body, params)

        if response.status_code == 401:
            logger.warning("Monde token rejected on %s %s, refreshing…", method, endpoint)
            self._credentials.invalidate()
            token = await self._credentials.get_token()
            response = await self._send(method, endpoint, token, body, params)
            # A second 401 falls through to ApiError below

        if response.status_code == 204:
            return {}

        if not response.is_success:
            metrics.record_failure("monde", f"{method} {endpoint}", str(response.status_code))
            logger.error(
                "Monde API %s %s failed: %d %s",
                method, endpoint, response.status_code, response.text,
            )
            raise ApiError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as exc:
            logger.error("Monde API %s %s returned a non-JSON body", method, endpoint)
            raise ApiError(response.status_code, response.text) from exc

    async def _send(
        self,
        method: str,
        endpoint: str,
        token: str,
        body: JsonDict | None,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        t0 = time.perf_counter()
        try:
            response = await self._client.request(
                method,
                endpoint,
                params=params,
                content=json.dumps(body) if body is not None else None,
                headers={
                    "Accept": JSONAPI_MEDIA_TYPE,
                    "Content-Type": JSONAPI_MEDIA_TYPE,
                    "Authorization": f"Bearer {token}",
                },
            )
        except httpx.RequestError as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "monde", f"{method} {endpoint}", type(exc).__name__, latency_ms=elapsed,
            )
            logger.error("Monde API %s %s unreachable: %s", method, endpoint, exc)
            raise TransportError(f"Could not reach the Monde API: {exc}") from exc

        elapsed = (time.perf_counter() - t0) * 1000
        if response.is_success:
            metrics.record_success("monde", f"{method} {endpoint}", latency_ms=elapsed)
        return response

    async def get(self, endpoint: str, *, params: dict[str, Any] | None = None) -> JsonDict:
        return await self.request(endpoint, "GET", params=params)

    async def post(self, endpoint: str, body: JsonDict) -> JsonDict:
        return await self.request(endpoint, "POST", body)

    async def patch(self, endpoint: str, body: JsonDict) -> JsonDict:
        return await self.request(endpoint, "PATCH", body)

    async def delete(self, endpoint: str) -> JsonDict:
        return await self.request(endpoint, "DELETE")


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: MondeClient | None = None
_client_lock = threading.Lock()


def get_monde_client() -> MondeClient:
    """Return the process-wide ``MondeClient``, creating it on first use."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = MondeClient()
    return _client
