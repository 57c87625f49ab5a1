"""Application-credential token management.

TokenAuth issues X-Auth-Token values from the IAM identity API using an
application credential, caches them until shortly before expiry and
reissues on demand. It implements the `Auth` protocol used by
HttpClient, so every service client shares one token.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Any

import aiohttp
from loguru import logger

from kcprovider.constants import HTTP_TIMEOUT, TOKEN_EXPIRY_SKEW
from kcprovider.core.exceptions import AuthenticationError

TOKEN_PATH = "/identity/v3/auth/tokens"
SUBJECT_TOKEN_HEADER = "X-Subject-Token"


def _parse_expiry(payload: Any) -> float:
    """Convert the token's RFC 3339 `expires_at` into a wall-clock timestamp."""
    try:
        raw = payload["token"]["expires_at"]
    except (KeyError, TypeError) as e:
        raise AuthenticationError("no expiration time found in token response") from e
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).timestamp()
    except (AttributeError, ValueError) as e:
        raise AuthenticationError(f"failed to parse token expiration time: {raw!r}") from e


class TokenAuth:
    def __init__(
        self,
        identity_url: str,
        credential_id: str,
        credential_secret: str,
        *,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        self._identity_url = identity_url.rstrip("/")
        self._credential_id = credential_id
        self._credential_secret = credential_secret
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._token: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()
        self._log = logger.bind(component="auth")

    @property
    def token(self) -> str | None:
        return self._token

    def _request_body(self) -> dict[str, Any]:
        return {
            "auth": {
                "identity": {
                    "methods": ["application_credential"],
                    "application_credential": {
                        "id": self._credential_id,
                        "secret": self._credential_secret,
                    },
                },
            },
        }

    async def _issue(self) -> tuple[str, float]:
        self._log.debug("Issuing token for credential {id}", id=self._credential_id)
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session, session.post(
                f"{self._identity_url}{TOKEN_PATH}", json=self._request_body()
            ) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    self._log.error(
                        "Token issue failed: status={status} body={body}",
                        status=resp.status, body=body[:200],
                    )
                    raise AuthenticationError(f"failed to issue token: HTTP {resp.status}: {body}")
                token = resp.headers.get(SUBJECT_TOKEN_HEADER, "")
                payload = await resp.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError) as e:
            raise AuthenticationError(f"failed to issue token: {e}") from e

        if not token:
            raise AuthenticationError("no token found in response headers")
        return token, _parse_expiry(payload)

    async def _validate(self, token: str) -> bool:
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session, session.get(
                f"{self._identity_url}{TOKEN_PATH}",
                headers={"X-Auth-Token": token, SUBJECT_TOKEN_HEADER: token},
            ) as resp:
                return resp.status == 200
        except (aiohttp.ClientError, TimeoutError) as e:
            self._log.debug("Token validation request failed: {error}", error=e)
            return False

    async def issue_new_token(self) -> str:
        async with self._lock:
            self._token, self._expires_at = await self._issue()
            return self._token

    async def get_valid_token(self) -> str:
        """Cached token, revalidated near expiry and reissued when rejected."""
        async with self._lock:
            token = self._token
            if token and time.time() + TOKEN_EXPIRY_SKEW < self._expires_at:
                return token
        if token and await self._validate(token):
            return token
        return await self.issue_new_token()

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0

    # ─── Auth protocol ───────────────────────────────────────────────

    async def headers(self) -> dict[str, str]:
        return {
            "X-Auth-Token": await self.get_valid_token(),
            "Accept": "application/json",
        }

    async def refresh(self) -> None:
        self.invalidate()
        await self.issue_new_token()
