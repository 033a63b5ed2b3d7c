# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel

from coreason_meter.exceptions import UnauthenticatedError
from coreason_meter.utils.logger import logger


class CallerIdentity(BaseModel):  # type: ignore[misc]
    subject: str
    audience: str


class TokenInfoClient(Protocol):
    async def token_info(self, token: str) -> Dict[str, Any]:
        """Return the identity provider's metadata for an access token."""
        ...


class GoogleTokenInfoClient:
    """Introspects access tokens against Google's token-info endpoint."""

    def __init__(self, tokeninfo_url: str, client: Optional[httpx.AsyncClient] = None) -> None:
        self.tokeninfo_url = tokeninfo_url
        self._client = client or httpx.AsyncClient()

    async def token_info(self, token: str) -> Dict[str, Any]:
        try:
            response = await self._client.get(self.tokeninfo_url, params={"access_token": token})
        except httpx.HTTPError as e:
            logger.error("Token info request failed: {}", e)
            raise UnauthenticatedError(f"Token verification failed: {e}") from e

        if response.status_code != 200:
            raise UnauthenticatedError(f"Token verification failed with status code {response.status_code}")

        try:
            info = response.json()
        except ValueError as e:
            raise UnauthenticatedError("Token verification returned an unreadable body") from e
        if not isinstance(info, dict):
            raise UnauthenticatedError("Token verification returned an unreadable body")
        return info

    async def close(self) -> None:
        await self._client.aclose()


def parse_bearer(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        raise UnauthenticatedError("Missing authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthenticatedError("Authorization header must be 'Bearer <token>'")
    return parts[1]


class IdentityVerifier:
    """Verifies callers' bearer tokens and checks they were issued for this client."""

    def __init__(self, client_id: str, token_client: TokenInfoClient) -> None:
        self.client_id = client_id
        self.token_client = token_client

    async def verify(self, authorization: Optional[str]) -> CallerIdentity:
        """
        Resolve the caller behind an authorization header.

        Raises UnauthenticatedError for a missing or malformed header, a token the
        identity provider rejects, or a token issued for a different audience.
        """
        token = parse_bearer(authorization)
        info = await self.token_client.token_info(token)

        audience = info.get("aud")
        if audience != self.client_id:
            logger.warning("Rejected token issued for audience {}", audience)
            raise UnauthenticatedError("Access token is not intended for this client")

        subject = info.get("email") or info.get("sub")
        if not subject:
            raise UnauthenticatedError("Access token does not identify a user")

        return CallerIdentity(subject=subject, audience=audience)
