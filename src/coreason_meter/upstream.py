# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from typing import Any, Dict, Optional, Union

import httpx
from pydantic import BaseModel

from coreason_meter.exceptions import TransportError, UpstreamError
from coreason_meter.utils.logger import logger


class CompletionResponse(BaseModel):  # type: ignore[misc]
    """A successful completion: the parsed payload plus the exact body text to hand back."""

    status_code: int
    payload: Dict[str, Any]
    raw: str


class UpstreamInvoker:
    """Forwards completion requests to the upstream API, one attempt per call."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        if client is None:
            # Completions can run for minutes; no timeout unless one is configured
            client = httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._client = client

    async def invoke(self, body: Union[bytes, str]) -> CompletionResponse:
        """
        POST the caller's body unmodified and return the parsed response.

        Raises:
            UpstreamError: non-2xx status, or a 2xx body that is not a JSON object.
            TransportError: the request could not be completed.
        """
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            response = await self._client.post(self.url, content=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Upstream request failed: {}", e)
            raise TransportError(f"Upstream request failed: {e}") from e

        text = response.text
        if not response.is_success:
            logger.warning("Upstream returned status {}", response.status_code)
            raise UpstreamError(response.status_code, text)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(response.status_code, text) from e
        if not isinstance(payload, dict):
            raise UpstreamError(response.status_code, text)

        return CompletionResponse(status_code=response.status_code, payload=payload, raw=text)

    async def close(self) -> None:
        await self._client.aclose()
