# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

import json
from typing import Any

import httpx
import pytest

from coreason_meter.config import CoreasonMeterConfig
from coreason_meter.exceptions import TransportError, UpstreamError
from coreason_meter.gateway import MeteredGateway
from coreason_meter.upstream import UpstreamInvoker

from .fakes import UPSTREAM_URL, UpstreamStub

REQUEST_BODY = b'{"model": "gpt-4", "messages": [{"role": "user", "content": "hi"}]}'


def _invoker(handler: Any) -> UpstreamInvoker:
    return UpstreamInvoker(UPSTREAM_URL, "sk-test", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_invoke_forwards_body_verbatim(upstream_stub: UpstreamStub) -> None:
    invoker = _invoker(upstream_stub)
    completion = await invoker.invoke(REQUEST_BODY)
    await invoker.close()

    assert len(upstream_stub.requests) == 1
    request = upstream_stub.requests[0]
    assert request.method == "POST"
    assert str(request.url) == UPSTREAM_URL
    assert request.content == REQUEST_BODY
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["Content-Type"] == "application/json"

    assert completion.status_code == 200
    assert completion.payload["model"] == "gpt-3.5-turbo"
    assert json.loads(completion.raw) == upstream_stub.json


@pytest.mark.asyncio
async def test_invoke_keeps_raw_body_text() -> None:
    raw = '{"model":"gpt-4",  "usage":{"prompt_tokens":1,"completion_tokens":2}}'
    invoker = _invoker(lambda request: httpx.Response(200, text=raw))
    completion = await invoker.invoke(REQUEST_BODY)
    await invoker.close()

    assert completion.raw == raw


@pytest.mark.asyncio
async def test_invoke_non_2xx_preserves_body() -> None:
    invoker = _invoker(lambda request: httpx.Response(429, text='{"error": "rate limited"}'))
    with pytest.raises(UpstreamError) as exc_info:
        await invoker.invoke(REQUEST_BODY)
    await invoker.close()

    assert exc_info.value.status_code == 429
    assert exc_info.value.body == '{"error": "rate limited"}'
    assert "429" in str(exc_info.value)


@pytest.mark.asyncio
async def test_invoke_unparseable_success_body() -> None:
    invoker = _invoker(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(UpstreamError) as exc_info:
        await invoker.invoke(REQUEST_BODY)
    await invoker.close()

    assert exc_info.value.body == "<html>oops</html>"


@pytest.mark.asyncio
async def test_invoke_non_object_json() -> None:
    invoker = _invoker(lambda request: httpx.Response(200, json=[1, 2, 3]))
    with pytest.raises(UpstreamError):
        await invoker.invoke(REQUEST_BODY)
    await invoker.close()


@pytest.mark.asyncio
async def test_invoke_transport_error(upstream_stub: UpstreamStub) -> None:
    upstream_stub.error = httpx.ConnectError("connection refused")
    invoker = _invoker(upstream_stub)
    with pytest.raises(TransportError, match="connection refused"):
        await invoker.invoke(REQUEST_BODY)
    await invoker.close()

    # Single attempt, no retry
    assert len(upstream_stub.requests) == 1


def test_configured_timeout() -> None:
    invoker = UpstreamInvoker(UPSTREAM_URL, "sk-test", timeout=12.5)
    assert invoker._client.timeout.read == 12.5


def test_no_timeout_by_default() -> None:
    invoker = UpstreamInvoker(UPSTREAM_URL, "sk-test")
    assert invoker._client.timeout == httpx.Timeout(None)
    assert invoker._client.timeout.read is None


def test_gateway_upstream_has_no_timeout_by_default() -> None:
    gateway = MeteredGateway(CoreasonMeterConfig(client_id="c", openai_key="k"))
    assert gateway.upstream._client.timeout == httpx.Timeout(None)

