# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from typing import AsyncGenerator, Callable

import fakeredis
import httpx
import pytest
import pytest_asyncio
from fakeredis import aioredis

from coreason_meter.audit import TransactionLogger
from coreason_meter.config import CoreasonMeterConfig
from coreason_meter.gateway import MeteredGateway
from coreason_meter.identity import IdentityVerifier
from coreason_meter.ledger import RedisLedger
from coreason_meter.upstream import UpstreamInvoker

from .fakes import CLIENT_ID, FOREIGN_TOKEN, UPSTREAM_URL, USER_EMAIL, VALID_TOKEN, StubTokenClient, UpstreamStub


@pytest.fixture
def config() -> CoreasonMeterConfig:
    return CoreasonMeterConfig(
        client_id=CLIENT_ID,
        openai_key="sk-test",
        redis_url="redis://localhost:6379",
        upstream_url=UPSTREAM_URL,
    )


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis_factory(redis_server: fakeredis.FakeServer) -> Callable[[], aioredis.FakeRedis]:
    def factory() -> aioredis.FakeRedis:
        return aioredis.FakeRedis(server=redis_server, decode_responses=True)

    return factory


@pytest_asyncio.fixture
async def ledger(
    config: CoreasonMeterConfig, fake_redis_factory: Callable[[], aioredis.FakeRedis]
) -> AsyncGenerator[RedisLedger, None]:
    ledger = RedisLedger(config.redis_url)
    ledger._redis = fake_redis_factory()
    yield ledger
    await ledger.close()


@pytest_asyncio.fixture
async def audit(
    config: CoreasonMeterConfig, fake_redis_factory: Callable[[], aioredis.FakeRedis]
) -> AsyncGenerator[TransactionLogger, None]:
    audit = TransactionLogger(config.redis_url)
    audit._redis = fake_redis_factory()
    yield audit
    await audit.close()


@pytest.fixture
def token_client() -> StubTokenClient:
    return StubTokenClient(
        {
            VALID_TOKEN: {"aud": CLIENT_ID, "email": USER_EMAIL, "sub": "1234"},
            FOREIGN_TOKEN: {"aud": "someone-else", "email": USER_EMAIL, "sub": "1234"},
        }
    )


@pytest.fixture
def upstream_stub() -> UpstreamStub:
    return UpstreamStub()


@pytest_asyncio.fixture
async def gateway(
    config: CoreasonMeterConfig,
    ledger: RedisLedger,
    audit: TransactionLogger,
    token_client: StubTokenClient,
    upstream_stub: UpstreamStub,
) -> AsyncGenerator[MeteredGateway, None]:
    upstream = UpstreamInvoker(
        config.upstream_url,
        config.openai_key,
        client=httpx.AsyncClient(transport=httpx.MockTransport(upstream_stub)),
    )
    gw = MeteredGateway(
        config,
        verifier=IdentityVerifier(config.client_id, token_client),
        ledger=ledger,
        audit=audit,
        upstream=upstream,
    )
    yield gw
    await gw.close()
