# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from typing import Optional

from redis.asyncio import Redis, from_url
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from coreason_meter.utils.logger import logger


class RedisStore:
    """Lazily connected Redis handle shared by the ledger and the transaction log."""

    def __init__(self, redis_url: str) -> None:
        self.redis_url = redis_url
        self._redis: Optional[Redis] = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if self._redis is None:
            try:
                self._redis = from_url(self.redis_url, encoding="utf-8", decode_responses=True)
                await self._redis.ping()
                logger.info("Connected to Redis at {}", self.redis_url)
            except RedisError as e:
                self._redis = None
                logger.error("Failed to connect to Redis: {}", e)
                raise RedisConnectionError(f"Could not connect to Redis: {e}") from e

    async def client(self) -> Redis:
        """Return the connected client, connecting on first use."""
        if self._redis is None:
            await self.connect()
        assert self._redis is not None
        return self._redis

    async def ping(self) -> bool:
        redis = await self.client()
        return bool(await redis.ping())

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Closed Redis connection")
