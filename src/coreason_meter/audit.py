# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

import secrets
import time
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from redis.exceptions import RedisError

from coreason_meter.exceptions import LogError
from coreason_meter.pricing import extract_usage
from coreason_meter.store import RedisStore
from coreason_meter.utils.logger import logger


def new_transaction_id() -> str:
    """Time-ordered id with a random suffix so concurrent calls in the same nanosecond still differ."""
    return f"txn-{time.time_ns()}-{secrets.token_hex(4)}"


class TransactionRecord(BaseModel):  # type: ignore[misc]
    """Audit entry for one completed upstream call."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    transaction_id: str = Field(alias="transactionId")
    user_id: str = Field(alias="userId")
    model: Optional[str] = None
    req_tokens: int = Field(default=0, alias="reqTokens")
    res_tokens: int = Field(default=0, alias="resTokens")
    duration_seconds: float = Field(alias="durationSeconds")


class TransactionLogger(RedisStore):
    """Append-only transaction log stored as ``transaction:{transactionId}`` JSON documents."""

    @staticmethod
    def transaction_key(transaction_id: str) -> str:
        return f"transaction:{transaction_id}"

    async def record(
        self, subject: str, response: Mapping[str, Any], duration_seconds: float
    ) -> TransactionRecord:
        """
        Write one record for a completed upstream call.

        Raises LogError if the store rejects the write or the id is already taken.
        """
        model, req_tokens, res_tokens = extract_usage(response)
        record = TransactionRecord(
            transaction_id=new_transaction_id(),
            user_id=subject,
            model=model,
            req_tokens=req_tokens,
            res_tokens=res_tokens,
            duration_seconds=duration_seconds,
        )
        await self.write(record)
        return record

    async def write(self, record: TransactionRecord) -> None:
        key = self.transaction_key(record.transaction_id)
        try:
            redis = await self.client()
            written = await redis.set(key, record.model_dump_json(by_alias=True), nx=True)
        except RedisError as e:
            logger.error("Redis SET error for transaction {}: {}", record.transaction_id, e)
            raise LogError(f"Could not write transaction {record.transaction_id}: {e}") from e

        if not written:
            logger.error("Transaction id collision: {}", record.transaction_id)
            raise LogError(f"Transaction {record.transaction_id} already exists")

        logger.info(
            "Transaction {}: User {} | Model {} | Tokens {}/{} | {}s",
            record.transaction_id,
            record.user_id,
            record.model,
            record.req_tokens,
            record.res_tokens,
            record.duration_seconds,
        )

    async def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        """Read back a stored record. Returns None if it does not exist."""
        try:
            redis = await self.client()
            raw = await redis.get(self.transaction_key(transaction_id))
        except RedisError as e:
            logger.error("Redis GET error for transaction {}: {}", transaction_id, e)
            raise LogError(f"Could not read transaction {transaction_id}: {e}") from e

        if raw is None:
            return None
        return TransactionRecord.model_validate_json(raw)
