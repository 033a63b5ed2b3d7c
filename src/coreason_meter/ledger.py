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

from pydantic import BaseModel
from redis.exceptions import RedisError

from coreason_meter.exceptions import LedgerError
from coreason_meter.store import RedisStore
from coreason_meter.utils.logger import logger

BALANCE_FIELD = "Balance"

# Adjusts the balance of an existing account only; a missing account yields nil.
# KEYS[1]: account key
# ARGV[1]: signed delta
# ARGV[2]: balance field
_ADJUST_BALANCE_SCRIPT = """
if redis.call("EXISTS", KEYS[1]) == 0 then
    return false
end
return redis.call("HINCRBYFLOAT", KEYS[1], ARGV[2], ARGV[1])
"""


class Account(BaseModel):  # type: ignore[misc]
    subject: str
    balance: float


class RedisLedger(RedisStore):
    """
    Prepaid balances keyed by subject.

    Balances live in the hash ``account:{subject}`` under the ``Balance`` field.
    Every write is a single server-side operation, so concurrent calls for the
    same subject never lose updates.
    """

    @staticmethod
    def account_key(subject: str) -> str:
        return f"account:{subject}"

    async def get_balance(self, subject: str) -> Optional[Account]:
        """Fetch the account for a subject. Returns None if it does not exist."""
        try:
            redis = await self.client()
            value = await redis.hget(self.account_key(subject), BALANCE_FIELD)
        except RedisError as e:
            logger.error("Redis HGET error for account {}: {}", subject, e)
            raise LedgerError(f"Could not read balance for {subject}: {e}") from e

        if value is None:
            return None
        return Account(subject=subject, balance=float(value))

    async def deduct(self, subject: str, amount: float) -> float:
        """
        Atomically decrement the balance by amount and return the new balance.

        The result may go negative; that debt blocks the caller's next admission.
        """
        new_balance = await self._adjust(subject, -amount)
        logger.info("Deducted ${} from {}, new balance ${}", amount, subject, new_balance)
        return new_balance

    async def credit(self, subject: str, amount: float) -> float:
        """Atomically top up an existing account and return the new balance."""
        new_balance = await self._adjust(subject, amount)
        logger.info("Credited ${} to {}, new balance ${}", amount, subject, new_balance)
        return new_balance

    async def open_account(self, subject: str, balance: float = 0.0) -> Account:
        """Create an account with an opening balance. Fails if one already exists."""
        try:
            redis = await self.client()
            created = await redis.hsetnx(self.account_key(subject), BALANCE_FIELD, str(balance))
        except RedisError as e:
            logger.error("Redis HSETNX error for account {}: {}", subject, e)
            raise LedgerError(f"Could not open account for {subject}: {e}") from e

        if not created:
            raise LedgerError(f"Account already exists for {subject}")
        logger.info("Opened account for {} with balance ${}", subject, balance)
        return Account(subject=subject, balance=balance)

    async def _adjust(self, subject: str, delta: float) -> float:
        try:
            redis = await self.client()
            result = await redis.eval(_ADJUST_BALANCE_SCRIPT, 1, self.account_key(subject), str(delta), BALANCE_FIELD)
        except RedisError as e:
            logger.error("Redis HINCRBYFLOAT error for account {}: {}", subject, e)
            raise LedgerError(f"Could not update balance for {subject}: {e}") from e

        if result is None:
            raise LedgerError(f"Account does not exist for {subject}")
        return float(result)
