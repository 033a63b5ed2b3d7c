# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from coreason_meter.exceptions import AccountNotFoundError, InsufficientBalanceError
from coreason_meter.ledger import Account, RedisLedger
from coreason_meter.utils.logger import logger


class AdmissionGuard:
    """Admits callers that have an account with a non-negative balance."""

    def __init__(self, ledger: RedisLedger) -> None:
        self.ledger = ledger

    async def check_admission(self, subject: str) -> Account:
        """
        Check that the subject may start a billed call.
        Raises AccountNotFoundError or InsufficientBalanceError.

        The balance read here is advisory: it can change before the call is
        billed, and the later deduction is applied regardless.
        """
        account = await self.ledger.get_balance(subject)
        if account is None:
            logger.warning("Admission denied: no account for {}", subject)
            raise AccountNotFoundError("User does not exist")

        logger.info("Admission Check: User {} | Balance: ${}", subject, account.balance)

        if account.balance < 0:
            logger.warning("Admission denied for {}: balance ${} is negative", subject, account.balance)
            raise InsufficientBalanceError("User has insufficient balance")
        return account
