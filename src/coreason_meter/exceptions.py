# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories a metered call can end in."""

    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    UPSTREAM_FAILURE = "upstream_failure"
    PERSISTENCE_FAILURE = "persistence_failure"


class MeterError(Exception):
    """Base exception for metering errors."""

    kind: ErrorKind


class UnauthenticatedError(MeterError):
    """Raised when the bearer token is missing, invalid or issued for another client."""

    kind = ErrorKind.UNAUTHENTICATED


class AccountNotFoundError(MeterError):
    """Raised when the caller has no account."""

    kind = ErrorKind.NOT_FOUND


class InsufficientBalanceError(MeterError):
    """Raised when the caller's balance is negative at admission time."""

    kind = ErrorKind.INSUFFICIENT_BALANCE


class UpstreamError(MeterError):
    """Raised when the completion API answers with a non-2xx status or an unreadable body."""

    kind = ErrorKind.UPSTREAM_FAILURE

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Upstream request failed with status code {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class TransportError(MeterError):
    """Raised when the completion API cannot be reached."""

    kind = ErrorKind.UPSTREAM_FAILURE


class PersistenceError(MeterError):
    kind = ErrorKind.PERSISTENCE_FAILURE


class LedgerError(PersistenceError):
    """Raised when a balance update fails."""

    pass


class LogError(PersistenceError):
    """Raised when a transaction record cannot be written."""

    pass
