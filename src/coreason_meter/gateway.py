# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

import base64
import json
import time
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel

from coreason_meter.audit import TransactionLogger
from coreason_meter.config import CoreasonMeterConfig
from coreason_meter.exceptions import ErrorKind, MeterError
from coreason_meter.guard import AdmissionGuard
from coreason_meter.identity import GoogleTokenInfoClient, IdentityVerifier
from coreason_meter.ledger import RedisLedger
from coreason_meter.pricing import PricingEngine
from coreason_meter.upstream import UpstreamInvoker
from coreason_meter.utils.logger import logger


class CallState(str, Enum):
    START = "start"
    AUTHENTICATED = "authenticated"
    ADMITTED = "admitted"
    UPSTREAM_DONE = "upstream_done"
    LOGGED = "logged"
    BILLED = "billed"
    RESPONDED = "responded"
    REJECTED = "rejected"


ERROR_STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.NOT_FOUND: 401,
    ErrorKind.INSUFFICIENT_BALANCE: 402,
    ErrorKind.UPSTREAM_FAILURE: 502,
    ErrorKind.PERSISTENCE_FAILURE: 500,
}

ERROR_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.UNAUTHENTICATED: "Token is invalid",
    ErrorKind.NOT_FOUND: "User does not exist",
    ErrorKind.INSUFFICIENT_BALANCE: "User has insufficient balance",
    ErrorKind.UPSTREAM_FAILURE: "Upstream request failed",
    ErrorKind.PERSISTENCE_FAILURE: "Transaction could not be recorded",
}

# Store errors carry internal detail; callers only see the generic message
REDACTED_ERROR = "Internal error"


class GatewayResult(BaseModel):  # type: ignore[misc]
    """HTTP-shaped outcome of one metered call."""

    status_code: int
    body: str
    state: CallState
    error_kind: Optional[ErrorKind] = None

    def to_event_response(self) -> Dict[str, Any]:
        return {"statusCode": self.status_code, "body": self.body}


def error_result(status_code: int, message: str, error: str = "", kind: Optional[ErrorKind] = None) -> GatewayResult:
    body = json.dumps({"message": message, "error": error})
    return GatewayResult(status_code=status_code, body=body, state=CallState.REJECTED, error_kind=kind)


class MeteredGateway:
    """
    Main entry point for Coreason Meter.
    Orchestrates IdentityVerifier, AdmissionGuard, UpstreamInvoker, TransactionLogger,
    PricingEngine and RedisLedger for each inbound completion call.

    Components are built once from the config and reused across calls; any of
    them can be passed in instead.
    """

    def __init__(
        self,
        config: CoreasonMeterConfig,
        verifier: Optional[IdentityVerifier] = None,
        ledger: Optional[RedisLedger] = None,
        audit: Optional[TransactionLogger] = None,
        upstream: Optional[UpstreamInvoker] = None,
        pricing: Optional[PricingEngine] = None,
    ) -> None:
        self.config = config
        self.verifier = verifier or IdentityVerifier(config.client_id, GoogleTokenInfoClient(config.tokeninfo_url))
        self.ledger = ledger or RedisLedger(config.redis_url)
        self.audit = audit or TransactionLogger(config.redis_url)
        self.upstream = upstream or UpstreamInvoker(
            config.upstream_url, config.openai_key, timeout=config.upstream_timeout_seconds
        )
        self.pricing = pricing or PricingEngine(config)
        self.guard = AdmissionGuard(self.ledger)

    async def handle(self, authorization: Optional[str], body: Union[bytes, str]) -> GatewayResult:
        """
        Run one inbound call through authentication, admission, the upstream call,
        the transaction log and billing, in that order.

        Args:
            authorization: Raw ``Authorization`` header value.
            body: Completion request forwarded verbatim to the upstream API.

        Returns:
            The upstream body with status 200, or a ``{message, error}`` body with
            the status mapped from the failure kind.
        """
        state = CallState.START
        started = time.monotonic()
        try:
            identity = await self.verifier.verify(authorization)
            state = self._advance(state, CallState.AUTHENTICATED)

            await self.guard.check_admission(identity.subject)
            state = self._advance(state, CallState.ADMITTED)

            completion = await self.upstream.invoke(body)
            state = self._advance(state, CallState.UPSTREAM_DONE)

            duration = time.monotonic() - started
            await self.audit.record(identity.subject, completion.payload, duration)
            state = self._advance(state, CallState.LOGGED)

            cost = self.pricing.price(completion.payload)
            await self.ledger.deduct(identity.subject, cost)
            state = self._advance(state, CallState.BILLED)
        except MeterError as e:
            return self._reject(state, e)
        except Exception:
            logger.exception("Unexpected failure after state {}", state.value)
            return error_result(500, "Internal error", REDACTED_ERROR)

        self._advance(state, CallState.RESPONDED)
        return GatewayResult(status_code=200, body=completion.raw, state=CallState.RESPONDED)

    async def handle_event(self, event: Mapping[str, Any]) -> Dict[str, Any]:
        """Handle a Lambda-style ``{headers, body}`` event and return ``{statusCode, body}``."""
        headers = event.get("headers") or {}
        authorization = next((v for k, v in headers.items() if k.lower() == "authorization"), None)
        body = event.get("body") or ""
        if event.get("isBase64Encoded") and isinstance(body, str):
            body = base64.b64decode(body)
        result = await self.handle(authorization, body)
        return result.to_event_response()

    async def health(self) -> bool:
        return await self.ledger.ping()

    async def close(self) -> None:
        """Cleanup resources (Redis connections and HTTP clients)."""
        await self.ledger.close()
        await self.audit.close()
        await self.upstream.close()
        token_client_close = getattr(self.verifier.token_client, "close", None)
        if token_client_close is not None:
            await token_client_close()

    @staticmethod
    def _advance(current: CallState, new: CallState) -> CallState:
        logger.debug("Call state {} -> {}", current.value, new.value)
        return new

    @staticmethod
    def _reject(state: CallState, error: MeterError) -> GatewayResult:
        kind = error.kind
        status_code = ERROR_STATUS_CODES[kind]
        if kind == ErrorKind.PERSISTENCE_FAILURE:
            logger.error("Call rejected after state {} ({}): {}", state.value, kind.value, error)
            detail = REDACTED_ERROR
        else:
            logger.warning("Call rejected after state {} ({}): {}", state.value, kind.value, error)
            detail = str(error)
        return error_result(status_code, ERROR_MESSAGES[kind], detail, kind)
