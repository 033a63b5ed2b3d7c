# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from .config import CoreasonMeterConfig
from .exceptions import (
    AccountNotFoundError,
    ErrorKind,
    InsufficientBalanceError,
    LedgerError,
    LogError,
    MeterError,
    TransportError,
    UnauthenticatedError,
    UpstreamError,
)
from .gateway import CallState, GatewayResult, MeteredGateway
from .pricing import PricingEngine

__all__ = [
    "AccountNotFoundError",
    "CallState",
    "CoreasonMeterConfig",
    "ErrorKind",
    "GatewayResult",
    "InsufficientBalanceError",
    "LedgerError",
    "LogError",
    "MeterError",
    "MeteredGateway",
    "PricingEngine",
    "TransportError",
    "UnauthenticatedError",
    "UpstreamError",
]
