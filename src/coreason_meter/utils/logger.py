# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

import os
import sys

from loguru import logger

__all__ = ["logger"]

LOG_PATH = os.environ.get("COREASON_METER_LOG_PATH", "logs/app.log")
LOG_LEVEL = os.environ.get("COREASON_METER_LOG_LEVEL", "INFO")

log_dir = os.path.dirname(LOG_PATH)
if log_dir:
    os.makedirs(log_dir, exist_ok=True)

logger.remove()

logger.add(
    sys.stderr,
    level=LOG_LEVEL,
    format=(
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    ),
)

logger.add(
    LOG_PATH,
    level=LOG_LEVEL,
    rotation="500 MB",
    retention="10 days",
    serialize=True,
    enqueue=True,
)
