# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Header, HTTPException, Request, Response
from redis.exceptions import RedisError

from coreason_meter.config import CoreasonMeterConfig
from coreason_meter.gateway import MeteredGateway
from coreason_meter.utils.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("Initializing MeteredGateway...")
    config = CoreasonMeterConfig()
    gateway = MeteredGateway(config)

    app.state.gateway = gateway
    yield
    logger.info("Closing MeteredGateway...")
    await gateway.close()


app = FastAPI(title="Coreason Meter", lifespan=lifespan)


@app.post("/v1/chat/completions")
async def chat_completions(request: Request, authorization: Optional[str] = Header(None)) -> Response:
    gateway: MeteredGateway = request.app.state.gateway
    body = await request.body()
    result = await gateway.handle(authorization, body)
    return Response(content=result.body, status_code=result.status_code, media_type="application/json")


@app.get("/health")
async def health_check(request: Request) -> Dict[str, str]:
    gateway: MeteredGateway = request.app.state.gateway
    try:
        await gateway.health()
        return {"status": "healthy", "redis": "connected"}
    except (RedisError, ConnectionError) as e:
        raise HTTPException(status_code=503, detail="Redis connection failed") from e
