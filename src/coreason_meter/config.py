# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from typing import Dict, Optional

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

OPENAI_CHAT_COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"


class ModelPrice(BaseModel):  # type: ignore[misc]
    """USD rates per 1000 tokens for one model."""

    input: float = Field(default=0.0, ge=0.0, description="Rate per 1000 prompt tokens")
    output: float = Field(default=0.0, ge=0.0, description="Rate per 1000 completion tokens")


class CoreasonMeterConfig(BaseSettings):  # type: ignore[misc]
    """Configuration for Coreason Meter."""

    model_config = SettingsConfigDict(
        env_prefix="COREASON_METER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # These two keep the deployment's plain variable names
    client_id: str = Field(
        validation_alias=AliasChoices("client_id", "CLIENT_ID", "GOOGLE_CLIENT_ID"),
        description="OAuth client id the caller's token must be issued for",
    )
    openai_key: str = Field(
        validation_alias=AliasChoices("openai_key", "OPENAI_KEY"),
        description="API key sent to the completion API",
    )

    redis_url: str = Field(default="redis://localhost:6379", description="Redis connection URL")
    upstream_url: str = Field(default=OPENAI_CHAT_COMPLETIONS_URL, description="Completion API endpoint")
    tokeninfo_url: str = Field(default=GOOGLE_TOKENINFO_URL, description="Identity provider token-info endpoint")
    upstream_timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Upstream timeout in seconds; no timeout when unset"
    )
    fixed_surcharge_usd: float = Field(default=0.00000213, ge=0.0, description="Fixed fee added to every call")

    # Format: {"model_name": {"input": float, "output": float}}
    model_price_overrides: Dict[str, ModelPrice] = Field(
        default_factory=dict, description="Pricing overrides and additions per model"
    )
