# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_meter

from typing import Any, Dict, Mapping, Optional, Tuple

from coreason_meter.config import CoreasonMeterConfig, ModelPrice
from coreason_meter.utils.logger import logger

DEFAULT_FIXED_SURCHARGE_USD = 0.00000213

# USD per 1000 tokens
DEFAULT_MODEL_PRICES: Dict[str, ModelPrice] = {
    "gpt-4": ModelPrice(input=0.03, output=0.06),
    "gpt-4o": ModelPrice(input=0.0025, output=0.01),
    "gpt-4o-mini": ModelPrice(input=0.00015, output=0.0006),
    "gpt-4-turbo": ModelPrice(input=0.01, output=0.03),
    "gpt-3.5-turbo": ModelPrice(input=0.0015, output=0.002),
}

_FREE = ModelPrice()


def _token_count(usage: Mapping[str, Any], field: str) -> int:
    value = usage.get(field)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def extract_usage(response: Mapping[str, Any]) -> Tuple[Optional[str], int, int]:
    """Return (model, prompt_tokens, completion_tokens); missing usage counts as zero tokens."""
    usage = response.get("usage")
    if not isinstance(usage, Mapping):
        usage = {}
    model = response.get("model")
    return (
        model if isinstance(model, str) else None,
        _token_count(usage, "prompt_tokens"),
        _token_count(usage, "completion_tokens"),
    )


class PricingEngine:
    """Calculates the cost of completion calls from a per-model rate table."""

    def __init__(self, config: Optional[CoreasonMeterConfig] = None) -> None:
        self.config = config
        self.prices: Dict[str, ModelPrice] = dict(DEFAULT_MODEL_PRICES)
        self.fixed_surcharge = DEFAULT_FIXED_SURCHARGE_USD
        if config:
            self.prices.update(config.model_price_overrides)
            self.fixed_surcharge = config.fixed_surcharge_usd

    def rates_for(self, model: Optional[str]) -> ModelPrice:
        """
        Look up the rates for a model.

        Unknown models are rated at zero so they are only ever charged the surcharge.
        """
        if model is None or model not in self.prices:
            logger.warning("No pricing for model {}, charging surcharge only", model)
            return _FREE
        return self.prices[model]

    def calculate(self, model: Optional[str], input_tokens: int, output_tokens: int) -> float:
        """
        Calculate the cost in USD for a given model and token usage.

        Args:
            model: The model name reported by the completion API (e.g., 'gpt-4').
            input_tokens: Number of prompt tokens.
            output_tokens: Number of completion tokens.

        Returns:
            Cost in USD, fixed surcharge included.
        """
        rates = self.rates_for(model)
        prompt_cost = (input_tokens / 1000) * rates.input
        completion_cost = (output_tokens / 1000) * rates.output
        return prompt_cost + completion_cost + self.fixed_surcharge

    def price(self, response: Mapping[str, Any]) -> float:
        """Price a parsed completion response."""
        model, input_tokens, output_tokens = extract_usage(response)
        return self.calculate(model, input_tokens, output_tokens)
