"""
Pricing calculations and rate management.

Handles cost estimation for the models an agent reports in its hook payloads.
"""

from dataclasses import dataclass
from typing import Dict, Optional

DEFAULT_MODEL = "default"
TOKENS_PER_PRICE_UNIT = 1_000_000


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    input_per_million: float  # USD per 1M input tokens
    output_per_million: float  # USD per 1M output tokens


@dataclass(frozen=True)
class PricingTable:
    """Pricing table keyed by model name, with a ``default`` fallback entry."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model: Optional[str]) -> ModelPricing:
        """Get pricing for a specific model.

        Resolution order is an exact match on the model name, then the
        table's ``default`` entry.

        Args:
            model: Model identifier (may be None or unknown)

        Returns:
            ModelPricing for the model
        """
        if model and model in self.prices:
            return self.prices[model]
        return self.prices[DEFAULT_MODEL]

    def merged(self, overrides: Dict[str, ModelPricing]) -> "PricingTable":
        """Return a new table with ``overrides`` replacing or extending entries."""
        if not overrides:
            return self
        prices = dict(self.prices)
        prices.update(overrides)
        return PricingTable(prices)


# Built-in pricing table - no dynamic fetching
PRICING_TABLE = PricingTable({
    "claude-opus-4-6": ModelPricing(input_per_million=15.0, output_per_million=75.0),
    "claude-sonnet-4-5-20250929": ModelPricing(input_per_million=3.0, output_per_million=15.0),
    "claude-haiku-4-5-20251001": ModelPricing(input_per_million=0.80, output_per_million=4.0),
    "claude-sonnet-4-0-20250514": ModelPricing(input_per_million=3.0, output_per_million=15.0),
    "claude-opus-4-0-20250514": ModelPricing(input_per_million=15.0, output_per_million=75.0),
    "gpt-4o": ModelPricing(input_per_million=2.50, output_per_million=10.0),
    "gpt-4o-mini": ModelPricing(input_per_million=0.15, output_per_million=0.60),
    "o1": ModelPricing(input_per_million=15.0, output_per_million=60.0),
    "o3-mini": ModelPricing(input_per_million=1.10, output_per_million=4.40),
    DEFAULT_MODEL: ModelPricing(input_per_million=3.0, output_per_million=15.0),
})


def estimate_cost(
    model: Optional[str],
    input_tokens: int,
    output_tokens: int,
    table: Optional[PricingTable] = None,
) -> float:
    """Estimate the USD cost of a model call.

    Args:
        model: Model identifier; unknown or missing models use ``default``
        input_tokens: Input (prompt) tokens
        output_tokens: Output (completion) tokens
        table: Pricing table to resolve against (built-in table if omitted)

    Returns:
        ``(input_tokens * input price + output_tokens * output price) / 1e6``
    """
    pricing = (table or PRICING_TABLE).get_pricing(model)
    return (
        input_tokens * pricing.input_per_million
        + output_tokens * pricing.output_per_million
    ) / TOKENS_PER_PRICE_UNIT
