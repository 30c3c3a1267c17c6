"""
Cost model for AI calls.

Rates are USD per token. Costs stay unrounded floats through aggregation;
rounding only happens when a value is rendered for people.
"""
from typing import Mapping, Optional, Union

from strepsil.schemas import ModelRate

# Decimal places used when presenting costs
UNIT_COST_PLACES = 4
TOTAL_COST_PLACES = 2

# Seed pricing, USD per token
DEFAULT_PRICING = {
    "OpenAI": {
        "gpt-4o": (0.0000025, 0.00001),
        "gpt-4o-mini": (0.00000015, 0.0000006),
        "gpt-4-turbo": (0.00001, 0.00003),
        "gpt-4": (0.00003, 0.00006),
        "gpt-3.5-turbo": (0.0000005, 0.0000015),
    },
    "Anthropic": {
        "claude-3-5-sonnet-20241022": (0.000003, 0.000015),
        "claude-3-5-haiku-20241022": (0.000001, 0.000005),
        "claude-3-opus-20240229": (0.000015, 0.000075),
        "claude-3-haiku-20240307": (0.00000025, 0.00000125),
    },
    "OpenRouter": {
        "openai/gpt-4o": (0.0000025, 0.00001),
        "anthropic/claude-3.5-sonnet": (0.000003, 0.000015),
    },
    "Perplexity": {
        "llama-3.1-sonar-small-128k-online": (0.0000002, 0.0000002),
        "llama-3.1-sonar-large-128k-online": (0.000001, 0.000001),
    },
}


def calculate_cost(
    tokens_in: Union[int, float],
    tokens_out: Union[int, float],
    rate_in: float,
    rate_out: float,
) -> float:
    """
    Calculate the cost of one call.

    Returns tokens_in * rate_in + tokens_out * rate_out.

    Raises:
        ValueError: If any input is negative
    """
    for label, value in (
        ("tokens_in", tokens_in),
        ("tokens_out", tokens_out),
        ("rate_in", rate_in),
        ("rate_out", rate_out),
    ):
        if value is None or value < 0:
            raise ValueError(f"{label} must be a non-negative number, got {value!r}")

    return tokens_in * rate_in + tokens_out * rate_out


def get_model_rate(
    pricing: Optional[Mapping[str, Union[ModelRate, Mapping[str, float]]]],
    model: str,
) -> ModelRate:
    """
    Look up the configured rate for a model.

    A model with no configured pricing gets a zero rate, so its calls are
    recorded with total_cost = 0 instead of failing.
    """
    if not pricing or model not in pricing:
        return ModelRate()
    rate = pricing[model]
    if isinstance(rate, ModelRate):
        return rate
    return ModelRate(input=rate.get("input") or 0, output=rate.get("output") or 0)


def calculate_call_cost(pricing, model: str, tokens_in: int, tokens_out: int) -> tuple[ModelRate, float]:
    """Resolve the model's rate and price a call with it."""
    rate = get_model_rate(pricing, model)
    return rate, calculate_cost(tokens_in, tokens_out, rate.input, rate.output)


def round_unit_cost(value: float) -> float:
    """Round a per-call or per-token cost for display."""
    return round(value or 0, UNIT_COST_PLACES)


def round_total_cost(value: float) -> float:
    """Round an aggregate cost for display."""
    return round(value or 0, TOTAL_COST_PLACES)


def format_cost(value: float, places: int = UNIT_COST_PLACES) -> str:
    """Format a cost in dollars, e.g. $0.0025."""
    return f"${(value or 0):.{places}f}"
