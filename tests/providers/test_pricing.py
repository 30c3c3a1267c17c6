"""Tests for the cost model."""
import pytest

from strepsil.providers.models import PROVIDER_MODELS, get_default_provider_configs
from strepsil.providers.pricing import (
    DEFAULT_PRICING,
    calculate_call_cost,
    calculate_cost,
    format_cost,
    get_model_rate,
    round_total_cost,
    round_unit_cost,
)
from strepsil.schemas import ModelRate


class TestCalculateCost:
    """Test per-call cost arithmetic."""

    def test_cost_formula(self):
        """100 tokens in at 0.00001 and 50 out at 0.00003 cost 0.0025."""
        assert calculate_cost(100, 50, 0.00001, 0.00003) == pytest.approx(0.0025)

    def test_zero_tokens_cost_nothing(self):
        assert calculate_cost(0, 0, 0.01, 0.02) == 0

    def test_zero_rates_cost_nothing(self):
        assert calculate_cost(1_000_000, 1_000_000, 0, 0) == 0

    @pytest.mark.parametrize("args", [
        (-1, 0, 0.1, 0.1),
        (0, -1, 0.1, 0.1),
        (1, 1, -0.1, 0.1),
        (1, 1, 0.1, -0.1),
    ])
    def test_negative_inputs_rejected(self, args):
        """Negative tokens or rates raise instead of being clamped."""
        with pytest.raises(ValueError):
            calculate_cost(*args)

    def test_cost_is_not_rounded(self):
        cost = calculate_cost(1, 1, 0.0000001, 0.0000002)
        assert cost == pytest.approx(0.0000003)
        assert round_unit_cost(cost) == 0.0


class TestModelRates:
    """Test rate lookup from provider pricing."""

    def test_missing_model_has_zero_rate(self):
        rate = get_model_rate({"gpt-4o": {"input": 1, "output": 2}}, "unknown-model")
        assert rate == ModelRate(input=0, output=0)

    def test_empty_pricing_has_zero_rate(self):
        assert get_model_rate(None, "gpt-4o") == ModelRate()
        assert get_model_rate({}, "gpt-4o") == ModelRate()

    def test_stored_rate_dict(self):
        rate = get_model_rate({"gpt-4o": {"input": 0.0000025, "output": 0.00001}}, "gpt-4o")
        assert rate.input == 0.0000025
        assert rate.output == 0.00001

    def test_typed_rate(self):
        typed = ModelRate(input=0.1, output=0.2)
        assert get_model_rate({"m": typed}, "m") is typed

    def test_call_cost_with_missing_pricing_is_zero(self):
        rate, cost = calculate_call_cost({}, "mystery", 1000, 1000)
        assert rate.input == 0 and rate.output == 0
        assert cost == 0

    def test_call_cost_uses_configured_rate(self):
        pricing = {"gpt-4o": {"input": 0.00001, "output": 0.00003}}
        _, cost = calculate_call_cost(pricing, "gpt-4o", 100, 50)
        assert cost == pytest.approx(0.0025)


class TestPresentation:
    """Test display rounding."""

    def test_format_cost_default_four_places(self):
        assert format_cost(0.0025) == "$0.0025"

    def test_format_cost_two_places(self):
        assert format_cost(3.456, 2) == "$3.46"

    def test_format_cost_none(self):
        assert format_cost(None) == "$0.0000"

    def test_round_total_cost(self):
        assert round_total_cost(3.456) == 3.46


class TestDefaultProviderConfigs:
    """Test the seed data for providers."""

    def test_every_provider_seeded(self):
        names = [c["name"] for c in get_default_provider_configs()]
        assert names == list(PROVIDER_MODELS)

    def test_pricing_keys_are_model_ids(self):
        """Seed pricing only names models the provider offers."""
        for config in get_default_provider_configs():
            model_ids = {m["id"] for m in config["models"]}
            assert set(config["pricing"]) <= model_ids

    def test_seed_rates_are_non_negative(self):
        for prices in DEFAULT_PRICING.values():
            for rate_in, rate_out in prices.values():
                assert rate_in >= 0 and rate_out >= 0
