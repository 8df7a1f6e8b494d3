import pytest

from genmux.pricing import calculate_cost, find_model, tiered_pricing
from genmux.providers.gemini import GeminiProvider
from genmux.types import Capability, Cost, ModelInfo

M1 = ModelInfo(
    model="m1",
    capabilities=frozenset({Capability.TEXT}),
    input_token_price=0.000002,
    output_token_price=0.000008,
)

TIERED = ModelInfo(
    model="tiered",
    capabilities=frozenset({Capability.TEXT}),
    tiered_pricing=tiered_pricing(200_000, base=(0.000001, 0.00001), above=(0.000002, 0.00002)),
)


class TestCalculateCost:

    def test_linear_pricing(self):
        cost = calculate_cost([M1], "m1", 1000, 500, usd_to_krw=1500)

        assert cost.input_cost == pytest.approx(0.002)
        assert cost.output_cost == pytest.approx(0.004)
        assert cost.total_cost_usd == pytest.approx(0.006)
        assert cost.total_cost_krw == pytest.approx(0.006 * 1500)
        assert cost.model == "m1"
        assert cost.known

    def test_deterministic(self):
        first = calculate_cost([M1], "m1", 1234, 567, usd_to_krw=1500)
        second = calculate_cost([M1], "m1", 1234, 567, usd_to_krw=1500)
        assert first == second

    def test_unknown_model_returns_sentinel(self):
        cost = calculate_cost([M1], "does-not-exist", 1000, 500, usd_to_krw=1500)

        assert cost == Cost.zero()
        assert cost.model is None
        assert not cost.known
        assert cost.total_cost_usd == 0

    def test_lookup_is_case_sensitive(self):
        assert calculate_cost([M1], "M1", 1000, 500, usd_to_krw=1500).model is None
        assert find_model([M1], "M1") is None

    def test_unpriced_model_returns_sentinel(self):
        unpriced = ModelInfo(model="free", capabilities=frozenset({Capability.STT}))
        assert calculate_cost([unpriced], "free", 10, 10, usd_to_krw=1500) == Cost.zero()

    def test_none_model_returns_sentinel(self):
        assert calculate_cost([M1], None, 10, 10, usd_to_krw=1500) == Cost.zero()


class TestTieredPricing:

    def test_below_threshold_uses_base_tier(self):
        cost = calculate_cost([TIERED], "tiered", 100_000, 1000, usd_to_krw=1000)

        assert cost.input_cost == pytest.approx(100_000 * 0.000001)
        assert cost.output_cost == pytest.approx(1000 * 0.00001)

    def test_above_threshold_uses_higher_tier(self):
        cost = calculate_cost([TIERED], "tiered", 250_000, 1000, usd_to_krw=1000)

        assert cost.input_cost == pytest.approx(250_000 * 0.000002)
        assert cost.output_cost == pytest.approx(1000 * 0.00002)
        assert cost.total_cost_usd == pytest.approx(0.5 + 0.02)
        assert cost.total_cost_krw == pytest.approx((0.5 + 0.02) * 1000)

    def test_threshold_itself_is_base_tier(self):
        price = tiered_pricing(200_000, base=(1.0, 1.0), above=(2.0, 2.0))
        assert price(200_000, 0) == (200_000.0, 0.0)

    def test_gemini_pro_above_200k(self, settings):
        provider = GeminiProvider(api_key=None, settings=settings)
        cost = provider.calculate_cost("gemini-2.5-pro", 250_000, 1000)

        assert cost.input_cost == pytest.approx(250_000 * 0.0000025)
        assert cost.output_cost == pytest.approx(1000 * 0.000015)


class TestCostCombine:

    def test_combine_adds_amounts_and_keeps_model(self):
        a = calculate_cost([M1], "m1", 1000, 500, usd_to_krw=1500)
        b = Cost(input_cost=1.0, output_cost=2.0, total_cost_usd=3.0, total_cost_krw=4500.0, model="img")

        combined = a.combine(b)

        assert combined.total_cost_usd == pytest.approx(3.006)
        assert combined.model == "m1"

    def test_combine_with_sentinel_takes_other_model(self):
        b = Cost(total_cost_usd=1.0, model="img")
        assert Cost.zero().combine(b).model == "img"
