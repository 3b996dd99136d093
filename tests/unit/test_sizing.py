"""
Unit tests for the loan-size optimizer.

Each multiplicative factor is checked on its own, then property-based
tests cover the absolute bounds and spread monotonicity.
"""

from decimal import Decimal

import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from flash_arb.config_schema import SizingConfig
from flash_arb.exceptions import InsufficientLiquidityError, SizingError
from flash_arb.sizing import LoanSizeOptimizer

LIQUIDITY = {"alpha": Decimal("1000000"), "beta": Decimal("800000")}


def optimizer(**overrides):
    return LoanSizeOptimizer(SizingConfig(**overrides))


def unbounded(**overrides):
    """Optimizer whose absolute bounds and impact cap stay out of the way."""
    params = {"max_loan_amount": Decimal("1000000000"), "impact_budget_ratio": None}
    params.update(overrides)
    return optimizer(**params)


class TestFactors:
    def test_binding_venue_is_shallowest(self):
        result = unbounded().optimize(LIQUIDITY, Decimal("0.002"))
        assert result.binding_venue == "beta"
        assert result.binding_liquidity == Decimal("800000")

    def test_zero_liquidity_venue_ignored_for_binding(self):
        result = unbounded().optimize(
            {"alpha": Decimal("0"), "beta": Decimal("800000")}, Decimal("0.002")
        )
        assert result.binding_venue == "beta"

    def test_base_fraction_table(self):
        opt = optimizer()
        assert opt.base_fraction_for("PancakeSwap V3") == Decimal("0.025")
        assert opt.base_fraction_for("julswap") == Decimal("0.010")
        assert opt.base_fraction_for("unknown-dex") == Decimal("0.015")

    def test_base_fraction_follows_venue_class(self):
        result = unbounded().optimize(
            LIQUIDITY, Decimal("0.002"), venue_classes={"beta": "pancakeswapv3"}
        )
        assert result.base_fraction == Decimal("0.025")
        assert result.loan_amount == Decimal("0.025") * Decimal("800000")

    def test_medium_spread_leaves_fraction_unchanged(self):
        result = unbounded().optimize(LIQUIDITY, Decimal("0.002"))
        assert result.spread_factor == 1
        assert result.loan_amount == Decimal("0.015") * Decimal("800000")

    def test_small_spread_halves_fraction(self):
        result = unbounded().optimize(LIQUIDITY, Decimal("0.0005"))
        assert result.spread_factor == Decimal("0.5")
        assert result.loan_amount == Decimal("6000")

    def test_large_spread_boost_is_logarithmic(self):
        result = unbounded().optimize(LIQUIDITY, Decimal("0.02"))
        expected_factor = 1 + Decimal("20").log10() * Decimal("0.4")
        assert abs(result.spread_factor - expected_factor) < Decimal("1e-20")

    def test_low_large_spread_threshold_never_shrinks(self):
        opt = unbounded(
            small_spread_threshold=Decimal("0.0001"), large_spread_threshold=Decimal("0.0002")
        )
        medium = opt.optimize(LIQUIDITY, Decimal("0.00015"))
        large = opt.optimize(LIQUIDITY, Decimal("0.0005"))
        assert large.spread_factor == 1
        assert large.loan_amount >= medium.loan_amount

    def test_large_spread_capped_at_hard_ceiling(self):
        opt = unbounded(venue_base_fractions={"beta": Decimal("0.025")})
        result = opt.optimize(LIQUIDITY, Decimal("0.04"))
        assert result.base_fraction == Decimal("0.025")
        assert result.loan_amount == Decimal("0.03") * Decimal("800000")

    def test_large_spread_capped_at_multiple_of_base(self):
        opt = unbounded(max_spread_multiplier=Decimal("1.2"))
        result = opt.optimize(LIQUIDITY, Decimal("0.049"))
        assert result.loan_amount == Decimal("0.018") * Decimal("800000")

    def test_volatility_needs_enough_samples(self):
        opt = optimizer()
        assert opt.volatility_factor([Decimal("1"), Decimal("2")]) == 1

    def test_flat_history_has_no_volatility_penalty(self):
        assert optimizer().volatility_factor([Decimal("1")] * 10) == 1

    def test_volatility_floor(self):
        history = [Decimal(p) for p in ("1", "2", "1", "2", "1", "2")]
        assert optimizer().volatility_factor(history) == Decimal("0.5")

    def test_volatility_uses_population_stddev(self):
        # Relative changes 0.1, 0, 0, 0 have population stddev sqrt(0.001875)
        history = [Decimal(p) for p in ("100", "110", "110", "110", "110")]
        factor = optimizer().volatility_factor(history)
        assert float(factor) == pytest.approx(1 - 0.001875**0.5 * 10)

    def test_volatility_shrinks_size(self):
        history = [Decimal(p) for p in ("1.00", "1.01", "1.00", "1.02", "1.00", "1.01")]
        calm = unbounded().optimize(LIQUIDITY, Decimal("0.002"))
        jumpy = unbounded().optimize(LIQUIDITY, Decimal("0.002"), history)
        assert Decimal("0.5") < jumpy.volatility_factor < 1
        assert jumpy.loan_amount < calm.loan_amount

    @pytest.mark.parametrize(
        "gas,expected",
        [("3", "1"), ("5", "1"), ("10", "0.90"), ("100", "0.7")],
    )
    def test_gas_factor(self, gas, expected):
        assert optimizer().gas_factor(Decimal(gas)) == Decimal(expected)


class TestBoundsAndErrors:
    def test_impact_cap_limits_size(self):
        opt = optimizer(max_loan_amount=Decimal("100000"))
        result = opt.optimize(LIQUIDITY, Decimal("0.02"), gas_price_gwei=Decimal("5"))
        # 0.5% slippage budget on 800k base reserve
        assert result.impact_capped
        assert Decimal("4020") < result.loan_amount < Decimal("4021")
        assert result.loan_amount <= Decimal("0.03") * Decimal("800000")

    def test_clamped_to_min(self):
        result = optimizer().optimize({"a": Decimal("10")}, Decimal("0.002"))
        assert result.loan_amount == Decimal("0.1")

    def test_clamped_to_max(self):
        result = optimizer(impact_budget_ratio=None).optimize(LIQUIDITY, Decimal("0.02"))
        assert result.loan_amount == Decimal("50")

    def test_liquidity_fraction_cap(self):
        opt = unbounded(
            venue_base_fractions={"a": Decimal("1")},
            max_size_fraction=Decimal("1"),
            min_loan_amount=Decimal("0.1"),
        )
        result = opt.optimize({"a": Decimal("1000")}, Decimal("0.002"))
        assert result.loan_amount == Decimal("100")

    def test_insufficient_liquidity(self):
        with pytest.raises(InsufficientLiquidityError) as exc_info:
            optimizer().optimize({"a": Decimal("0.5")}, Decimal("0.01"))
        assert exc_info.value.cap == Decimal("0.05")
        assert exc_info.value.minimum == Decimal("0.1")

    @pytest.mark.parametrize(
        "liquidity,spread",
        [
            ({}, "0.01"),
            ({"a": Decimal("0")}, "0.01"),
            (LIQUIDITY, "-0.01"),
            (LIQUIDITY, "NaN"),
        ],
    )
    def test_invalid_inputs_raise(self, liquidity, spread):
        with pytest.raises(SizingError):
            optimizer().optimize(liquidity, Decimal(spread))

    def test_size_or_default_falls_back(self):
        result = optimizer().size_or_default({}, Decimal("0.01"))
        assert result.fallback_used
        assert result.loan_amount == Decimal("0.5")
        assert "No venue with positive liquidity" in result.reason

    def test_default_respects_liquidity_cap(self):
        result = optimizer().size_or_default({"a": Decimal("2")}, Decimal("-1"))
        assert result.fallback_used
        assert result.loan_amount == Decimal("0.2")

    def test_size_or_default_keeps_insufficient_liquidity(self):
        with pytest.raises(InsufficientLiquidityError):
            optimizer().size_or_default({"a": Decimal("0.5")}, Decimal("0.01"))

    def test_result_serializes(self):
        data = optimizer().optimize(LIQUIDITY, Decimal("0.02")).to_dict()
        assert data["binding_venue"] == "beta"
        assert isinstance(data["loan_amount"], float)


liquidities = st.decimals(
    min_value=10, max_value=100000000, places=2, allow_nan=False, allow_infinity=False
)
spreads = st.decimals(
    min_value=0, max_value=Decimal("0.05"), places=5, allow_nan=False, allow_infinity=False
)
gas_prices = st.decimals(
    min_value=0, max_value=500, places=2, allow_nan=False, allow_infinity=False
)
histories = st.lists(
    st.decimals(
        min_value=Decimal("0.5"), max_value=2, places=4, allow_nan=False, allow_infinity=False
    ),
    max_size=12,
)


class TestOptimizerProperties:
    @given(l1=liquidities, l2=liquidities, spread=spreads, gas=gas_prices, history=histories)
    def test_output_within_bounds(self, l1, l2, spread, gas, history):
        opt = optimizer()
        cfg = opt.config
        amount = opt.optimize({"a": l1, "b": l2}, spread, history, gas).loan_amount
        upper = min(cfg.max_loan_amount, cfg.liquidity_fraction_cap * min(l1, l2))
        assert cfg.min_loan_amount <= amount <= upper

    @given(liquidity=liquidities, s1=spreads, s2=spreads, gas=gas_prices)
    def test_larger_spread_never_shrinks_loan(self, liquidity, s1, s2, gas):
        assume(s1 < s2)
        opt = optimizer(max_loan_amount=Decimal("1000000000"))
        small = opt.optimize({"a": liquidity}, s1, (), gas).loan_amount
        large = opt.optimize({"a": liquidity}, s2, (), gas).loan_amount
        assert small <= large
