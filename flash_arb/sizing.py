"""
Loan-size optimizer.

A fast multiplicative heuristic recomputed every cycle: start from a
venue-class fraction of the shallowest venue's liquidity, then scale it for
spread, recent volatility and gas price. The result is clamped to absolute
bounds and to a hard share of the shallowest venue.

Errors are raised, never papered over here; the fallback policy lives in
size_or_default(), which the profitability gate calls.
"""

import statistics
from decimal import Decimal, InvalidOperation
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .config_schema import SizingConfig
from .exceptions import InsufficientLiquidityError, SizingError
from .slippage import max_amount_for_slippage
from .types import SizingResult
from .utils import clamp, get_logger

logger = get_logger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")
THOUSAND = Decimal("1000")


class LoanSizeOptimizer:
    """Pick a flash-loan size from liquidity, spread, volatility and gas."""

    def __init__(self, config: Optional[SizingConfig] = None):
        self.config = config or SizingConfig()

    # === FACTORS ===

    def base_fraction_for(self, venue: str) -> Decimal:
        key = venue.lower().replace(" ", "")
        return self.config.venue_base_fractions.get(key, self.config.default_base_fraction)

    def spread_adjusted_fraction(self, base_fraction: Decimal, spread: Decimal) -> Tuple[Decimal, Decimal]:
        """
        Scale base_fraction for spread.

        Returns:
            (adjusted fraction, multiplier actually applied)
        """
        cfg = self.config
        if spread < cfg.small_spread_threshold:
            factor = cfg.small_spread_factor
        elif spread < cfg.large_spread_threshold:
            factor = ONE
        else:
            # A large_spread_threshold below 0.001 would make the log negative
            boost = max(ZERO, (spread * THOUSAND).log10() * cfg.spread_log_damping)
            factor = ONE + min(ONE, boost)

        ceiling = min(cfg.max_size_fraction, base_fraction * cfg.max_spread_multiplier)
        fraction = min(base_fraction * factor, ceiling)
        return fraction, fraction / base_fraction

    def volatility_factor(self, price_history: Sequence[Decimal]) -> Decimal:
        """max(floor, 1 - stddev(|relative changes|) * k), or 1 with too little history."""
        cfg = self.config
        prices = [p for p in price_history if p > 0]
        if len(prices) < cfg.min_volatility_samples:
            return ONE

        changes = [
            float(abs(curr - prev) / prev) for prev, curr in zip(prices, prices[1:])
        ]
        stddev = Decimal(str(statistics.pstdev(changes)))
        return max(cfg.volatility_floor, ONE - stddev * cfg.volatility_k)

    def gas_factor(self, gas_price_gwei: Decimal) -> Decimal:
        cfg = self.config
        if gas_price_gwei <= cfg.gas_baseline_gwei:
            return ONE
        excess = gas_price_gwei - cfg.gas_baseline_gwei
        return max(cfg.gas_floor, ONE - excess * cfg.gas_slope_per_gwei)

    # === SIZING ===

    @staticmethod
    def _positive_liquidity(liquidity_by_venue: Mapping[str, Decimal]) -> Dict[str, Decimal]:
        return {
            venue: liq
            for venue, liq in liquidity_by_venue.items()
            if liq is not None and liq.is_finite() and liq > 0
        }

    def _binding_venue(self, liquidity_by_venue: Mapping[str, Decimal]) -> Tuple[str, Decimal]:
        candidates = self._positive_liquidity(liquidity_by_venue)
        if not candidates:
            raise SizingError(
                "No venue with positive liquidity",
                details={"liquidity": {k: str(v) for k, v in liquidity_by_venue.items()}},
            )
        venue = min(candidates, key=lambda v: candidates[v])
        return venue, candidates[venue]

    def liquidity_cap(self, binding_liquidity: Decimal) -> Decimal:
        """Largest loan allowed by the liquidity fraction cap and max_loan_amount."""
        return min(
            self.config.max_loan_amount,
            self.config.liquidity_fraction_cap * binding_liquidity,
        )

    def optimize(
        self,
        liquidity_by_venue: Mapping[str, Decimal],
        spread: Decimal,
        price_history: Sequence[Decimal] = (),
        gas_price_gwei: Decimal = Decimal("0"),
        venue_classes: Optional[Mapping[str, str]] = None,
    ) -> SizingResult:
        """
        Compute a loan size in base-token units.

        Args:
            liquidity_by_venue: Base-token liquidity per involved venue
            spread: Price spread as a fraction
            price_history: Recent prices for the pair, oldest first
            gas_price_gwei: Current gas price
            venue_classes: Venue name -> size class for the base-fraction
                table; venues missing here are looked up by name

        Returns:
            SizingResult with the amount and every factor applied

        Raises:
            SizingError: If inputs are unusable
            InsufficientLiquidityError: If the liquidity cap is below min_loan_amount
        """
        cfg = self.config
        if not isinstance(spread, Decimal) or not spread.is_finite() or spread < 0:
            raise SizingError(f"Invalid spread: {spread}")
        if not gas_price_gwei.is_finite() or gas_price_gwei < 0:
            raise SizingError(f"Invalid gas price: {gas_price_gwei}")

        venue, liquidity = self._binding_venue(liquidity_by_venue)

        cap = self.liquidity_cap(liquidity)
        if cap < cfg.min_loan_amount:
            raise InsufficientLiquidityError(
                f"Liquidity cap {cap} on {venue} is below min loan {cfg.min_loan_amount}",
                cap=cap,
                minimum=cfg.min_loan_amount,
                details={"venue": venue, "liquidity": str(liquidity)},
            )

        try:
            base_fraction = self.base_fraction_for((venue_classes or {}).get(venue, venue))
            fraction, spread_factor = self.spread_adjusted_fraction(base_fraction, spread)
            vol_factor = self.volatility_factor(price_history)
            gas_factor = self.gas_factor(gas_price_gwei)
            fraction = fraction * vol_factor * gas_factor

            amount = fraction * liquidity
            impact_capped = False
            if cfg.impact_budget_ratio is not None:
                # Keep each leg's price impact a small share of the edge
                max_slippage = min(spread * cfg.impact_budget_ratio, Decimal("0.5"))
                impact_limit = max_amount_for_slippage(liquidity, max_slippage)
                if impact_limit < amount:
                    amount = impact_limit
                    impact_capped = True

            amount = clamp(amount, cfg.min_loan_amount, cfg.max_loan_amount)
            amount = min(amount, cap)
        except (ArithmeticError, InvalidOperation) as e:
            raise SizingError(f"Sizing arithmetic failed: {e}") from e

        result = SizingResult(
            loan_amount=amount,
            liquidity_fraction=amount / liquidity,
            base_fraction=base_fraction,
            spread_factor=spread_factor,
            volatility_factor=vol_factor,
            gas_factor=gas_factor,
            binding_venue=venue,
            binding_liquidity=liquidity,
            impact_capped=impact_capped,
        )
        logger.debug(
            f"Sized {amount:.6f} on {venue} (liq {liquidity:.2f}, base {base_fraction}, "
            f"spread x{spread_factor:.3f}, vol x{vol_factor:.3f}, gas x{gas_factor:.3f}"
            + (", impact capped" if impact_capped else "")
            + ")"
        )
        return result

    def default_result(
        self, reason: str, liquidity_by_venue: Optional[Mapping[str, Decimal]] = None
    ) -> SizingResult:
        """Conservative default amount, kept inside the bounds and the cap when known."""
        cfg = self.config
        amount = clamp(cfg.default_loan_amount, cfg.min_loan_amount, cfg.max_loan_amount)
        binding_venue = None
        binding_liquidity = Decimal("0")
        usable = self._positive_liquidity(liquidity_by_venue or {})
        if usable:
            binding_venue = min(usable, key=lambda v: usable[v])
            binding_liquidity = usable[binding_venue]
            amount = max(cfg.min_loan_amount, min(amount, self.liquidity_cap(binding_liquidity)))
        return SizingResult(
            loan_amount=amount,
            liquidity_fraction=amount / binding_liquidity if binding_liquidity > 0 else Decimal("0"),
            binding_venue=binding_venue,
            binding_liquidity=binding_liquidity,
            fallback_used=True,
            reason=reason,
        )

    def size_or_default(
        self,
        liquidity_by_venue: Mapping[str, Decimal],
        spread: Decimal,
        price_history: Sequence[Decimal] = (),
        gas_price_gwei: Decimal = Decimal("0"),
        venue_classes: Optional[Mapping[str, str]] = None,
    ) -> SizingResult:
        """
        optimize(), falling back to the default amount on a sizing error.

        Raises:
            InsufficientLiquidityError: Never replaced by a default; the
                pool is too shallow for any allowed loan
        """
        try:
            return self.optimize(
                liquidity_by_venue, spread, price_history, gas_price_gwei, venue_classes
            )
        except InsufficientLiquidityError:
            raise
        except SizingError as e:
            logger.warning(f"Sizing failed, using default loan amount: {e}")
            return self.default_result(str(e), liquidity_by_venue)
