"""
Profitability gate.

Simulates the flash-loan round trip for an opportunity and decides whether
it is worth settling:

    borrow L base -> sell on the dear venue for quote -> buy base back on the
    cheap venue -> repay L + fee

Pass iff net profit clears both the absolute floor and a multiple of the
trade's own gas cost. A fail with positive gross profit gets a bounded
number of retries at a larger size.
"""

from dataclasses import dataclass, replace
from decimal import Decimal, getcontext
from typing import Mapping, Optional, Sequence

from .config_schema import GateConfig
from .decisions import GATE, SIZE, DecisionJournal, DecisionRecord
from .exceptions import EvaluationError, ImpactModelError, InsufficientLiquidityError
from .metrics import ArbitrageMetrics
from .sizing import LoanSizeOptimizer
from .types import Opportunity, ProfitEstimate, SizingResult
from .utils import get_logger
from .venues import Venue

# Set high precision for all decimal operations
getcontext().prec = 50

logger = get_logger(__name__)

GWEI_TO_NATIVE = Decimal("1e-9")


@dataclass(frozen=True)
class Assessment:
    """Sizing plus verdict for one opportunity."""

    opportunity: Opportunity
    sizing: Optional[SizingResult]
    estimate: ProfitEstimate

    @property
    def passed(self) -> bool:
        return self.estimate.passed


class ProfitabilityGate:
    """Decide whether an opportunity pays for its loan fee and gas."""

    def __init__(
        self,
        venues: Mapping[str, Venue],
        config: Optional[GateConfig] = None,
        optimizer: Optional[LoanSizeOptimizer] = None,
        journal: Optional[DecisionJournal] = None,
        metrics: Optional[ArbitrageMetrics] = None,
    ):
        self.venues = dict(venues)
        self.config = config or GateConfig()
        self.optimizer = optimizer or LoanSizeOptimizer()
        self.journal = journal or DecisionJournal()
        self.metrics = metrics

    def gas_cost(self, gas_price_gwei: Decimal, native_price: Decimal = Decimal("1")) -> Decimal:
        """Gas for borrow + 2 swaps + repay, in base-token units."""
        return Decimal(self.config.gas_units) * gas_price_gwei * GWEI_TO_NATIVE * native_price

    def _venue(self, name: str) -> Venue:
        venue = self.venues.get(name)
        if venue is None:
            raise EvaluationError(f"Unknown venue '{name}'")
        return venue

    def _simulate(
        self,
        opportunity: Opportunity,
        loan_amount: Decimal,
        gas_price_gwei: Decimal,
        native_price: Decimal,
    ) -> ProfitEstimate:
        cfg = self.config
        if not loan_amount.is_finite() or loan_amount <= 0:
            raise EvaluationError(f"Invalid loan amount: {loan_amount}")
        if not gas_price_gwei.is_finite() or gas_price_gwei < 0:
            raise EvaluationError(f"Invalid gas price: {gas_price_gwei}")
        for snap in (opportunity.sell_snapshot, opportunity.buy_snapshot):
            if not snap.price.is_finite() or snap.price <= 0:
                raise EvaluationError(f"Invalid price {snap.price} on {snap.venue}")
            if not snap.liquidity.is_finite() or snap.liquidity <= 0:
                raise EvaluationError(f"Invalid liquidity {snap.liquidity} on {snap.venue}")

        sell_venue = self._venue(opportunity.sell_venue)
        buy_venue = self._venue(opportunity.buy_venue)
        try:
            intermediate = sell_venue.quote(opportunity.sell_snapshot, loan_amount, sell_base=True)
            final = buy_venue.quote(opportunity.buy_snapshot, intermediate, sell_base=False)
        except ImpactModelError as e:
            raise EvaluationError(f"Swap simulation failed: {e}") from e

        loan_fee = loan_amount * cfg.flash_loan_fee_rate
        gross = final - loan_amount - loan_fee
        gas_cost = self.gas_cost(gas_price_gwei, native_price)
        net = gross - gas_cost

        required = cfg.profit_cost_multiplier * gas_cost
        reason = ""
        if net <= cfg.min_profit_floor:
            reason = f"net {net:.6f} not above floor {cfg.min_profit_floor}"
        elif net <= required:
            reason = (
                f"net {net:.6f} not above {cfg.profit_cost_multiplier}x gas cost {gas_cost:.6f}"
            )

        return ProfitEstimate(
            loan_amount=loan_amount,
            intermediate_amount=intermediate,
            final_amount=final,
            gross_profit=gross,
            loan_fee=loan_fee,
            gas_cost=gas_cost,
            net_profit=net,
            passed=not reason,
            reason=reason,
            attempts=1,
            min_profit_floor=cfg.min_profit_floor,
            cost_multiplier=cfg.profit_cost_multiplier,
        )

    def evaluate(
        self,
        opportunity: Opportunity,
        loan_amount: Decimal,
        gas_price_gwei: Decimal,
        native_price: Decimal = Decimal("1"),
    ) -> ProfitEstimate:
        """
        Simulate the round trip, escalating the size if gross profit is positive.

        Never raises for bad inputs: they produce a fail verdict with the
        reason attached.

        Args:
            opportunity: Detected opportunity
            loan_amount: Loan size in base-token units
            gas_price_gwei: Current gas price
            native_price: Base-token units per native gas token

        Returns:
            ProfitEstimate for the passing attempt, or for the original size
            if no attempt passed
        """
        try:
            estimate = self._simulate(opportunity, loan_amount, gas_price_gwei, native_price)
        except EvaluationError as e:
            logger.warning(f"Evaluation failed for {opportunity.describe()}: {e}")
            return ProfitEstimate.rejected(str(e), loan_amount)

        if estimate.passed or estimate.gross_profit <= 0:
            return estimate

        cap = self.optimizer.liquidity_cap(opportunity.min_liquidity)
        amount = loan_amount
        attempts = 1
        for _ in range(self.config.max_escalations):
            stepped = min(amount * self.config.escalation_factor, cap)
            if stepped <= amount:
                break
            amount = stepped
            attempts += 1
            try:
                candidate = self._simulate(opportunity, amount, gas_price_gwei, native_price)
            except EvaluationError as e:
                logger.debug(f"Escalation to {amount} failed: {e}")
                break
            if candidate.passed:
                logger.debug(f"Escalated loan {loan_amount} -> {amount} passes")
                return replace(candidate, attempts=attempts)

        return replace(estimate, attempts=attempts)

    def assess(
        self,
        opportunity: Opportunity,
        gas_price_gwei: Decimal,
        native_price: Decimal = Decimal("1"),
        price_history: Optional[Sequence[Decimal]] = None,
    ) -> Assessment:
        """
        Size then evaluate, applying the error policy.

        Sizing errors fall back to the default amount; a pool too shallow
        for the minimum loan is rejected outright.
        """
        pair = opportunity.pair.label
        history = opportunity.price_history if price_history is None else tuple(price_history)

        venue_classes = {
            name: self.venues[name].size_class
            for name in opportunity.liquidity_by_venue
            if name in self.venues
        }
        try:
            sizing = self.optimizer.size_or_default(
                opportunity.liquidity_by_venue,
                opportunity.spread,
                history,
                gas_price_gwei,
                venue_classes,
            )
        except InsufficientLiquidityError as e:
            estimate = ProfitEstimate.rejected(f"insufficient liquidity: {e}")
            self._record_verdict(opportunity, estimate)
            return Assessment(opportunity, None, estimate)

        self.journal.record(
            DecisionRecord(
                stage=SIZE,
                pair=pair,
                outcome="fallback" if sizing.fallback_used else "sized",
                reason=sizing.reason,
                buy_venue=opportunity.buy_venue,
                sell_venue=opportunity.sell_venue,
                metrics=sizing.to_dict(),
            )
        )
        if sizing.fallback_used and self.metrics:
            self.metrics.record_sizing_fallback(pair)

        estimate = self.evaluate(opportunity, sizing.loan_amount, gas_price_gwei, native_price)
        self._record_verdict(opportunity, estimate)
        return Assessment(opportunity, sizing, estimate)

    def _record_verdict(self, opportunity: Opportunity, estimate: ProfitEstimate) -> None:
        metrics = estimate.to_dict()
        metrics["spread"] = float(opportunity.spread)
        self.journal.record(
            DecisionRecord(
                stage=GATE,
                pair=opportunity.pair.label,
                outcome="pass" if estimate.passed else "fail",
                reason=estimate.reason,
                buy_venue=opportunity.buy_venue,
                sell_venue=opportunity.sell_venue,
                metrics=metrics,
            )
        )
        if self.metrics:
            self.metrics.record_verdict(
                opportunity.pair.label,
                estimate.passed,
                float(estimate.loan_amount),
                float(estimate.net_profit),
            )
