"""
Core data types for flash-loan arbitrage scanning.

All token amounts are Decimal values in human units (not wei).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Literal, Optional, Tuple

VenueKind = Literal["v2", "v3"]


@dataclass(frozen=True)
class TokenPair:
    """
    An unordered pair of tokens tracked for arbitrage.

    Equality and hashing ignore token order, so WBNB/USDT and USDT/WBNB
    share one price history.

    Attributes:
        base: Base token identifier (address or symbol); loans are in this token
        quote: Quote token identifier
        name: Human-readable pair name (e.g., "WBNB/USDT")
        stable: True if both tokens are stablecoins (tight price band applies)
    """

    base: str
    quote: str
    name: str = ""
    stable: bool = field(default=False, compare=False)

    @property
    def key(self) -> Tuple[str, str]:
        """Order-independent identity of the pair."""
        return tuple(sorted((self.base.lower(), self.quote.lower())))

    @property
    def label(self) -> str:
        return self.name or f"{self.base}/{self.quote}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenPair):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


@dataclass(frozen=True)
class PoolSnapshot:
    """
    A point-in-time read of one venue's pool for a pair.

    Attributes:
        venue: Name of the venue the snapshot came from
        pair: Token pair
        price: Quote per base
        liquidity: Reserve of the base token
        fee: Swap fee as a fraction (0.0025 for 25 bps)
        timestamp: Unix time the snapshot was fetched
    """

    venue: str
    pair: TokenPair
    price: Decimal
    liquidity: Decimal
    fee: Decimal
    timestamp: float

    @property
    def base_reserve(self) -> Decimal:
        return self.liquidity

    @property
    def quote_reserve(self) -> Decimal:
        """Quote-side reserve implied by price and base reserve."""
        return self.liquidity * self.price


@dataclass(frozen=True)
class Opportunity:
    """
    A candidate two-leg arbitrage between two venues.

    The buy venue has the lower price for the base token, the sell venue
    the higher one.

    Attributes:
        pair: Token pair
        buy_venue: Name of the lower-priced venue
        buy_snapshot: Snapshot from the buy venue
        sell_venue: Name of the higher-priced venue
        sell_snapshot: Snapshot from the sell venue
        spread: (sell - buy) / buy as a fraction
        detected_at: Unix time of detection
        price_history: Recent cross-venue mean prices, oldest first
    """

    pair: TokenPair
    buy_venue: str
    buy_snapshot: PoolSnapshot
    sell_venue: str
    sell_snapshot: PoolSnapshot
    spread: Decimal
    detected_at: float
    price_history: Tuple[Decimal, ...] = ()

    @property
    def spread_pct(self) -> Decimal:
        return self.spread * Decimal("100")

    @property
    def liquidity_by_venue(self) -> Dict[str, Decimal]:
        return {
            self.buy_venue: self.buy_snapshot.liquidity,
            self.sell_venue: self.sell_snapshot.liquidity,
        }

    @property
    def min_liquidity(self) -> Decimal:
        return min(self.buy_snapshot.liquidity, self.sell_snapshot.liquidity)

    def describe(self) -> str:
        return (
            f"{self.pair.label} buy@{self.buy_venue}={self.buy_snapshot.price} "
            f"sell@{self.sell_venue}={self.sell_snapshot.price} "
            f"spread={float(self.spread_pct):.4f}%"
        )


@dataclass
class SizingResult:
    """
    Output of the loan-size optimizer.

    Attributes:
        loan_amount: Loan size in base-token units
        liquidity_fraction: loan_amount / binding_liquidity
        base_fraction: Venue-class starting fraction
        spread_factor: Multiplier applied for the spread
        volatility_factor: Multiplier applied for recent volatility
        gas_factor: Multiplier applied for gas price
        binding_venue: Venue with the smallest liquidity
        binding_liquidity: That venue's liquidity
        impact_capped: True if the per-leg impact budget limited the size
        fallback_used: True if the default amount replaced a failed sizing
        reason: Explanation when fallback_used is True
    """

    loan_amount: Decimal
    liquidity_fraction: Decimal = Decimal("0")
    base_fraction: Decimal = Decimal("0")
    spread_factor: Decimal = Decimal("1")
    volatility_factor: Decimal = Decimal("1")
    gas_factor: Decimal = Decimal("1")
    binding_venue: Optional[str] = None
    binding_liquidity: Decimal = Decimal("0")
    impact_capped: bool = False
    fallback_used: bool = False
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loan_amount": float(self.loan_amount),
            "liquidity_fraction": float(self.liquidity_fraction),
            "base_fraction": float(self.base_fraction),
            "spread_factor": float(self.spread_factor),
            "volatility_factor": float(self.volatility_factor),
            "gas_factor": float(self.gas_factor),
            "binding_venue": self.binding_venue,
            "binding_liquidity": float(self.binding_liquidity),
            "impact_capped": self.impact_capped,
            "fallback_used": self.fallback_used,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ProfitEstimate:
    """
    Full cost breakdown of a simulated flash-loan round trip.

    Attributes:
        loan_amount: Resolved loan size in base-token units
        intermediate_amount: Quote received on the first leg
        final_amount: Base received on the second leg
        gross_profit: final - loan - loan_fee
        loan_fee: Flash-loan fee
        gas_cost: Gas cost converted to base-token units
        net_profit: gross_profit - gas_cost
        passed: Verdict
        reason: Why the verdict failed (empty on pass)
        attempts: Number of simulations run (1 + escalations)
        min_profit_floor: Floor the net profit was compared with
        cost_multiplier: Multiple of gas cost the net profit was compared with
    """

    loan_amount: Decimal
    intermediate_amount: Decimal
    final_amount: Decimal
    gross_profit: Decimal
    loan_fee: Decimal
    gas_cost: Decimal
    net_profit: Decimal
    passed: bool
    reason: str = ""
    attempts: int = 1
    min_profit_floor: Decimal = Decimal("0")
    cost_multiplier: Decimal = Decimal("0")

    @classmethod
    def rejected(cls, reason: str, loan_amount: Decimal = Decimal("0")) -> "ProfitEstimate":
        """Fail verdict for an opportunity that could not be simulated."""
        zero = Decimal("0")
        return cls(
            loan_amount=loan_amount,
            intermediate_amount=zero,
            final_amount=zero,
            gross_profit=zero,
            loan_fee=zero,
            gas_cost=zero,
            net_profit=zero,
            passed=False,
            reason=reason,
            attempts=0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loan_amount": float(self.loan_amount),
            "intermediate_amount": float(self.intermediate_amount),
            "final_amount": float(self.final_amount),
            "gross_profit": float(self.gross_profit),
            "loan_fee": float(self.loan_fee),
            "gas_cost": float(self.gas_cost),
            "net_profit": float(self.net_profit),
            "passed": self.passed,
            "reason": self.reason,
            "attempts": self.attempts,
            "min_profit_floor": float(self.min_profit_floor),
            "cost_multiplier": float(self.cost_multiplier),
        }

    def format_log(self) -> str:
        verdict = "PASS" if self.passed else "FAIL"
        return (
            f"{verdict} net {self.net_profit:.6f} "
            f"(gross {self.gross_profit:.6f} - gas {self.gas_cost:.6f}; "
            f"loan fee {self.loan_fee:.6f}) @ loan {self.loan_amount:.6f}"
            + (f" [{self.reason}]" if self.reason else "")
        )


@dataclass(frozen=True)
class SettlementResult:
    """
    Outcome of handing a trade to the settlement service.

    Attributes:
        success: Whether the atomic borrow/swap/swap/repay succeeded
        realized_profit: Profit in base-token units (if known)
        tx_reference: Transaction hash or other reference
        error: Failure reason
        timed_out: True if the deadline expired with the outcome unknown
    """

    success: bool
    realized_profit: Optional[Decimal] = None
    tx_reference: Optional[str] = None
    error: Optional[str] = None
    timed_out: bool = False
