"""
Configuration schema validation using Pydantic
"""

from decimal import Decimal
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

# Starting fraction of the shallowest venue's liquidity, by venue class.
# Deeper/concentrated venues tolerate a larger share before impact dominates.
DEFAULT_VENUE_BASE_FRACTIONS: Dict[str, Decimal] = {
    "pancakeswapv3": Decimal("0.025"),
    "pancakeswapv2": Decimal("0.020"),
    "biswap": Decimal("0.020"),
    "mdex": Decimal("0.018"),
    "apeswap": Decimal("0.015"),
    "babyswap": Decimal("0.015"),
    "julswap": Decimal("0.010"),
}

# V3 fee tiers in hundredths of a basis point (pool units)
V3_FEE_TIERS = (100, 500, 2500, 10000)


class DetectorConfig(BaseModel):
    """Spread thresholds and venue query settings"""

    min_spread_threshold: Decimal = Field(
        default=Decimal("0.001"), ge=0, lt=1, description="Minimum spread (fraction)"
    )
    max_spread_threshold: Decimal = Field(
        default=Decimal("0.05"),
        gt=0,
        lt=1,
        description="Spreads above this are treated as feed corruption",
    )
    venue_timeout_sec: float = Field(default=5.0, gt=0, le=120)
    max_price: Decimal = Field(
        default=Decimal("1000000"), gt=0, description="Global price sanity ceiling"
    )
    stable_band: Tuple[Decimal, Decimal] = (Decimal("0.98"), Decimal("1.02"))

    @model_validator(mode="after")
    def validate_thresholds(self):
        if self.min_spread_threshold >= self.max_spread_threshold:
            raise ValueError(
                "min_spread_threshold must be less than max_spread_threshold"
            )
        low, high = self.stable_band
        if not (0 < low < high):
            raise ValueError("stable_band must be (low, high) with 0 < low < high")
        return self


class SizingConfig(BaseModel):
    """Loan-size optimizer settings"""

    min_loan_amount: Decimal = Field(default=Decimal("0.1"), gt=0)
    max_loan_amount: Decimal = Field(default=Decimal("50"), gt=0)
    default_loan_amount: Decimal = Field(
        default=Decimal("0.5"), gt=0, description="Fallback when sizing fails"
    )
    liquidity_fraction_cap: Decimal = Field(
        default=Decimal("0.10"),
        gt=0,
        le=1,
        description="Loan never exceeds this share of the shallowest venue",
    )
    venue_base_fractions: Dict[str, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_VENUE_BASE_FRACTIONS)
    )
    default_base_fraction: Decimal = Field(default=Decimal("0.015"), gt=0, le=1)
    small_spread_threshold: Decimal = Field(default=Decimal("0.001"), ge=0)
    small_spread_factor: Decimal = Field(default=Decimal("0.5"), gt=0, le=1)
    large_spread_threshold: Decimal = Field(default=Decimal("0.003"), gt=0)
    spread_log_damping: Decimal = Field(default=Decimal("0.4"), ge=0)
    max_size_fraction: Decimal = Field(
        default=Decimal("0.03"), gt=0, le=1, description="Hard ceiling after spread boost"
    )
    max_spread_multiplier: Decimal = Field(default=Decimal("2.5"), ge=1)
    volatility_k: Decimal = Field(default=Decimal("10"), ge=0)
    volatility_floor: Decimal = Field(default=Decimal("0.5"), gt=0, le=1)
    min_volatility_samples: int = Field(default=5, ge=2)
    gas_baseline_gwei: Decimal = Field(default=Decimal("5"), ge=0)
    gas_slope_per_gwei: Decimal = Field(default=Decimal("0.02"), ge=0)
    gas_floor: Decimal = Field(default=Decimal("0.7"), gt=0, le=1)
    impact_budget_ratio: Optional[Decimal] = Field(
        default=Decimal("0.25"),
        gt=0,
        le=1,
        description="Per-leg slippage budget as a share of the spread; None disables",
    )

    @field_validator("venue_base_fractions")
    @classmethod
    def validate_base_fractions(cls, v):
        normalized = {}
        for name, fraction in v.items():
            fraction = Decimal(str(fraction))
            if not (0 < fraction <= 1):
                raise ValueError(f"Base fraction for {name} must be in (0, 1]: {fraction}")
            normalized[name.lower().replace(" ", "")] = fraction
        return normalized

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.min_loan_amount > self.max_loan_amount:
            raise ValueError("min_loan_amount must not exceed max_loan_amount")
        if self.small_spread_threshold >= self.large_spread_threshold:
            raise ValueError(
                "small_spread_threshold must be less than large_spread_threshold"
            )
        return self


class GateConfig(BaseModel):
    """Profitability gate settings"""

    min_profit_floor: Decimal = Field(
        default=Decimal("0.005"), ge=0, description="Minimum net profit (base units)"
    )
    profit_cost_multiplier: Decimal = Field(
        default=Decimal("1.5"), ge=0, description="Net profit must exceed N x gas cost"
    )
    flash_loan_fee_rate: Decimal = Field(default=Decimal("0.0009"), ge=0, lt=1)
    gas_units: int = Field(default=700_000, gt=0)
    escalation_factor: Decimal = Field(default=Decimal("3"), gt=1)
    max_escalations: int = Field(default=1, ge=0, le=2)


class HistoryConfig(BaseModel):
    """Per-pair price history ring buffer"""

    window_size: int = Field(default=30, ge=2, le=10_000)
    min_interval_sec: float = Field(default=60.0, ge=0)


class SafetyConfig(BaseModel):
    """Settlement failure cooldown"""

    max_consecutive_failures: int = Field(default=3, ge=1, le=100)
    cooldown_seconds: float = Field(default=300.0, ge=0, le=86400)


class RunnerConfig(BaseModel):
    """Polling loop settings"""

    poll_interval_sec: float = Field(default=10.0, gt=0)
    settlement_timeout_sec: float = Field(default=30.0, gt=0)
    dry_run: bool = True
    once: bool = False


class VenueConfig(BaseModel):
    """A configured liquidity venue"""

    name: str
    kind: Literal["v2", "v3"] = "v2"
    fee_bps: Optional[Decimal] = Field(default=None, ge=0, lt=10_000)
    fee_tiers: List[int] = Field(default_factory=list)
    size_class: Optional[str] = None
    pools: Dict[str, str] = Field(
        default_factory=dict, description="Pair name -> pool address"
    )
    pool_fee_tiers: Dict[str, int] = Field(
        default_factory=dict, description="Pair name -> V3 fee tier"
    )
    quoter_address: Optional[str] = Field(
        default=None, description="QuoterV2 address for on-chain V3 quotes"
    )

    @field_validator("fee_tiers")
    @classmethod
    def validate_fee_tiers(cls, v):
        for tier in v:
            if tier not in V3_FEE_TIERS:
                raise ValueError(f"Unknown V3 fee tier {tier} (allowed: {V3_FEE_TIERS})")
        return v

    @model_validator(mode="after")
    def validate_fee_model(self):
        if self.kind == "v2" and self.fee_bps is None:
            raise ValueError(f"Venue '{self.name}' (v2) requires fee_bps")
        if self.kind == "v3" and not self.fee_tiers and not self.pool_fee_tiers:
            raise ValueError(f"Venue '{self.name}' (v3) requires fee_tiers")
        return self


class PairConfig(BaseModel):
    """A tracked token pair"""

    name: str
    base: str
    quote: str
    stable: bool = False
    min_price: Optional[Decimal] = Field(default=None, gt=0)
    max_price: Optional[Decimal] = Field(default=None, gt=0)
    native_price: Decimal = Field(
        default=Decimal("1"),
        gt=0,
        description="Base-token units per native gas token, for gas cost conversion",
    )

    @model_validator(mode="after")
    def validate_band(self):
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price >= self.max_price
        ):
            raise ValueError(f"Pair '{self.name}': min_price must be below max_price")
        return self


class StaticSnapshotConfig(BaseModel):
    """Fixed pool state for paper runs"""

    venue: str
    pair: str
    price: Decimal = Field(ge=0)
    liquidity: Decimal = Field(ge=0)


class BotConfig(BaseModel):
    """Complete engine configuration"""

    rpc_url: Optional[str] = None
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    sizing: SizingConfig = Field(default_factory=SizingConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    venues: List[VenueConfig]
    pairs: List[PairConfig]
    static_snapshots: List[StaticSnapshotConfig] = Field(default_factory=list)
    static_gas_price_gwei: Decimal = Field(default=Decimal("5"), ge=0)

    @field_validator("venues")
    @classmethod
    def validate_venues(cls, v):
        if len(v) < 2:
            raise ValueError("At least two venues are required to compare prices")
        names = [venue.name for venue in v]
        if len(set(names)) != len(names):
            raise ValueError("Venue names must be unique")
        return v

    @field_validator("pairs")
    @classmethod
    def validate_pairs(cls, v):
        if not v:
            raise ValueError("pairs cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_source(self):
        if not self.static_snapshots and not self.rpc_url:
            raise ValueError("Either rpc_url or static_snapshots must be configured")
        venue_names = {venue.name for venue in self.venues}
        pair_names = {pair.name for pair in self.pairs}
        for snap in self.static_snapshots:
            if snap.venue not in venue_names:
                raise ValueError(f"static snapshot references unknown venue '{snap.venue}'")
            if snap.pair not in pair_names:
                raise ValueError(f"static snapshot references unknown pair '{snap.pair}'")
        return self
