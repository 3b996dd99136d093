"""
Liquidity venues.

A venue knows its fee model and how to simulate a swap against one of its
pool snapshots. Pool state itself comes from a SnapshotSource, so the same
venue objects serve both live RPC scanning and static paper runs.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Protocol

from .config_schema import VenueConfig
from .exceptions import ConfigurationError
from .slippage import swap_out
from .types import PoolSnapshot, TokenPair, VenueKind

if TYPE_CHECKING:
    from .sources import SnapshotSource

BPS = Decimal("10000")
V3_FEE_DENOMINATOR = Decimal("1000000")


class Venue(ABC):
    """Base class for a DEX venue."""

    kind: VenueKind

    def __init__(self, config: VenueConfig, source: "SnapshotSource"):
        self.config = config
        self.source = source

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def size_class(self) -> str:
        """Key into the optimizer's venue base fractions."""
        return (self.config.size_class or self.config.name).lower().replace(" ", "")

    def pool_address(self, pair: TokenPair) -> Optional[str]:
        return self.config.pools.get(pair.label)

    @abstractmethod
    def fee_for(self, pair: TokenPair) -> Decimal:
        """Swap fee as a fraction for this pair's pool."""

    async def snapshot(self, pair: TokenPair) -> PoolSnapshot:
        """Read the current state of this venue's pool for pair."""
        return await self.source.get_snapshot(self, pair)

    @abstractmethod
    def quote(
        self, snapshot: PoolSnapshot, amount_in: Decimal, sell_base: bool
    ) -> Decimal:
        """
        Simulate a swap against snapshot.

        Args:
            snapshot: Pool state to trade against
            amount_in: Input amount in human units
            sell_base: True to sell base for quote, False to buy base with quote

        Returns:
            Output amount in human units
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class ConstantProductVenue(Venue):
    """Uniswap V2 style x*y=k pool with a flat fee."""

    kind: VenueKind = "v2"

    def fee_for(self, pair: TokenPair) -> Decimal:
        return Decimal(self.config.fee_bps) / BPS

    def quote(
        self, snapshot: PoolSnapshot, amount_in: Decimal, sell_base: bool
    ) -> Decimal:
        if sell_base:
            return swap_out(
                amount_in, snapshot.base_reserve, snapshot.quote_reserve, snapshot.fee
            )
        return swap_out(
            amount_in, snapshot.quote_reserve, snapshot.base_reserve, snapshot.fee
        )


class Quoter(Protocol):
    """Swap quoting backend for concentrated-liquidity venues."""

    def quote(
        self,
        snapshot: PoolSnapshot,
        amount_in: Decimal,
        sell_base: bool,
        fee_tier: int,
    ) -> Decimal: ...


class VirtualReserveQuoter:
    """
    Quote against the virtual reserves of the active range.

    Exact while the trade stays inside the current tick; beyond that it
    overestimates output, so keep trades small or use an on-chain quoter.
    """

    def quote(
        self,
        snapshot: PoolSnapshot,
        amount_in: Decimal,
        sell_base: bool,
        fee_tier: int,
    ) -> Decimal:
        fee = Decimal(fee_tier) / V3_FEE_DENOMINATOR
        if sell_base:
            return swap_out(amount_in, snapshot.base_reserve, snapshot.quote_reserve, fee)
        return swap_out(amount_in, snapshot.quote_reserve, snapshot.base_reserve, fee)


class ConcentratedLiquidityVenue(Venue):
    """Uniswap V3 style venue with fee tiers."""

    kind: VenueKind = "v3"

    def __init__(
        self,
        config: VenueConfig,
        source: "SnapshotSource",
        quoter: Optional[Quoter] = None,
    ):
        super().__init__(config, source)
        self.quoter = quoter or VirtualReserveQuoter()

    def fee_tier_for(self, pair: TokenPair) -> int:
        tier = self.config.pool_fee_tiers.get(pair.label)
        if tier is not None:
            return tier
        if not self.config.fee_tiers:
            raise ConfigurationError(
                f"Venue '{self.name}' has no fee tier for {pair.label}"
            )
        return self.config.fee_tiers[0]

    def fee_for(self, pair: TokenPair) -> Decimal:
        return Decimal(self.fee_tier_for(pair)) / V3_FEE_DENOMINATOR

    def quote(
        self, snapshot: PoolSnapshot, amount_in: Decimal, sell_base: bool
    ) -> Decimal:
        return self.quoter.quote(
            snapshot, amount_in, sell_base, self.fee_tier_for(snapshot.pair)
        )


def build_venue(
    config: VenueConfig, source: "SnapshotSource", quoter: Optional[Quoter] = None
) -> Venue:
    """Create the venue class matching config.kind."""
    if config.kind == "v2":
        return ConstantProductVenue(config, source)
    if config.kind == "v3":
        return ConcentratedLiquidityVenue(config, source, quoter=quoter)
    raise ConfigurationError(f"Unknown venue kind: {config.kind}")
