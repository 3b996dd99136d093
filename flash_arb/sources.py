"""
Pool snapshot sources.

A source turns (venue, pair) into a PoolSnapshot and reports the current gas
price. StaticSnapshotSource serves fixed pool state for paper runs and
tests; Web3SnapshotSource reads pools over RPC.
"""

import time
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Dict, Optional, Protocol, Tuple

from web3 import Web3

from .abi import ERC20_ABI
from .adapters.rpc import call_with_backoff
from .adapters.v2 import fetch_pool_async
from .adapters.v3 import fetch_pool_state_async, virtual_reserves
from .config_schema import BotConfig
from .exceptions import FeedError, ImpactModelError
from .types import PoolSnapshot, TokenPair
from .utils import get_logger, to_decimal

if TYPE_CHECKING:
    from .venues import Venue

logger = get_logger(__name__)

GWEI = Decimal("1000000000")


class SnapshotSource(Protocol):
    """Anything that can read pool state and gas price."""

    async def get_snapshot(self, venue: "Venue", pair: TokenPair) -> PoolSnapshot: ...

    async def get_gas_price_gwei(self) -> Decimal: ...


class StaticSnapshotSource:
    """
    In-memory pool state keyed by (venue name, pair).

    Prices and liquidity can be changed between cycles, and a venue can be
    made to fail, which is how paper runs and tests drive the detector.
    """

    def __init__(
        self,
        gas_price_gwei: Decimal = Decimal("5"),
        clock: Callable[[], float] = time.time,
    ):
        self._pools: Dict[Tuple[str, Tuple[str, str]], Tuple[Decimal, Decimal]] = {}
        self._errors: Dict[str, Exception] = {}
        self._gas_price_gwei = gas_price_gwei
        self._clock = clock

    @classmethod
    def from_config(cls, config: BotConfig) -> "StaticSnapshotSource":
        source = cls(gas_price_gwei=config.static_gas_price_gwei)
        pairs = {p.name: TokenPair(p.base, p.quote, p.name, p.stable) for p in config.pairs}
        for snap in config.static_snapshots:
            source.set_pool(snap.venue, pairs[snap.pair], snap.price, snap.liquidity)
        return source

    def set_pool(
        self, venue_name: str, pair: TokenPair, price: Decimal, liquidity: Decimal
    ) -> None:
        self._pools[(venue_name, pair.key)] = (to_decimal(price), to_decimal(liquidity))

    def set_error(self, venue_name: str, error: Optional[Exception]) -> None:
        """Make every read from venue_name raise error (None clears it)."""
        if error is None:
            self._errors.pop(venue_name, None)
        else:
            self._errors[venue_name] = error

    def set_gas_price(self, gas_price_gwei: Decimal) -> None:
        self._gas_price_gwei = to_decimal(gas_price_gwei)

    async def get_snapshot(self, venue: "Venue", pair: TokenPair) -> PoolSnapshot:
        if venue.name in self._errors:
            raise self._errors[venue.name]

        entry = self._pools.get((venue.name, pair.key))
        if entry is None:
            raise FeedError(
                f"No pool for {pair.label} on {venue.name}",
                venue=venue.name,
                pair=pair.label,
            )
        price, liquidity = entry
        return PoolSnapshot(
            venue=venue.name,
            pair=pair,
            price=price,
            liquidity=liquidity,
            fee=venue.fee_for(pair),
            timestamp=self._clock(),
        )

    async def get_gas_price_gwei(self) -> Decimal:
        return self._gas_price_gwei


class Web3SnapshotSource:
    """
    Read V2 reserves and V3 slot0/liquidity over RPC.

    Pairs must carry token addresses as base/quote and each venue must list a
    pool address for the pair. Liquidity is the base-token reserve (virtual
    reserve for V3) in human units.
    """

    def __init__(self, web3: Web3, max_retries: int = 3):
        self.web3 = web3
        self.max_retries = max_retries
        self._decimals: Dict[str, int] = {}

    @classmethod
    def from_rpc_url(cls, rpc_url: str, max_retries: int = 3) -> "Web3SnapshotSource":
        return cls(Web3(Web3.HTTPProvider(rpc_url)), max_retries=max_retries)

    async def _token_decimals(self, token: str) -> int:
        token = Web3.to_checksum_address(token)
        if token not in self._decimals:
            erc20 = self.web3.eth.contract(address=token, abi=ERC20_ABI)
            decimals = await call_with_backoff(
                erc20.functions.decimals().call, f"decimals({token})", self.max_retries
            )
            self._decimals[token] = int(decimals)
        return self._decimals[token]

    async def get_snapshot(self, venue: "Venue", pair: TokenPair) -> PoolSnapshot:
        pool_addr = venue.pool_address(pair)
        if not pool_addr:
            raise FeedError(
                f"No pool address configured for {pair.label} on {venue.name}",
                venue=venue.name,
                pair=pair.label,
            )

        try:
            if venue.kind == "v2":
                token0, token1, raw0, raw1 = await fetch_pool_async(
                    self.web3, Web3.to_checksum_address(pool_addr), self.max_retries
                )
            else:
                token0, token1, sqrt_price_x96, liquidity = await fetch_pool_state_async(
                    self.web3, Web3.to_checksum_address(pool_addr), self.max_retries
                )
                raw0, raw1 = virtual_reserves(sqrt_price_x96, liquidity)
        except (ImpactModelError, ValueError) as e:
            raise FeedError(str(e), venue=venue.name, pair=pair.label) from e
        except Exception as e:
            raise FeedError(
                f"RPC read failed for {pair.label} on {venue.name}: {e}",
                venue=venue.name,
                pair=pair.label,
            ) from e

        base = Web3.to_checksum_address(pair.base)
        if base == token0:
            raw_base, raw_quote, base_token, quote_token = raw0, raw1, token0, token1
        elif base == token1:
            raw_base, raw_quote, base_token, quote_token = raw1, raw0, token1, token0
        else:
            raise FeedError(
                f"Pool {pool_addr} does not contain base token {pair.base}",
                venue=venue.name,
                pair=pair.label,
            )

        base_reserve = raw_base / (Decimal(10) ** await self._token_decimals(base_token))
        quote_reserve = raw_quote / (Decimal(10) ** await self._token_decimals(quote_token))
        if base_reserve <= 0 or quote_reserve <= 0:
            raise FeedError(
                f"Empty reserves for {pair.label} on {venue.name}",
                venue=venue.name,
                pair=pair.label,
            )

        snapshot = PoolSnapshot(
            venue=venue.name,
            pair=pair,
            price=quote_reserve / base_reserve,
            liquidity=base_reserve,
            fee=venue.fee_for(pair),
            timestamp=time.time(),
        )
        logger.debug(
            f"{venue.name} {pair.label}: price={snapshot.price:.8f} "
            f"liquidity={snapshot.liquidity:.4f}"
        )
        return snapshot

    async def get_gas_price_gwei(self) -> Decimal:
        try:
            wei = await call_with_backoff(
                lambda: self.web3.eth.gas_price, "gas_price", self.max_retries
            )
        except Exception as e:
            raise FeedError(f"Gas price read failed: {e}") from e
        return Decimal(wei) / GWEI
