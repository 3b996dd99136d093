"""Builders shared by the flash_arb test modules."""

import copy
from decimal import Decimal

from flash_arb.types import Opportunity, PoolSnapshot, TokenPair

PAIR = TokenPair("TKN", "USD", "TKN/USD")

BASE_CONFIG = {
    "sizing": {"max_loan_amount": 10000},
    "venues": [
        {"name": "alpha", "kind": "v2", "fee_bps": 25},
        {"name": "beta", "kind": "v2", "fee_bps": 25},
    ],
    "pairs": [{"name": "TKN/USD", "base": "TKN", "quote": "USD", "native_price": 600}],
    "static_gas_price_gwei": 5,
    "static_snapshots": [
        {"venue": "alpha", "pair": "TKN/USD", "price": "1.00", "liquidity": "1000000"},
        {"venue": "beta", "pair": "TKN/USD", "price": "1.02", "liquidity": "800000"},
    ],
}


def make_config_dict(**overrides):
    """Deep copy of the profitable two-venue scenario with top-level overrides."""
    config = copy.deepcopy(BASE_CONFIG)
    config.update(overrides)
    return config


def make_snapshot(venue, price, liquidity, fee="0.0025", pair=PAIR, timestamp=1000.0):
    return PoolSnapshot(
        venue=venue,
        pair=pair,
        price=Decimal(str(price)),
        liquidity=Decimal(str(liquidity)),
        fee=Decimal(fee),
        timestamp=timestamp,
    )


def make_opportunity(buy, sell, pair=PAIR, price_history=()):
    return Opportunity(
        pair=pair,
        buy_venue=buy.venue,
        buy_snapshot=buy,
        sell_venue=sell.venue,
        sell_snapshot=sell,
        spread=(sell.price - buy.price) / buy.price,
        detected_at=1000.0,
        price_history=tuple(price_history),
    )


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

