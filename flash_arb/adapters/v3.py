"""
Uniswap V3 style adapter for concentrated-liquidity pools.

Pool state comes from slot0() and liquidity(). Inside the active tick a V3
pool behaves like a constant-product pool over its virtual reserves:

    x_virtual = L / sqrtP
    y_virtual = L * sqrtP

Exact quotes that account for tick crossing come from QuoterV2.
"""

import asyncio
from decimal import Decimal
from typing import Dict, Tuple

from web3 import Web3

from ..abi import ERC20_ABI, QUOTER_V2_ABI, UNISWAP_V3_POOL_ABI
from ..exceptions import ImpactModelError
from ..types import PoolSnapshot
from .rpc import call_with_backoff

Q96 = Decimal(2) ** 96


async def fetch_pool_state_async(
    web3: Web3, pool_addr: str, max_retries: int = 3
) -> Tuple[str, str, int, int]:
    """
    Fetch token addresses, sqrtPriceX96 and in-range liquidity of a V3 pool.

    Raises:
        Web3Exception: If RPC calls fail after all retries
        ValueError: If pool address is invalid
    """
    if not Web3.is_checksum_address(pool_addr):
        raise ValueError(f"Invalid pool address: {pool_addr}")

    pool = web3.eth.contract(address=pool_addr, abi=UNISWAP_V3_POOL_ABI)
    label = f"V3 pool {pool_addr}"

    token0, token1, slot0, liquidity = await asyncio.gather(
        call_with_backoff(pool.functions.token0().call, label, max_retries),
        call_with_backoff(pool.functions.token1().call, label, max_retries),
        call_with_backoff(pool.functions.slot0().call, label, max_retries),
        call_with_backoff(pool.functions.liquidity().call, label, max_retries),
    )

    return (
        Web3.to_checksum_address(token0),
        Web3.to_checksum_address(token1),
        int(slot0[0]),
        int(liquidity),
    )


def virtual_reserves(sqrt_price_x96: int, liquidity: int) -> Tuple[Decimal, Decimal]:
    """
    Virtual (reserve0, reserve1) of the active range in raw token units.

    Raises:
        ImpactModelError: If the pool has no price or no in-range liquidity
    """
    if sqrt_price_x96 <= 0 or liquidity <= 0:
        raise ImpactModelError(
            f"V3 pool has no active liquidity (sqrtPriceX96={sqrt_price_x96}, L={liquidity})"
        )
    sqrt_p = Decimal(sqrt_price_x96) / Q96
    liq = Decimal(liquidity)
    return liq / sqrt_p, liq * sqrt_p


class QuoterV2Quoter:
    """
    Quote concentrated-liquidity swaps through the on-chain QuoterV2.

    Snapshot pairs must carry token addresses as base/quote. Amounts are
    converted between human units and raw units with each token's decimals.
    """

    def __init__(self, web3: Web3, quoter_address: str):
        self.web3 = web3
        self.quoter_address = Web3.to_checksum_address(quoter_address)
        self._quoter_contract = None
        self._decimals: Dict[str, int] = {}

    @property
    def quoter(self):
        """Lazy load QuoterV2 contract."""
        if self._quoter_contract is None:
            self._quoter_contract = self.web3.eth.contract(
                address=self.quoter_address, abi=QUOTER_V2_ABI
            )
        return self._quoter_contract

    def token_decimals(self, token: str) -> int:
        token = Web3.to_checksum_address(token)
        if token not in self._decimals:
            erc20 = self.web3.eth.contract(address=token, abi=ERC20_ABI)
            self._decimals[token] = int(erc20.functions.decimals().call())
        return self._decimals[token]

    def quote(
        self,
        snapshot: PoolSnapshot,
        amount_in: Decimal,
        sell_base: bool,
        fee_tier: int,
    ) -> Decimal:
        pair = snapshot.pair
        token_in, token_out = (
            (pair.base, pair.quote) if sell_base else (pair.quote, pair.base)
        )
        if amount_in <= 0:
            return Decimal("0")

        dec_in = self.token_decimals(token_in)
        dec_out = self.token_decimals(token_out)
        raw_in = int(amount_in * (Decimal(10) ** dec_in))

        params = (
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            raw_in,
            fee_tier,
            0,
        )
        try:
            result = self.quoter.functions.quoteExactInputSingle(params).call()
        except Exception as e:
            raise ImpactModelError(
                f"QuoterV2 quote failed for {pair.label} fee={fee_tier}: {e}",
                details={"venue": snapshot.venue},
            ) from e
        return Decimal(result[0]) / (Decimal(10) ** dec_out)
