"""
Uniswap V2 style adapter for constant-product AMM pools.

Reads token addresses and raw reserves from a pair contract.
"""

import asyncio
from decimal import Decimal
from typing import Tuple

from web3 import Web3

from ..abi import UNISWAP_V2_PAIR_ABI
from .rpc import call_with_backoff


async def fetch_pool_async(
    web3: Web3, pair_addr: str, max_retries: int = 3
) -> Tuple[str, str, Decimal, Decimal]:
    """
    Fetch token addresses and reserves from a Uniswap V2 style pair.

    Args:
        web3: Web3 instance connected to the chain
        pair_addr: Checksummed address of the pair contract
        max_retries: Maximum number of retry attempts (default: 3)

    Returns:
        Tuple of (token0_addr, token1_addr, reserve0, reserve1), reserves in
        raw token units

    Raises:
        Web3Exception: If RPC calls fail after all retries
        ValueError: If pair address is invalid
    """
    if not Web3.is_checksum_address(pair_addr):
        raise ValueError(f"Invalid pair address: {pair_addr}")

    pair = web3.eth.contract(address=pair_addr, abi=UNISWAP_V2_PAIR_ABI)
    label = f"V2 pool {pair_addr}"

    token0, token1, reserves = await asyncio.gather(
        call_with_backoff(pair.functions.token0().call, label, max_retries),
        call_with_backoff(pair.functions.token1().call, label, max_retries),
        call_with_backoff(pair.functions.getReserves().call, label, max_retries),
    )

    return (
        Web3.to_checksum_address(token0),
        Web3.to_checksum_address(token1),
        Decimal(reserves[0]),
        Decimal(reserves[1]),
    )
