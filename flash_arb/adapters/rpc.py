"""
RPC call helpers shared by the pool adapters.

Web3 calls are synchronous; they run in the default thread pool so the
event loop stays free, with exponential backoff on rate-limit errors.
"""

import asyncio
from typing import Any, Callable

from web3.exceptions import Web3Exception


def is_rate_limit_error(error: Exception) -> bool:
    """Check for the rate-limit patterns common to public RPC providers."""
    error_msg = str(error)
    return (
        "429" in error_msg
        or "Too Many Requests" in error_msg
        or "-32005" in error_msg  # BSC/Ethereum rate limit code
        or "limit exceeded" in error_msg.lower()
    )


async def call_with_backoff(
    fn: Callable[[], Any], label: str, max_retries: int = 3
) -> Any:
    """
    Run a blocking contract call in a thread with retry on rate limits.

    Args:
        fn: Zero-argument callable performing the RPC call
        label: Description used in error messages
        max_retries: Maximum number of attempts

    Returns:
        Whatever fn returns

    Raises:
        Web3Exception: If the call fails with a non-rate-limit error, or
            still fails after all retries
    """
    loop = asyncio.get_running_loop()
    last_error = None

    for attempt in range(max_retries):
        try:
            return await loop.run_in_executor(None, fn)
        except Exception as e:
            last_error = e
            if is_rate_limit_error(e) and attempt < max_retries - 1:
                # Exponential backoff with jitter: 2s, 4.5s, 9s
                await asyncio.sleep((2 ** (attempt + 1)) + (attempt * 0.5))
                continue
            raise Web3Exception(f"{label} failed: {e}") from e

    raise Web3Exception(
        f"{label} failed after {max_retries} retries: {last_error}"
    ) from last_error
