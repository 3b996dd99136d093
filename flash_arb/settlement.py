"""
Settlement services.

The engine hands a passing opportunity to a settlement service, which
performs borrow / swap / swap / repay atomically and reports the outcome.
Every attempt runs under a deadline and is never retried: by the time a
submission fails, the opportunity is stale.
"""

import asyncio
import uuid
from decimal import Decimal
from typing import Optional, Protocol

from .exceptions import SettlementError
from .types import SettlementResult, TokenPair
from .utils import get_logger

logger = get_logger(__name__)


class SettlementService(Protocol):
    """Atomic, opaque execution of a flash-loan round trip."""

    async def execute(
        self,
        buy_venue: str,
        sell_venue: str,
        pair: TokenPair,
        loan_amount: Decimal,
        expected_profit: Optional[Decimal] = None,
    ) -> SettlementResult: ...


class DryRunSettlement:
    """Pretend to settle, reporting the expected profit as realized."""

    def __init__(self):
        self.submissions = []

    async def execute(
        self,
        buy_venue: str,
        sell_venue: str,
        pair: TokenPair,
        loan_amount: Decimal,
        expected_profit: Optional[Decimal] = None,
    ) -> SettlementResult:
        reference = f"dry-run-{uuid.uuid4().hex[:12]}"
        self.submissions.append((buy_venue, sell_venue, pair, loan_amount))
        logger.info(
            f"[DRY RUN] Would borrow {loan_amount} {pair.base}, sell on {sell_venue}, "
            f"buy back on {buy_venue} ({reference})"
        )
        return SettlementResult(
            success=True, realized_profit=expected_profit, tx_reference=reference
        )


async def settle_with_deadline(
    service: SettlementService,
    buy_venue: str,
    sell_venue: str,
    pair: TokenPair,
    loan_amount: Decimal,
    timeout: float,
    expected_profit: Optional[Decimal] = None,
) -> SettlementResult:
    """
    Run one settlement attempt under a deadline.

    Timeouts and service errors become a failed SettlementResult; nothing
    is raised and nothing is retried.
    """
    try:
        return await asyncio.wait_for(
            service.execute(buy_venue, sell_venue, pair, loan_amount, expected_profit),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error(
            f"Settlement for {pair.label} timed out after {timeout}s; outcome unknown"
        )
        return SettlementResult(
            success=False, error=f"timed out after {timeout}s", timed_out=True
        )
    except SettlementError as e:
        logger.error(f"Settlement for {pair.label} failed: {e}")
        return SettlementResult(success=False, error=str(e), tx_reference=e.tx_reference)
    except Exception as e:
        logger.exception(f"Unexpected settlement error for {pair.label}")
        return SettlementResult(success=False, error=f"{type(e).__name__}: {e}")
