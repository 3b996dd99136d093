"""
Sanity checks on venue prices before they reach the detector's comparison.
"""

from decimal import Decimal
from typing import Dict, Optional, Tuple

from .types import TokenPair
from .utils import get_logger

logger = get_logger(__name__)


class PriceValidator:
    """
    Reject prices that are non-finite, non-positive, absurdly large, or
    outside the band configured for the pair.

    Stable pairs (both tokens pegged) must also sit inside stable_band.
    """

    def __init__(
        self,
        global_max: Decimal = Decimal("1000000"),
        stable_band: Tuple[Decimal, Decimal] = (Decimal("0.98"), Decimal("1.02")),
        pair_bands: Optional[Dict[str, Tuple[Optional[Decimal], Optional[Decimal]]]] = None,
    ):
        self.global_max = global_max
        self.stable_band = stable_band
        self.pair_bands = pair_bands or {}

    def rejection_reason(self, pair: TokenPair, price: Decimal) -> Optional[str]:
        """Why price is implausible for pair, or None if it passes."""
        if not isinstance(price, Decimal) or not price.is_finite():
            return f"non-finite price {price}"
        if price <= 0:
            return f"non-positive price {price}"
        if price > self.global_max:
            return f"price {price} above global max {self.global_max}"

        low, high = self.pair_bands.get(pair.label, (None, None))
        if low is not None and price < low:
            return f"price {price} below pair band {low}"
        if high is not None and price > high:
            return f"price {price} above pair band {high}"

        if pair.stable:
            stable_low, stable_high = self.stable_band
            if not (stable_low <= price <= stable_high):
                return f"stable pair price {price} outside [{stable_low}, {stable_high}]"
        return None

    def is_valid(self, pair: TokenPair, price: Decimal) -> bool:
        reason = self.rejection_reason(pair, price)
        if reason is not None:
            logger.debug(f"{pair.label}: {reason}")
            return False
        return True
