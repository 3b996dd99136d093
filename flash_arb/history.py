"""
Per-pair price history ring buffer.

The Detector records one cross-venue mean price per pair at most every
min_interval_sec; the Optimizer reads the window to estimate volatility.
"""

import threading
import time
from collections import deque
from decimal import Decimal
from typing import Callable, Deque, Dict, Tuple

from .types import TokenPair
from .utils import get_logger

logger = get_logger(__name__)


class PriceHistoryStore:
    """Bounded, throttled price windows keyed by unordered token pair."""

    def __init__(
        self,
        window_size: int = 30,
        min_interval_sec: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        if window_size < 1:
            raise ValueError(f"window_size must be positive: {window_size}")
        self.window_size = window_size
        self.min_interval_sec = min_interval_sec
        self._clock = clock
        self._prices: Dict[Tuple[str, str], Deque[Decimal]] = {}
        self._last_update: Dict[Tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def record(self, pair: TokenPair, price: Decimal) -> bool:
        """
        Append a price for pair unless throttled or invalid.

        Returns:
            True if the price was appended
        """
        if not price.is_finite() or price <= 0:
            logger.debug(f"Ignoring invalid history price {price} for {pair.label}")
            return False

        now = self._clock()
        with self._lock:
            last = self._last_update.get(pair.key)
            if last is not None and now - last < self.min_interval_sec:
                return False
            window = self._prices.get(pair.key)
            if window is None:
                window = deque(maxlen=self.window_size)
                self._prices[pair.key] = window
            window.append(price)
            self._last_update[pair.key] = now
            return True

    def prices(self, pair: TokenPair) -> Tuple[Decimal, ...]:
        """Snapshot of the window for pair, oldest first."""
        with self._lock:
            return tuple(self._prices.get(pair.key, ()))

    def clear(self) -> None:
        with self._lock:
            self._prices.clear()
            self._last_update.clear()

    def __len__(self) -> int:
        """Number of pairs with at least one recorded price."""
        with self._lock:
            return len(self._prices)
