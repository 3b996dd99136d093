"""
Cross-venue opportunity detector.

Each cycle the detector reads every venue's pool for a pair concurrently,
throws away snapshots it cannot trust, and compares the survivors pairwise.
A spread between the configured thresholds becomes an Opportunity; a spread
above the upper threshold is treated as a broken feed and dropped.
"""

import asyncio
import time
from decimal import Decimal
from enum import Enum
from itertools import combinations
from typing import Callable, List, Optional, Sequence

from .config_schema import DetectorConfig
from .decisions import DETECT, DecisionJournal, DecisionRecord
from .history import PriceHistoryStore
from .metrics import ArbitrageMetrics
from .types import Opportunity, PoolSnapshot, TokenPair
from .utils import format_pct, get_logger
from .validation import PriceValidator
from .venues import Venue

logger = get_logger(__name__)


class DetectorState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    COMPARING = "comparing"
    OPPORTUNITY = "opportunity"


class OpportunityDetector:
    """Find price discrepancies for a pair across venues."""

    def __init__(
        self,
        venues: Sequence[Venue],
        config: Optional[DetectorConfig] = None,
        history: Optional[PriceHistoryStore] = None,
        validator: Optional[PriceValidator] = None,
        journal: Optional[DecisionJournal] = None,
        metrics: Optional[ArbitrageMetrics] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.venues = list(venues)
        self.config = config or DetectorConfig()
        self.history = history or PriceHistoryStore()
        self.validator = validator or PriceValidator(
            global_max=self.config.max_price, stable_band=self.config.stable_band
        )
        self.journal = journal or DecisionJournal()
        self.metrics = metrics
        self._clock = clock
        self._state = DetectorState.IDLE

    @property
    def state(self) -> DetectorState:
        return self._state

    def _exclude(self, venue: str, pair: TokenPair, reason: str) -> None:
        self.journal.record(
            DecisionRecord(
                stage=DETECT,
                pair=pair.label,
                outcome="excluded",
                reason=f"{venue}: {reason}",
                timestamp=self._clock(),
            )
        )
        if self.metrics:
            self.metrics.record_dropped(pair.label, "venue_excluded")

    async def _fetch_one(self, venue: Venue, pair: TokenPair) -> Optional[PoolSnapshot]:
        try:
            snapshot = await asyncio.wait_for(
                venue.snapshot(pair), timeout=self.config.venue_timeout_sec
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"{venue.name} timed out after {self.config.venue_timeout_sec}s for {pair.label}"
            )
            self._exclude(venue.name, pair, "timeout")
            return None
        except Exception as e:
            logger.warning(f"{venue.name} failed for {pair.label}: {e}")
            self._exclude(venue.name, pair, f"error: {e}")
            return None

        liquidity = snapshot.liquidity
        if not isinstance(liquidity, Decimal) or not liquidity.is_finite():
            logger.warning(f"{venue.name} {pair.label}: invalid liquidity {liquidity}")
            self._exclude(venue.name, pair, f"invalid liquidity {liquidity}")
            return None
        if liquidity <= 0:
            self._exclude(venue.name, pair, "zero liquidity")
            return None
        reason = self.validator.rejection_reason(pair, snapshot.price)
        if reason is not None:
            logger.warning(f"{venue.name} {pair.label}: {reason}")
            self._exclude(venue.name, pair, reason)
            return None
        return snapshot

    async def fetch_snapshots(self, pair: TokenPair) -> List[PoolSnapshot]:
        """
        Read pair from every venue concurrently.

        Venues that time out, raise, report zero liquidity or an implausible
        price are left out of the result.
        """
        self._state = DetectorState.FETCHING
        results = await asyncio.gather(*[self._fetch_one(v, pair) for v in self.venues])
        snapshots = [s for s in results if s is not None]
        logger.debug(f"{pair.label}: {len(snapshots)}/{len(self.venues)} venues usable")
        return snapshots

    def compare(self, pair: TokenPair, snapshots: Sequence[PoolSnapshot]) -> List[Opportunity]:
        """
        Compare every two snapshots and emit opportunities inside the band.

        spread = |pA - pB| / min(pA, pB); the buy venue is the cheaper one.
        """
        self._state = DetectorState.COMPARING
        opportunities: List[Opportunity] = []
        if len(snapshots) < 2:
            self._state = DetectorState.IDLE
            return opportunities

        now = self._clock()
        history = self.history.prices(pair)

        for a, b in combinations(snapshots, 2):
            if a.price == b.price:
                continue
            buy, sell = (a, b) if a.price < b.price else (b, a)
            spread = (sell.price - buy.price) / buy.price
            metrics = {
                "buy_price": float(buy.price),
                "sell_price": float(sell.price),
                "spread": float(spread),
            }

            if spread > self.config.max_spread_threshold:
                logger.warning(
                    f"{pair.label} {buy.venue}/{sell.venue}: spread {format_pct(spread)} "
                    f"above max {format_pct(self.config.max_spread_threshold)}, "
                    f"treating as feed anomaly"
                )
                self.journal.record(
                    DecisionRecord(
                        stage=DETECT,
                        pair=pair.label,
                        outcome="dropped",
                        reason="spread above max threshold",
                        buy_venue=buy.venue,
                        sell_venue=sell.venue,
                        metrics=metrics,
                        timestamp=now,
                    )
                )
                if self.metrics:
                    self.metrics.record_dropped(pair.label, "above_max")
                continue

            if spread <= self.config.min_spread_threshold:
                self.journal.record(
                    DecisionRecord(
                        stage=DETECT,
                        pair=pair.label,
                        outcome="dropped",
                        reason="spread below min threshold",
                        buy_venue=buy.venue,
                        sell_venue=sell.venue,
                        metrics=metrics,
                        timestamp=now,
                    )
                )
                if self.metrics:
                    self.metrics.record_dropped(pair.label, "below_min")
                continue

            opportunity = Opportunity(
                pair=pair,
                buy_venue=buy.venue,
                buy_snapshot=buy,
                sell_venue=sell.venue,
                sell_snapshot=sell,
                spread=spread,
                detected_at=now,
                price_history=history,
            )
            opportunities.append(opportunity)
            self.journal.record(
                DecisionRecord(
                    stage=DETECT,
                    pair=pair.label,
                    outcome="emitted",
                    reason=f"spread {format_pct(spread)}",
                    buy_venue=buy.venue,
                    sell_venue=sell.venue,
                    metrics=metrics,
                    timestamp=now,
                )
            )
            if self.metrics:
                self.metrics.record_detected(pair.label)

        opportunities.sort(key=lambda o: o.spread, reverse=True)
        self._state = DetectorState.OPPORTUNITY if opportunities else DetectorState.IDLE
        return opportunities

    async def detect(self, pair: TokenPair) -> List[Opportunity]:
        """Fetch, compare, then feed the cross-venue mean price to history."""
        snapshots = await self.fetch_snapshots(pair)
        opportunities = self.compare(pair, snapshots)
        if snapshots:
            mean_price = sum((s.price for s in snapshots), Decimal("0")) / len(snapshots)
            self.history.record(pair, mean_price)
        return opportunities
