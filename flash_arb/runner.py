"""
Polling loop tying detector, optimizer, gate and settlement together.

One cycle: read the gas price, detect opportunities per pair, assess each,
and hand the best passing one per pair to settlement unless the safety
manager has paused settlement.
"""

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

from .adapters.v3 import QuoterV2Quoter
from .config_schema import BotConfig
from .decisions import SETTLE, SKIP, DecisionJournal, DecisionRecord
from .detector import OpportunityDetector
from .exceptions import FeedError
from .gate import Assessment, ProfitabilityGate
from .history import PriceHistoryStore
from .metrics import ArbitrageMetrics
from .safety import SafetyManager
from .settlement import DryRunSettlement, SettlementService, settle_with_deadline
from .sizing import LoanSizeOptimizer
from .sources import SnapshotSource, StaticSnapshotSource, Web3SnapshotSource
from .types import SettlementResult, TokenPair
from .utils import get_logger
from .validation import PriceValidator
from .venues import Quoter, Venue, build_venue

logger = get_logger(__name__)


@dataclass
class CycleOutcome:
    """What happened to one assessed opportunity in a cycle."""

    assessment: Assessment
    settlement: Optional[SettlementResult] = None
    skipped_reason: str = ""

    @property
    def settled(self) -> bool:
        return self.settlement is not None and self.settlement.success


class ArbitrageRunner:
    """Fixed-interval scanner over the configured pairs and venues."""

    def __init__(
        self,
        config: BotConfig,
        venues: Sequence[Venue],
        source: SnapshotSource,
        settlement: Optional[SettlementService] = None,
        metrics: Optional[ArbitrageMetrics] = None,
        journal: Optional[DecisionJournal] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.venues = list(venues)
        self.source = source
        self.settlement = settlement or DryRunSettlement()
        self.metrics = metrics
        self.journal = journal or DecisionJournal()
        self._clock = clock

        self.pairs: List[TokenPair] = [
            TokenPair(p.base, p.quote, p.name, p.stable) for p in config.pairs
        ]
        self.native_prices: Dict[str, Decimal] = {
            p.name: p.native_price for p in config.pairs
        }

        self.history = PriceHistoryStore(
            window_size=config.history.window_size,
            min_interval_sec=config.history.min_interval_sec,
            clock=clock,
        )
        validator = PriceValidator(
            global_max=config.detector.max_price,
            stable_band=config.detector.stable_band,
            pair_bands={p.name: (p.min_price, p.max_price) for p in config.pairs},
        )
        self.detector = OpportunityDetector(
            self.venues,
            config=config.detector,
            history=self.history,
            validator=validator,
            journal=self.journal,
            metrics=metrics,
            clock=clock,
        )
        self.optimizer = LoanSizeOptimizer(config.sizing)
        self.gate = ProfitabilityGate(
            {v.name: v for v in self.venues},
            config=config.gate,
            optimizer=self.optimizer,
            journal=self.journal,
            metrics=metrics,
        )
        self.safety = SafetyManager(
            max_consecutive_failures=config.safety.max_consecutive_failures,
            cooldown_seconds=config.safety.cooldown_seconds,
            clock=clock,
        )

        self.cycle_count = 0
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: BotConfig,
        source: Optional[SnapshotSource] = None,
        settlement: Optional[SettlementService] = None,
        metrics: Optional[ArbitrageMetrics] = None,
        quoter: Optional[Quoter] = None,
    ) -> "ArbitrageRunner":
        """Build venues and a snapshot source from configuration."""
        if source is None:
            if config.static_snapshots:
                source = StaticSnapshotSource.from_config(config)
            else:
                source = Web3SnapshotSource.from_rpc_url(config.rpc_url)
        venues = []
        for vc in config.venues:
            venue_quoter = quoter
            if (
                venue_quoter is None
                and vc.quoter_address
                and isinstance(source, Web3SnapshotSource)
            ):
                venue_quoter = QuoterV2Quoter(source.web3, vc.quoter_address)
            venues.append(build_venue(vc, source, quoter=venue_quoter))
        return cls(config, venues, source, settlement=settlement, metrics=metrics)

    async def _settle(self, assessment: Assessment) -> SettlementResult:
        opp = assessment.opportunity
        estimate = assessment.estimate
        result = await settle_with_deadline(
            self.settlement,
            opp.buy_venue,
            opp.sell_venue,
            opp.pair,
            estimate.loan_amount,
            timeout=self.config.runner.settlement_timeout_sec,
            expected_profit=estimate.net_profit,
        )

        if result.success:
            self.safety.record_success()
            outcome = "success"
        else:
            self.safety.record_failure(result.error or "unknown")
            outcome = "timeout" if result.timed_out else "failed"

        self.journal.record(
            DecisionRecord(
                stage=SETTLE,
                pair=opp.pair.label,
                outcome=outcome,
                reason=result.error or "",
                buy_venue=opp.buy_venue,
                sell_venue=opp.sell_venue,
                metrics={
                    "loan_amount": float(estimate.loan_amount),
                    "expected_profit": float(estimate.net_profit),
                    "realized_profit": (
                        float(result.realized_profit)
                        if result.realized_profit is not None
                        else None
                    ),
                    "tx_reference": result.tx_reference,
                },
                timestamp=self._clock(),
            )
        )
        if self.metrics:
            self.metrics.record_settlement(opp.pair.label, outcome)
            self.metrics.set_cooldown(self.safety.in_cooldown())
        return result

    async def _process_pair(self, pair: TokenPair, gas_price_gwei: Decimal) -> List[CycleOutcome]:
        opportunities = await self.detector.detect(pair)
        if not opportunities:
            return []

        native_price = self.native_prices.get(pair.label, Decimal("1"))
        outcomes = [
            CycleOutcome(self.gate.assess(opp, gas_price_gwei, native_price))
            for opp in opportunities
        ]

        passing = [o for o in outcomes if o.assessment.passed]
        if not passing:
            return outcomes

        best = max(passing, key=lambda o: o.assessment.estimate.net_profit)
        for outcome in passing:
            if outcome is not best:
                outcome.skipped_reason = "better opportunity settled for this pair"

        if self.safety.in_cooldown():
            reason = (
                f"settlement cooldown ({self.safety.cooldown_remaining():.0f}s remaining)"
            )
            best.skipped_reason = reason
            opp = best.assessment.opportunity
            self.journal.record(
                DecisionRecord(
                    stage=SKIP,
                    pair=pair.label,
                    outcome="skipped",
                    reason=reason,
                    buy_venue=opp.buy_venue,
                    sell_venue=opp.sell_venue,
                    timestamp=self._clock(),
                )
            )
            return outcomes

        best.settlement = await self._settle(best.assessment)
        return outcomes

    async def run_cycle(self) -> List[CycleOutcome]:
        """Scan every pair once. Cycles never overlap."""
        async with self._lock:
            self.cycle_count += 1
            started = time.perf_counter()
            try:
                gas_price_gwei = await self.source.get_gas_price_gwei()
            except FeedError as e:
                logger.warning(f"Cycle {self.cycle_count} skipped: {e}")
                return []

            outcomes: List[CycleOutcome] = []
            for pair in self.pairs:
                outcomes.extend(await self._process_pair(pair, gas_price_gwei))

            elapsed = time.perf_counter() - started
            if self.metrics:
                self.metrics.cycle_duration_seconds.observe(elapsed)
            passed = sum(1 for o in outcomes if o.assessment.passed)
            logger.info(
                f"Cycle {self.cycle_count}: {len(outcomes)} opportunities, "
                f"{passed} passed, gas {gas_price_gwei} gwei ({elapsed:.2f}s)"
            )
            return outcomes

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run cycles on a fixed interval until stop_event is set."""
        stop_event = stop_event or asyncio.Event()
        interval = self.config.runner.poll_interval_sec
        logger.info(
            f"Scanning {len(self.pairs)} pairs across {len(self.venues)} venues "
            f"every {interval}s"
        )

        while not stop_event.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Cycle {self.cycle_count} failed: {e}", exc_info=True)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Runner stopped")

    def run_once(self) -> List[CycleOutcome]:
        """Run a single cycle from synchronous code."""
        return asyncio.run(self.run_cycle())
