"""
Tests for the polling runner: detect, assess, settle and the cooldown.
"""

import asyncio
from decimal import Decimal

import pytest
from prometheus_client import CollectorRegistry

from flash_arb.decisions import SETTLE, SKIP
from flash_arb.exceptions import FeedError, SettlementError
from flash_arb.metrics import ArbitrageMetrics
from flash_arb.runner import ArbitrageRunner
from flash_arb.settlement import DryRunSettlement
from flash_arb.sources import StaticSnapshotSource
from helpers import PAIR


class RevertingSettlement:
    def __init__(self):
        self.calls = 0

    async def execute(self, buy_venue, sell_venue, pair, loan_amount, expected_profit=None):
        self.calls += 1
        raise SettlementError("execution reverted", tx_reference=f"0x{self.calls:04x}")


class NoGasSource(StaticSnapshotSource):
    async def get_gas_price_gwei(self):
        raise FeedError("eth_gasPrice unavailable")


@pytest.fixture
def metrics():
    return ArbitrageMetrics(CollectorRegistry())


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_settles_profitable_opportunity(self, bot_config, metrics):
        settlement = DryRunSettlement()
        runner = ArbitrageRunner.from_config(bot_config, settlement=settlement, metrics=metrics)

        outcomes = await runner.run_cycle()

        assert len(outcomes) == 1
        outcome = outcomes[0]
        assert outcome.assessment.passed
        assert outcome.settled
        estimate = outcome.assessment.estimate
        assert outcome.settlement.realized_profit == estimate.net_profit
        assert settlement.submissions == [("alpha", "beta", PAIR, estimate.loan_amount)]
        assert [r.outcome for r in runner.journal.by_stage(SETTLE)] == ["success"]
        assert metrics.registry.get_sample_value(
            "flash_arb_settlements_total", {"pair": "TKN/USD", "outcome": "success"}
        ) == 1
        assert runner.cycle_count == 1

    @pytest.mark.asyncio
    async def test_no_settlement_when_gate_fails(self, bot_config):
        # Gas too expensive for the spread to pay
        source = StaticSnapshotSource.from_config(bot_config)
        source.set_gas_price(Decimal("1000"))
        settlement = DryRunSettlement()
        runner = ArbitrageRunner.from_config(bot_config, source=source, settlement=settlement)

        outcomes = await runner.run_cycle()

        assert len(outcomes) == 1
        assert not outcomes[0].assessment.passed
        assert outcomes[0].settlement is None
        assert settlement.submissions == []

    @pytest.mark.asyncio
    async def test_excluded_venue_leaves_nothing_to_compare(self, bot_config):
        source = StaticSnapshotSource.from_config(bot_config)
        source.set_error("beta", FeedError("node down", venue="beta"))
        runner = ArbitrageRunner.from_config(bot_config, source=source)

        assert await runner.run_cycle() == []

    @pytest.mark.asyncio
    async def test_gas_feed_failure_skips_cycle(self, bot_config):
        settlement = DryRunSettlement()
        runner = ArbitrageRunner.from_config(
            bot_config, source=NoGasSource.from_config(bot_config), settlement=settlement
        )

        assert await runner.run_cycle() == []
        assert settlement.submissions == []

    @pytest.mark.asyncio
    async def test_consecutive_failures_pause_settlement(self, bot_config, metrics):
        settlement = RevertingSettlement()
        runner = ArbitrageRunner.from_config(bot_config, settlement=settlement, metrics=metrics)

        for _ in range(3):
            outcomes = await runner.run_cycle()
            assert outcomes[0].settlement.error == "execution reverted"

        assert runner.safety.in_cooldown()
        assert metrics.registry.get_sample_value("flash_arb_cooldown_active") == 1

        outcomes = await runner.run_cycle()
        assert settlement.calls == 3
        assert outcomes[0].settlement is None
        assert outcomes[0].skipped_reason.startswith("settlement cooldown")
        assert len(runner.journal.by_stage(SKIP)) == 1
        assert [r.outcome for r in runner.journal.by_stage(SETTLE)] == ["failed"] * 3


class TestLoops:
    @pytest.mark.asyncio
    async def test_run_forever_stops_on_event(self, bot_config):
        runner = ArbitrageRunner.from_config(bot_config)
        stop_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, stop_event.set)

        await asyncio.wait_for(runner.run_forever(stop_event), timeout=5)

        assert runner.cycle_count == 1

    def test_run_once(self, bot_config):
        runner = ArbitrageRunner.from_config(bot_config)
        outcomes = runner.run_once()
        assert len(outcomes) == 1
        assert outcomes[0].settled
