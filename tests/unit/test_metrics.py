"""
Unit tests for Prometheus metrics
"""

import aiohttp
import pytest
from prometheus_client import CollectorRegistry

from flash_arb.metrics import ArbitrageMetrics


@pytest.fixture
def test_registry():
    """Create a test-specific registry"""
    return CollectorRegistry()


@pytest.fixture
def metrics(test_registry):
    return ArbitrageMetrics(test_registry)


class TestArbitrageMetrics:
    def test_separate_instances_do_not_clash(self):
        ArbitrageMetrics()
        ArbitrageMetrics()

    def test_detection_counters(self, metrics, test_registry):
        metrics.record_detected("TKN/USD")
        metrics.record_detected("TKN/USD")
        metrics.record_dropped("TKN/USD", "above_max")

        assert test_registry.get_sample_value(
            "flash_arb_opportunities_detected_total", {"pair": "TKN/USD"}
        ) == 2
        assert test_registry.get_sample_value(
            "flash_arb_opportunities_dropped_total",
            {"pair": "TKN/USD", "reason": "above_max"},
        ) == 1

    def test_verdicts(self, metrics, test_registry):
        metrics.record_verdict("TKN/USD", True, 4020.0, 17.4)
        metrics.record_verdict("TKN/USD", False, 0.0, 0.0)

        assert test_registry.get_sample_value(
            "flash_arb_gate_verdicts_total", {"pair": "TKN/USD", "verdict": "pass"}
        ) == 1
        assert test_registry.get_sample_value(
            "flash_arb_gate_verdicts_total", {"pair": "TKN/USD", "verdict": "fail"}
        ) == 1
        # Zero-size rejections are not observed as loan sizes
        assert test_registry.get_sample_value(
            "flash_arb_loan_size_count", {"pair": "TKN/USD"}
        ) == 1
        assert test_registry.get_sample_value(
            "flash_arb_last_net_profit", {"pair": "TKN/USD"}
        ) == 0.0

    def test_settlements_and_cooldown(self, metrics, test_registry):
        metrics.record_settlement("TKN/USD", "success")
        metrics.record_sizing_fallback("TKN/USD")
        metrics.set_cooldown(True)

        assert test_registry.get_sample_value(
            "flash_arb_settlements_total", {"pair": "TKN/USD", "outcome": "success"}
        ) == 1
        assert test_registry.get_sample_value(
            "flash_arb_sizing_fallbacks_total", {"pair": "TKN/USD"}
        ) == 1
        assert test_registry.get_sample_value("flash_arb_cooldown_active") == 1

    @pytest.mark.asyncio
    async def test_metrics_server(self, metrics, unused_tcp_port):
        metrics.record_detected("TKN/USD")
        assert await metrics.start_server(port=unused_tcp_port, host="127.0.0.1")
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(f"http://127.0.0.1:{unused_tcp_port}/metrics") as resp:
                    assert resp.status == 200
                    body = await resp.text()
                async with session.get(f"http://127.0.0.1:{unused_tcp_port}/health") as resp:
                    assert resp.status == 200
        finally:
            await metrics.stop_server()

        assert "flash_arb_opportunities_detected_total" in body
