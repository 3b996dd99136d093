"""
Prometheus metrics for the flash-loan arbitrage engine.

Metrics live on their own CollectorRegistry so tests can create fresh
instances without clashing with the process-wide default registry.
"""

import logging
from typing import Optional

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class ArbitrageMetrics:
    """
    Counters and histograms for the detect / size / gate / settle pipeline.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._initialize_metrics()

        self._app = None
        self._runner = None
        self._site = None

    def _initialize_metrics(self):
        self.opportunities_detected_total = Counter(
            "flash_arb_opportunities_detected_total",
            "Opportunities emitted by the detector",
            ["pair"],
            registry=self.registry,
        )

        self.opportunities_dropped_total = Counter(
            "flash_arb_opportunities_dropped_total",
            "Spreads dropped as implausible or venues excluded",
            ["pair", "reason"],
            registry=self.registry,
        )

        self.sizing_fallbacks_total = Counter(
            "flash_arb_sizing_fallbacks_total",
            "Loan sizes replaced by the default after a sizing error",
            ["pair"],
            registry=self.registry,
        )

        self.gate_verdicts_total = Counter(
            "flash_arb_gate_verdicts_total",
            "Profitability gate verdicts",
            ["pair", "verdict"],
            registry=self.registry,
        )

        self.settlements_total = Counter(
            "flash_arb_settlements_total",
            "Settlement outcomes",
            ["pair", "outcome"],
            registry=self.registry,
        )

        self.loan_size = Histogram(
            "flash_arb_loan_size",
            "Loan sizes evaluated by the gate (base-token units)",
            ["pair"],
            buckets=[0.1, 0.5, 1, 5, 10, 25, 50, 100, 1000, 10000],
            registry=self.registry,
        )

        self.net_profit = Gauge(
            "flash_arb_last_net_profit",
            "Net profit of the last evaluated opportunity (base-token units)",
            ["pair"],
            registry=self.registry,
        )

        self.cycle_duration_seconds = Histogram(
            "flash_arb_cycle_duration_seconds",
            "Duration of a full scan cycle",
            buckets=[0.1, 0.5, 1, 2, 5, 10, 30],
            registry=self.registry,
        )

        self.cooldown_active = Gauge(
            "flash_arb_cooldown_active",
            "1 while settlement is paused after consecutive failures",
            registry=self.registry,
        )

    # === RECORDING ===

    def record_detected(self, pair: str):
        self.opportunities_detected_total.labels(pair=pair).inc()

    def record_dropped(self, pair: str, reason: str):
        self.opportunities_dropped_total.labels(pair=pair, reason=reason).inc()

    def record_sizing_fallback(self, pair: str):
        self.sizing_fallbacks_total.labels(pair=pair).inc()

    def record_verdict(self, pair: str, passed: bool, loan_amount: float, net_profit: float):
        verdict = "pass" if passed else "fail"
        self.gate_verdicts_total.labels(pair=pair, verdict=verdict).inc()
        if loan_amount > 0:
            self.loan_size.labels(pair=pair).observe(loan_amount)
        self.net_profit.labels(pair=pair).set(net_profit)

    def record_settlement(self, pair: str, outcome: str):
        self.settlements_total.labels(pair=pair, outcome=outcome).inc()

    def set_cooldown(self, active: bool):
        self.cooldown_active.set(1 if active else 0)

    # === SERVER MANAGEMENT ===

    async def start_server(
        self, port: int = 8000, host: str = "0.0.0.0", path: str = "/metrics"
    ) -> bool:
        """Start Prometheus metrics HTTP server"""
        try:
            self._app = web.Application()
            self._app.router.add_get(path, self._metrics_handler)
            self._app.router.add_get("/health", self._health_handler)

            self._runner = web.AppRunner(self._app)
            await self._runner.setup()

            self._site = web.TCPSite(self._runner, host, port)
            await self._site.start()

            logger.info(f"Metrics server started on http://{host}:{port}{path}")
            return True

        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    async def stop_server(self):
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        logger.info("Metrics server stopped")

    async def _metrics_handler(self, request):
        metrics_output = generate_latest(self.registry)
        # aiohttp rejects a charset inside content_type
        content_type = CONTENT_TYPE_LATEST.split(";")[0]
        return web.Response(text=metrics_output.decode("utf-8"), content_type=content_type)

    async def _health_handler(self, request):
        return web.Response(
            text='{"status": "healthy", "service": "flash_arb_metrics"}',
            content_type="application/json",
        )

