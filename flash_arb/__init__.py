"""
Flash-Loan Arbitrage Engine.

Detects price discrepancies for the same token pair across DEX venues,
sizes a flash loan against the shallowest pool, and only hands a trade to
settlement when the simulated round trip clears its loan fee and gas.
"""

PROJECT_NAME = "flash-arb"

from flash_arb.version import __version__ as VERSION

# Export main components for easier imports
from flash_arb.config import load_config, parse_config
from flash_arb.config_schema import BotConfig
from flash_arb.detector import DetectorState, OpportunityDetector
from flash_arb.gate import Assessment, ProfitabilityGate
from flash_arb.history import PriceHistoryStore
from flash_arb.runner import ArbitrageRunner, CycleOutcome
from flash_arb.sizing import LoanSizeOptimizer
from flash_arb.types import (
    Opportunity,
    PoolSnapshot,
    ProfitEstimate,
    SizingResult,
    TokenPair,
)
from flash_arb.venues import (
    ConcentratedLiquidityVenue,
    ConstantProductVenue,
    Venue,
    build_venue,
)

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "load_config",
    "parse_config",
    "BotConfig",
    "DetectorState",
    "OpportunityDetector",
    "Assessment",
    "ProfitabilityGate",
    "PriceHistoryStore",
    "ArbitrageRunner",
    "CycleOutcome",
    "LoanSizeOptimizer",
    "Opportunity",
    "PoolSnapshot",
    "ProfitEstimate",
    "SizingResult",
    "TokenPair",
    "ConcentratedLiquidityVenue",
    "ConstantProductVenue",
    "Venue",
    "build_venue",
]
