"""
Exception hierarchy for the flash-loan arbitrage engine.

Each error category maps to one recovery policy: feed errors exclude a venue
for the current cycle, sizing errors fall back to a default loan size,
evaluation errors fail the opportunity, and settlement errors are reported
and never retried.
"""

from typing import Any, Dict, Optional


class FlashArbError(Exception):
    """Base exception for all flash-loan arbitrage errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(FlashArbError):
    """Raised when configuration is missing or invalid."""

    pass


class FeedError(FlashArbError):
    """Raised when a venue returns missing, zero or implausible pool data."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        pair: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.venue = venue
        self.pair = pair


class ImpactModelError(FlashArbError):
    """Raised when swap simulation inputs are invalid."""

    pass


class NoLiquidityError(ImpactModelError):
    """Raised when a pool has an empty reserve on either side."""

    pass


class SizingError(FlashArbError):
    """Raised when the loan-size optimizer cannot produce a size."""

    pass


class InsufficientLiquidityError(SizingError):
    """Raised when the liquidity cap is below the minimum loan amount."""

    def __init__(
        self,
        message: str,
        cap: Optional[Any] = None,
        minimum: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.cap = cap
        self.minimum = minimum


class EvaluationError(FlashArbError):
    """Raised when a round-trip simulation cannot be completed."""

    pass


class SettlementError(FlashArbError):
    """Raised by settlement services when a submission fails or reverts."""

    def __init__(
        self,
        message: str,
        tx_reference: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.tx_reference = tx_reference
