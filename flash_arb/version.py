"""Version information for the flash-loan arbitrage engine."""

__version__ = "0.3.0"
