"""On-chain pool adapters (Uniswap V2 / V3 style)."""
