"""Synthetic market data: price paths and candles."""
from .prices import (
    PRICE_FLOOR,
    aggregate_candles,
    default_rng,
    generate_price_path,
    next_price,
    sample_history,
    synthetic_candle,
)

__all__ = [
    "PRICE_FLOOR",
    "aggregate_candles",
    "default_rng",
    "generate_price_path",
    "next_price",
    "sample_history",
    "synthetic_candle",
]
