"""Synthetic price paths: a multiplicative random walk with trend and volatility.

Both knobs are percentages. Each step moves the price by
``(u * volatility_pct + trend_pct / 10) / 100`` where ``u ~ U(-0.5, 0.5)``,
and the result never drops below ``floor``.
"""
from __future__ import annotations

import numpy as np

from ..types import Candle, RandomSource

PRICE_FLOOR = 0.01

# historical sample used when the caller supplies no series
SAMPLE_INITIAL_PRICE = 100.0
SAMPLE_LENGTH = 365
SAMPLE_VOLATILITY_PCT = 2.0
SAMPLE_TREND_PCT = 1.0
SAMPLE_FLIP_EVERY = 100


def default_rng(seed: int | None = None) -> np.random.Generator:
    return np.random.default_rng(seed)


def next_price(
    last_price: float,
    volatility_pct: float,
    trend_pct: float,
    rng: RandomSource,
    floor: float = PRICE_FLOOR,
) -> float:
    random_factor = float(rng.uniform(-0.5, 0.5)) * volatility_pct
    trend_factor = trend_pct / 10
    return max(floor, last_price * (1 + (random_factor + trend_factor) / 100))


def generate_price_path(
    initial_price: float,
    length: int,
    volatility_pct: float,
    trend_pct: float,
    rng: RandomSource | None = None,
    flip_every: int | None = None,
    floor: float = PRICE_FLOOR,
) -> list[float]:
    """Generate ``length`` prices starting at ``initial_price`` (oldest first).

    With ``flip_every`` set the trend is multiplied by -0.5 every
    ``flip_every`` ticks, so long samples drift back instead of compounding.
    """
    if length <= 0:
        return []
    rng = rng if rng is not None else default_rng()

    prices = [max(floor, initial_price)]
    trend = trend_pct
    for i in range(1, length):
        if flip_every and i % flip_every == 0:
            trend *= -0.5
        prices.append(next_price(prices[-1], volatility_pct, trend, rng, floor))
    return prices


def sample_history(rng: RandomSource | None = None, length: int = SAMPLE_LENGTH) -> list[float]:
    """A year of daily prices, rounded to cents."""
    path = generate_price_path(
        SAMPLE_INITIAL_PRICE,
        length,
        SAMPLE_VOLATILITY_PCT,
        SAMPLE_TREND_PCT,
        rng=rng,
        flip_every=SAMPLE_FLIP_EVERY,
    )
    return [max(PRICE_FLOOR, round(p, 2)) for p in path]


def synthetic_candle(
    tick: int,
    base_price: float,
    rng: RandomSource,
    volatility: float = 30.0,
) -> Candle:
    """One OHLCV candle around ``base_price`` for the live candlestick feed.

    ``volatility`` is an absolute price width, not a percentage.
    """
    open_ = base_price + float(rng.uniform(-0.5, 0.5)) * volatility
    close = open_ + float(rng.uniform(-0.5, 0.5)) * volatility
    high = max(open_, close) + float(rng.uniform(0.0, 1.0)) * volatility * 0.8
    low = min(open_, close) - float(rng.uniform(0.0, 1.0)) * volatility * 0.8
    volume = float(int(float(rng.uniform(5_000, 15_000))))

    floor_low = max(PRICE_FLOOR, low)
    return Candle(
        tick=tick,
        open=round(max(open_, floor_low), 2),
        high=round(max(high, open_, close, floor_low), 2),
        low=round(floor_low, 2),
        close=round(max(close, floor_low), 2),
        volume=volume,
    )


def aggregate_candles(prices: list[float], window: int) -> list[Candle]:
    """Collapse consecutive ``window``-sized slices of a path into OHLC candles.

    The last partial window is kept.
    """
    if window <= 0:
        raise ValueError("window must be > 0")
    candles: list[Candle] = []
    for start in range(0, len(prices), window):
        chunk = prices[start : start + window]
        candles.append(
            Candle(
                tick=start,
                open=chunk[0],
                high=max(chunk),
                low=min(chunk),
                close=chunk[-1],
                volume=float(len(chunk)),
            )
        )
    return candles
