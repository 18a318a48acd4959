"""Technical indicators.

The scalar functions evaluate one index of a price sequence and are what the
strategy evaluator calls every tick. They are pure and total: short histories
fall back to a defined value instead of raising or returning NaN.

``indicator_frame`` computes the same quantities for a whole series with
pandas, for the analytics table.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

# substituted for a zero average loss so RS stays finite
RSI_LOSS_EPSILON = 0.01


@dataclass(frozen=True)
class Bands:
    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class Momentum:
    short: float
    long: float


def moving_average(prices: Sequence[float], period: int, index: int) -> float:
    """Simple moving average of the ``period`` prices ending at ``index``.

    Returns ``prices[index]`` when there is not enough history yet. A flat
    window returns its price exactly.
    """
    if period <= 1 or index < period - 1:
        return float(prices[index])
    window = prices[index - period + 1 : index + 1]
    if max(window) == min(window):
        return float(prices[index])
    return math.fsum(window) / period


def rsi(prices: Sequence[float], period: int, index: int) -> float:
    """Relative Strength Index over the trailing ``period`` deltas (0-100).

    Neutral 50 until ``period`` deltas exist.
    """
    if period <= 0 or index < period:
        return 50.0

    gains = 0.0
    losses = 0.0
    for i in range(index - period + 1, index + 1):
        change = prices[i] - prices[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    rs = avg_gain / (avg_loss or RSI_LOSS_EPSILON)
    return 100 - 100 / (1 + rs)


def bollinger_bands(
    prices: Sequence[float],
    period: int,
    index: int,
    std_dev: float = 2.0,
) -> Bands:
    ma = moving_average(prices, period, index)
    if period <= 1 or index < period - 1:
        return Bands(upper=ma, middle=ma, lower=ma)

    window = prices[index - period + 1 : index + 1]
    if max(window) == min(window):
        return Bands(upper=ma, middle=ma, lower=ma)
    variance = math.fsum((p - ma) ** 2 for p in window) / period
    sd = math.sqrt(variance)
    return Bands(upper=ma + std_dev * sd, middle=ma, lower=ma - std_dev * sd)


def _pct_change(prices: Sequence[float], index: int, lag: int) -> float:
    if lag <= 0 or index < lag:
        return 0.0
    base = prices[index - lag]
    if base == 0:
        return 0.0
    return (prices[index] - base) / base


def momentum(prices: Sequence[float], index: int, short_lag: int = 5, long_lag: int = 10) -> Momentum:
    """Fractional change over the short and long lags (0.0 when undefined)."""
    return Momentum(
        short=_pct_change(prices, index, short_lag),
        long=_pct_change(prices, index, long_lag),
    )


def rolling_volatility(prices: Sequence[float], index: int, window: int = 10) -> float:
    """Population std-dev of the percentage changes inside the trailing window."""
    recent = prices[max(0, index - window + 1) : index + 1]
    changes = [
        (curr - prev) / prev * 100
        for prev, curr in zip(recent, recent[1:])
        if prev != 0
    ]
    if len(changes) < 2:
        return 0.0
    mean = sum(changes) / len(changes)
    return math.sqrt(sum((c - mean) ** 2 for c in changes) / len(changes))


# ── Vectorised (pandas) ─────────────────────────────────────────────────────


def sma(series: pd.Series, period: int) -> pd.Series:
    """Simple Moving Average, falling back to the price itself for short history."""
    return series.rolling(window=period, min_periods=period).mean().fillna(series)


def _window_rsi(deltas: np.ndarray) -> float:
    n = len(deltas)
    avg_gain = deltas[deltas > 0].sum() / n
    avg_loss = -deltas[deltas < 0].sum() / n
    rs = avg_gain / (avg_loss or RSI_LOSS_EPSILON)
    return float(100 - 100 / (1 + rs))


def rsi_series(series: pd.Series, period: int = 14) -> pd.Series:
    deltas = series.diff()
    return deltas.rolling(window=period, min_periods=period).apply(_window_rsi, raw=True).fillna(50.0)


def indicator_frame(
    prices: Sequence[float],
    bb_period: int = 20,
    bb_std: float = 2.0,
    vol_window: int = 10,
) -> pd.DataFrame:
    """One row per tick with MA5/MA20, RSI14, Bollinger bands and volatility."""
    close = pd.Series(list(prices), dtype=float, name="price")
    df = pd.DataFrame({"price": close})
    df["ma5"] = sma(close, 5)
    df["ma20"] = sma(close, 20)
    df["rsi14"] = rsi_series(close, 14)

    mid = sma(close, bb_period)
    sd = close.rolling(window=bb_period, min_periods=bb_period).std(ddof=0).fillna(0.0)
    df["bb_upper"] = mid + bb_std * sd
    df["bb_lower"] = mid - bb_std * sd

    pct = close.pct_change() * 100
    df["volatility"] = (
        pct.rolling(window=max(vol_window - 1, 1), min_periods=2).std(ddof=0).fillna(0.0)
    )
    df.index.name = "tick"
    return df
