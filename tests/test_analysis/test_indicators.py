"""Tests for scalar indicators and the pandas indicator frame."""
from __future__ import annotations

import math

import numpy as np
import pytest

from trade_sandbox.analysis.indicators import (
    bollinger_bands,
    indicator_frame,
    momentum,
    moving_average,
    rolling_volatility,
    rsi,
)
from trade_sandbox.market.prices import generate_price_path


def _random_prices(n: int = 120, seed: int = 11) -> list[float]:
    return generate_price_path(100.0, n, 6.0, 0.5, rng=np.random.default_rng(seed))


# ── moving average ────────────────────────────────────────────────────────────

@pytest.mark.parametrize("period", [1, 5, 20, 50])
def test_moving_average_matches_trailing_mean(period):
    prices = _random_prices()
    for i in range(len(prices)):
        expected = prices[i] if i < period - 1 else sum(prices[i - period + 1 : i + 1]) / period
        assert moving_average(prices, period, i) == pytest.approx(expected)


@pytest.mark.parametrize("price", [0.03, 0.1, 12.34, 33.33])
def test_flat_window_average_is_exact(price):
    prices = [price] * 25
    assert moving_average(prices, 20, 24) == price
    bands = bollinger_bands(prices, 20, 24)
    assert bands.upper == bands.middle == bands.lower == price


def test_moving_average_short_history_returns_price():
    assert moving_average([10.0, 20.0, 30.0], 5, 2) == 30.0


# ── RSI ───────────────────────────────────────────────────────────────────────

def test_rsi_neutral_until_enough_deltas():
    prices = _random_prices(20)
    for i in range(14):
        assert rsi(prices, 14, i) == 50.0


def test_rsi_bounded_on_random_paths():
    for seed in range(5):
        prices = _random_prices(200, seed)
        for i in range(len(prices)):
            assert 0.0 <= rsi(prices, 14, i) <= 100.0


def test_rsi_all_gains_saturates_without_dividing_by_zero():
    prices = [float(p) for p in range(100, 130)]
    # avg gain 1, avg loss replaced by 0.01 -> rs = 100
    assert rsi(prices, 14, 20) == pytest.approx(100 - 100 / 101)


def test_rsi_all_losses_is_zero():
    prices = [float(p) for p in range(130, 100, -1)]
    assert rsi(prices, 14, 20) == pytest.approx(0.0)


def test_rsi_mixed_window():
    prices = [10.0, 11.0, 10.0, 12.0]
    # deltas +1 -1 +2 over period 3: avg gain 1, avg loss 1/3 -> rs 3
    assert rsi(prices, 3, 3) == pytest.approx(75.0)


# ── Bollinger bands ───────────────────────────────────────────────────────────

def test_bollinger_bands_collapse_for_short_history():
    bands = bollinger_bands([1.0, 2.0, 3.0], 20, 2)
    assert bands.upper == bands.middle == bands.lower == 3.0


def test_bollinger_bands_population_std():
    prices = [float(p) for p in range(1, 21)]
    bands = bollinger_bands(prices, 20, 19)
    sd = math.sqrt(399 / 12)  # population variance of 1..20
    assert bands.middle == pytest.approx(10.5)
    assert bands.upper == pytest.approx(10.5 + 2 * sd)
    assert bands.lower == pytest.approx(10.5 - 2 * sd)


def test_bollinger_bands_flat_series_have_zero_width():
    bands = bollinger_bands([50.0] * 25, 20, 24, std_dev=3)
    assert bands.upper == bands.lower == 50.0


# ── momentum ──────────────────────────────────────────────────────────────────

def test_momentum_short_and_long_returns():
    prices = [100.0] * 5 + [104.0] * 5 + [110.0]
    m = momentum(prices, 10, short_lag=5, long_lag=10)
    assert m.short == pytest.approx(110 / 104 - 1)
    assert m.long == pytest.approx(0.10)


def test_momentum_is_zero_without_enough_history():
    m = momentum([100.0, 120.0, 130.0], 2, short_lag=5, long_lag=10)
    assert m.short == 0.0 and m.long == 0.0


def test_momentum_long_undefined_short_defined():
    prices = [100.0] * 6 + [106.0]
    m = momentum(prices, 6, short_lag=5, long_lag=10)
    assert m.short == pytest.approx(0.06)
    assert m.long == 0.0


# ── volatility ────────────────────────────────────────────────────────────────

def test_rolling_volatility_constant_growth_is_zero():
    prices = [100 * 1.01 ** i for i in range(20)]
    assert rolling_volatility(prices, 19) == pytest.approx(0.0, abs=1e-9)


def test_rolling_volatility_needs_two_changes():
    assert rolling_volatility([100.0, 120.0], 1) == 0.0


# ── pandas frame ──────────────────────────────────────────────────────────────

def test_indicator_frame_matches_scalar_functions():
    prices = _random_prices(80)
    df = indicator_frame(prices)
    assert list(df.columns) == ["price", "ma5", "ma20", "rsi14", "bb_upper", "bb_lower", "volatility"]
    assert len(df) == len(prices)

    for i in range(len(prices)):
        row = df.iloc[i]
        bands = bollinger_bands(prices, 20, i)
        assert row["ma5"] == pytest.approx(moving_average(prices, 5, i))
        assert row["ma20"] == pytest.approx(moving_average(prices, 20, i))
        assert row["rsi14"] == pytest.approx(rsi(prices, 14, i))
        assert row["bb_upper"] == pytest.approx(bands.upper)
        assert row["bb_lower"] == pytest.approx(bands.lower)
        assert row["volatility"] == pytest.approx(rolling_volatility(prices, i), abs=1e-9)


def test_indicator_frame_has_no_nan():
    df = indicator_frame(_random_prices(40))
    assert not df.isna().any().any()
