"""Tests for the per-tick strategy rules, guards and tie-break."""
from __future__ import annotations

import pytest

from trade_sandbox import strategy
from trade_sandbox.errors import ValidationError
from trade_sandbox.strategy import (
    Position,
    StrategyParams,
    decide,
    evaluate,
    resolve_strategy,
)
from trade_sandbox.types import Signal, StrategyName

FLAT = Position(cash=10_000.0, holdings=0.0)
HOLDING = Position(cash=10_000.0, holdings=10.0)


@pytest.mark.parametrize("name", list(StrategyName))
@pytest.mark.parametrize("price", [0.03, 12.34, 33.33, 100.0, 999.99])
def test_flat_series_always_holds(name, price):
    prices = [price] * 60
    for i in range(len(prices)):
        assert evaluate(name, prices, i, HOLDING) == Signal.HOLD


@pytest.mark.parametrize("index", [-1, 5])
def test_out_of_range_index_holds(index):
    assert evaluate(StrategyName.MOMENTUM, [1.0] * 5, index, FLAT) == Signal.HOLD


# ── buy low / sell high ───────────────────────────────────────────────────────

def test_buy_low_sell_high_buys_dip_in_uptrend():
    prices = [100.0] * 30 + [120.0] * 19 + [100.0]
    assert evaluate(StrategyName.BUY_LOW_SELL_HIGH, prices, 49, FLAT) == Signal.BUY


def test_buy_low_sell_high_sells_spike_only_when_holding():
    prices = [100.0] * 49 + [110.0]
    assert evaluate(StrategyName.BUY_LOW_SELL_HIGH, prices, 49, HOLDING) == Signal.SELL
    assert evaluate(StrategyName.BUY_LOW_SELL_HIGH, prices, 49, FLAT) == Signal.HOLD


# ── trend following ───────────────────────────────────────────────────────────

def test_trend_following_buys_aligned_averages():
    prices = [float(p) for p in range(1, 61)]
    assert evaluate(StrategyName.TREND_FOLLOWING, prices, 59, FLAT) == Signal.BUY


def test_trend_following_waits_for_twenty_ticks():
    prices = [float(p) for p in range(1, 61)]
    assert evaluate(StrategyName.TREND_FOLLOWING, prices, 15, FLAT) == Signal.HOLD


def test_trend_following_sells_on_reversal():
    prices = [float(p) for p in range(60, 0, -1)]
    assert evaluate(StrategyName.TREND_FOLLOWING, prices, 59, HOLDING) == Signal.SELL


# ── mean reversion ────────────────────────────────────────────────────────────

def test_mean_reversion_buys_oversold():
    prices = [float(p) for p in range(130, 100, -1)]
    assert evaluate(StrategyName.MEAN_REVERSION, prices, 25, FLAT) == Signal.BUY


def test_mean_reversion_sells_overbought():
    prices = [float(p) for p in range(100, 130)]
    assert evaluate(StrategyName.MEAN_REVERSION, prices, 25, HOLDING) == Signal.SELL


# ── momentum ──────────────────────────────────────────────────────────────────

def test_momentum_buys_strong_run():
    prices = [100.0] * 10 + [110.0]
    assert evaluate(StrategyName.MOMENTUM, prices, 10, FLAT) == Signal.BUY
    assert evaluate(StrategyName.MOMENTUM, prices, 9, FLAT) == Signal.HOLD


def test_momentum_sells_sharp_drop():
    prices = [100.0] * 10 + [90.0]
    assert evaluate(StrategyName.MOMENTUM, prices, 10, HOLDING) == Signal.SELL


# ── bollinger ─────────────────────────────────────────────────────────────────

def test_bollinger_buys_below_lower_band():
    prices = [100.0, 101.0] * 10 + [90.0]
    assert evaluate(StrategyName.BOLLINGER_BANDS, prices, 20, FLAT) == Signal.BUY


def test_bollinger_sells_above_upper_band():
    prices = [100.0, 101.0] * 10 + [110.0]
    assert evaluate(StrategyName.BOLLINGER_BANDS, prices, 20, HOLDING) == Signal.SELL


# ── moving-average band ───────────────────────────────────────────────────────

def test_ma_band_respects_lot_affordability():
    prices = [100.0] * 4 + [90.0]
    rich = Position(cash=10_000.0, holdings=0.0, lot_size=5)
    poor = Position(cash=400.0, holdings=0.0, lot_size=5)
    assert evaluate(StrategyName.MA_BAND, prices, 4, rich) == Signal.BUY
    assert evaluate(StrategyName.MA_BAND, prices, 4, poor) == Signal.HOLD


def test_ma_band_needs_a_full_lot_to_sell():
    prices = [100.0] * 4 + [110.0]
    partial = Position(cash=0.0, holdings=3.0, lot_size=5)
    full = Position(cash=0.0, holdings=5.0, lot_size=5)
    assert evaluate(StrategyName.MA_BAND, prices, 4, partial) == Signal.HOLD
    assert evaluate(StrategyName.MA_BAND, prices, 4, full) == Signal.SELL


def test_ma_band_custom_threshold():
    prices = [100.0] * 4 + [97.5]
    params = StrategyParams(buy_threshold_pct=1.0)
    assert evaluate(StrategyName.MA_BAND, prices, 4, FLAT) == Signal.HOLD
    assert evaluate(StrategyName.MA_BAND, prices, 4, FLAT, params) == Signal.BUY


def test_fee_counts_toward_affordability():
    assert Position(cash=100.0, holdings=0.0).can_afford(100.0)
    assert not Position(cash=100.0, holdings=0.0, fee_rate=0.001).can_afford(100.0)


# ── tie-break ─────────────────────────────────────────────────────────────────

def test_tie_break_prefers_sell_when_holding():
    assert decide(True, True, HOLDING, 10.0) == Signal.SELL


def test_tie_break_buys_from_flat():
    assert decide(True, True, FLAT, 10.0) == Signal.BUY


def test_evaluate_applies_tie_break(monkeypatch):
    monkeypatch.setitem(strategy.RULES, StrategyName.MOMENTUM, lambda prices, i, params: (True, True))
    assert evaluate(StrategyName.MOMENTUM, [100.0], 0, HOLDING) == Signal.SELL
    assert evaluate(StrategyName.MOMENTUM, [100.0], 0, FLAT) == Signal.BUY
    broke = Position(cash=0.0, holdings=0.0)
    assert evaluate(StrategyName.MOMENTUM, [100.0], 0, broke) == Signal.HOLD


# ── names / params ────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("trend-following", StrategyName.TREND_FOLLOWING),
        ("Bollinger Bands", StrategyName.BOLLINGER_BANDS),
        ("MOMENTUM", StrategyName.MOMENTUM),
        (StrategyName.MA_BAND, StrategyName.MA_BAND),
    ],
)
def test_resolve_strategy(raw, expected):
    assert resolve_strategy(raw) is expected


def test_unknown_strategy_is_rejected():
    with pytest.raises(ValidationError, match="Unknown strategy"):
        evaluate("GUESSWORK", [100.0], 0, FLAT)


def test_strategy_params_validation():
    with pytest.raises(ValidationError):
        StrategyParams(band_period=0)
    with pytest.raises(ValidationError):
        StrategyParams(sell_threshold_pct=-1)
