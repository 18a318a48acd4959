"""Tests for BacktestEngine and the PerformanceReport it produces."""
from __future__ import annotations

import math

import numpy as np
import pytest

from trade_sandbox.engine.backtest import BacktestConfig, BacktestEngine, run_backtest
from trade_sandbox.errors import BacktestError, ValidationError
from trade_sandbox.types import OrderSide, StrategyName

# dip inside an uptrend at tick 49, spike at tick 50
DIP_THEN_SPIKE = [100.0] * 30 + [120.0] * 19 + [100.0, 130.0]


def _engine(prices, **kwargs) -> BacktestEngine:
    return BacktestEngine(prices, BacktestConfig(**kwargs))


# ── validation ────────────────────────────────────────────────────────────────

def test_balance_below_minimum_is_rejected():
    with pytest.raises(ValidationError, match="at least"):
        _engine([100.0] * 40, initial_balance=50)


def test_all_validation_errors_reported_together():
    with pytest.raises(ValidationError) as exc_info:
        _engine([100.0] * 10, initial_balance=50_000_000, fee_pct=9, strategy="nope")
    errors = exc_info.value.errors
    assert len(errors) == 4
    assert any("cannot exceed" in e for e in errors)
    assert any("Transaction fee" in e for e in errors)
    assert any("30 data points" in e for e in errors)
    assert any("Unknown strategy" in e for e in errors)


@pytest.mark.parametrize("bad", [0.0, -5.0, float("nan"), float("inf")])
def test_non_positive_or_non_finite_price_is_rejected(bad):
    prices = [100.0] * 40
    prices[17] = bad
    with pytest.raises(ValidationError, match="first bad index 17"):
        _engine(prices)


# ── flat market ───────────────────────────────────────────────────────────────

def test_flat_market_leaves_balance_untouched():
    report = _engine([100.0] * 40, fee_pct=0).run()
    assert report.trades_executed == 0
    assert report.final_portfolio_value == 10_000.0
    assert report.profit_loss == 0.0
    assert report.max_drawdown_pct == 0.0
    assert report.sharpe_ratio == 0.0
    assert report.win_rate == 0.0
    assert [m.label for m in report.monthly_returns] == ["Month 1", "Month 2", "Month 3"]
    assert len(report.equity_curve) == 40


@pytest.mark.parametrize("name", [s for s in StrategyName if s != StrategyName.MA_BAND])
@pytest.mark.parametrize("price", [0.03, 12.34, 33.33])
def test_flat_market_never_trades_at_any_price_level(name, price):
    report = _engine([price] * 40, strategy=name, fee_pct=0.5).run()
    assert report.trades_executed == 0
    assert report.final_portfolio_value == 10_000.0


# ── hand-checked trades ───────────────────────────────────────────────────────

def test_round_trip_without_fees():
    report = _engine(DIP_THEN_SPIKE, fee_pct=0).run()

    buy, sell = report.trades
    assert (buy.side, buy.tick, buy.qty, buy.price) == (OrderSide.BUY, 49, 100, 100.0)
    assert (sell.side, sell.tick, sell.qty, sell.price) == (OrderSide.SELL, 50, 100, 130.0)
    assert sell.pnl == pytest.approx(3000.0)

    assert report.final_portfolio_value == pytest.approx(13_000.0)
    assert report.profit_loss_pct == pytest.approx(30.0)
    assert report.win_rate == 100.0
    assert report.closed_trades == 1
    assert report.max_consecutive_wins == 1
    expected_annual = (1.3 ** (365 / len(DIP_THEN_SPIKE)) - 1) * 100
    assert report.annualized_return_pct == pytest.approx(expected_annual)


def test_round_trip_with_fees():
    report = _engine(DIP_THEN_SPIKE, fee_pct=1.0).run()

    buy, sell = report.trades
    # floor(10000 / 101) shares, leaving $1
    assert buy.qty == 99
    assert buy.balance == pytest.approx(1.0)
    assert sell.pnl == pytest.approx(99 * 130 * 0.99 - 99 * 100)
    assert report.final_portfolio_value == pytest.approx(12_742.3)
    assert report.end_balance == pytest.approx(12_742.3)
    assert report.total_fees == pytest.approx(99.0 + 128.7)
    # 1% fee paid on entry shows up as drawdown
    assert report.max_drawdown_pct == pytest.approx(0.99)


def test_monthly_buckets_chain_from_previous_bucket():
    report = _engine(DIP_THEN_SPIKE, fee_pct=0).run()
    labels = [m.label for m in report.monthly_returns]
    assert labels == ["Month 1", "Month 2", "Month 3"]
    last = report.monthly_returns[-1]
    assert last.portfolio_value == pytest.approx(13_000.0)
    assert last.return_pct == pytest.approx(30.0)


# ── invariants on generated data ──────────────────────────────────────────────

@pytest.mark.parametrize("name", [s for s in StrategyName if s != StrategyName.MA_BAND])
def test_report_invariants_on_sample_history(name):
    report = run_backtest(strategy=name, rng=np.random.default_rng(42))
    last = report.equity_curve[-1]

    assert report.final_portfolio_value == pytest.approx(report.end_balance + last.holdings * last.price)
    assert all(p.cash >= 0 and p.holdings >= 0 for p in report.equity_curve)
    assert 0.0 <= report.max_drawdown_pct <= 100.0
    assert 0.0 <= report.win_rate <= 100.0
    assert report.closed_trades == report.winning_trades + report.losing_trades
    assert report.closed_trades == sum(1 for t in report.trades if t.side == OrderSide.SELL)
    assert math.isfinite(report.sharpe_ratio)
    # a sell closes the whole position, so two sells never follow each other
    sides = [t.side for t in report.trades]
    if sides:
        assert sides[0] == OrderSide.BUY
    assert not any(a == b == OrderSide.SELL for a, b in zip(sides, sides[1:]))


def test_seeded_runs_are_identical():
    a = run_backtest(rng=np.random.default_rng(8), strategy="momentum")
    b = run_backtest(rng=np.random.default_rng(8), strategy="momentum")
    assert a.summary() == b.summary()
    assert a.trades == b.trades


# ── engine lifecycle ──────────────────────────────────────────────────────────

def test_engine_runs_once():
    engine = _engine([100.0] * 40)
    engine.run()
    with pytest.raises(RuntimeError, match="already been called"):
        engine.run()


def test_unexpected_failure_becomes_backtest_error(monkeypatch):
    def boom(*args, **kwargs):
        raise ZeroDivisionError("boom")

    monkeypatch.setattr("trade_sandbox.engine.backtest.evaluate", boom)
    with pytest.raises(BacktestError, match="An error occurred during backtesting: boom"):
        _engine([100.0] * 40).run()


# ── report frames ─────────────────────────────────────────────────────────────

def test_report_frames():
    report = _engine(DIP_THEN_SPIKE, fee_pct=0).run()

    eq = report.equity_frame()
    assert len(eq) == len(DIP_THEN_SPIKE)
    assert eq.index.name == "tick"
    assert eq["portfolio_value"].iloc[-1] == pytest.approx(13_000.0)

    trades = report.trades_frame()
    assert list(trades["side"]) == ["BUY", "SELL"]

    monthly = report.monthly_frame()
    assert list(monthly.columns) == ["label", "return_pct", "portfolio_value"]

    summary = report.summary()
    assert summary["strategy"] == "BUY_LOW_SELL_HIGH"
    assert summary["trades"] == 2
