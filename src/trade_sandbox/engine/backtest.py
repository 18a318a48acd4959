from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Sequence

import pandas as pd

from ..broker import PaperBroker
from ..errors import BacktestError, SandboxError, ValidationError
from ..market.prices import sample_history
from ..portfolio import sell_proceeds
from ..strategy import Position, StrategyParams, evaluate, resolve_strategy
from ..types import OrderSide, RandomSource, Signal, StrategyName, Trade
from .metrics import (
    StreakCounter,
    annualized_return,
    annualized_volatility,
    compute_max_drawdown,
    period_returns,
    safe_div,
    sharpe_ratio,
)

log = logging.getLogger(__name__)

MIN_BALANCE = 100.0
MAX_BALANCE = 10_000_000.0
MAX_FEE_PCT = 5.0
MIN_POINTS = 30


@dataclass(frozen=True)
class EquityPoint:
    tick: int
    portfolio_value: float
    price: float
    cash: float
    holdings: float
    drawdown_pct: float
    cumulative_return_pct: float


@dataclass(frozen=True)
class MonthlyReturn:
    label: str
    return_pct: float
    portfolio_value: float


@dataclass
class BacktestConfig:
    initial_balance: float = 10_000.0
    fee_pct: float = 0.1
    strategy: StrategyName | str = StrategyName.BUY_LOW_SELL_HIGH
    params: StrategyParams = field(default_factory=StrategyParams)
    risk_free_rate: float = 0.02
    periods_per_year: int = 365
    bucket_size: int = 30

    def validate(self, prices: Sequence[float]) -> None:
        """Raise one ValidationError listing every problem found."""
        errors: list[str] = []
        if self.initial_balance < MIN_BALANCE:
            errors.append(f"Initial balance must be at least ${MIN_BALANCE:,.0f}")
        if self.initial_balance > MAX_BALANCE:
            errors.append(f"Initial balance cannot exceed ${MAX_BALANCE:,.0f}")
        if not (0 <= self.fee_pct <= MAX_FEE_PCT):
            errors.append(f"Transaction fee must be between 0% and {MAX_FEE_PCT:g}%")
        if len(prices) < MIN_POINTS:
            errors.append(f"Need at least {MIN_POINTS} data points for meaningful backtesting")
        bad = [i for i, p in enumerate(prices) if not (math.isfinite(p) and p > 0)]
        if bad:
            errors.append(f"Prices must be finite and > 0 (first bad index {bad[0]})")
        if self.bucket_size < 1:
            errors.append("bucket_size must be >= 1")
        try:
            resolve_strategy(self.strategy)
        except ValidationError as exc:
            errors.extend(exc.errors)
        if errors:
            raise ValidationError(errors)


@dataclass(frozen=True)
class PerformanceReport:
    strategy: StrategyName
    start_balance: float
    end_balance: float
    final_portfolio_value: float
    trades_executed: int
    closed_trades: int
    winning_trades: int
    losing_trades: int
    profit_loss: float
    profit_loss_pct: float
    win_rate: float
    max_drawdown_pct: float
    sharpe_ratio: float
    volatility_pct: float
    annualized_return_pct: float
    max_consecutive_wins: int
    max_consecutive_losses: int
    avg_win: float
    avg_loss: float
    total_fees: float
    equity_curve: tuple[EquityPoint, ...]
    trades: tuple[Trade, ...]
    monthly_returns: tuple[MonthlyReturn, ...]

    @property
    def total_return_pct(self) -> float:
        return self.profit_loss_pct

    def summary(self) -> dict:
        """Scalar metrics only, ready for JSON or a table."""
        return {
            "strategy": self.strategy.value,
            "start_balance": self.start_balance,
            "end_balance": round(self.end_balance, 2),
            "final_portfolio_value": round(self.final_portfolio_value, 2),
            "profit_loss": round(self.profit_loss, 2),
            "total_return_pct": round(self.profit_loss_pct, 4),
            "annualized_return_pct": round(self.annualized_return_pct, 4),
            "max_drawdown_pct": round(self.max_drawdown_pct, 4),
            "sharpe": round(self.sharpe_ratio, 4),
            "volatility_pct": round(self.volatility_pct, 4),
            "trades": self.trades_executed,
            "closed_trades": self.closed_trades,
            "win_rate": round(self.win_rate, 2),
            "max_consecutive_wins": self.max_consecutive_wins,
            "max_consecutive_losses": self.max_consecutive_losses,
            "avg_win": round(self.avg_win, 2),
            "avg_loss": round(self.avg_loss, 2),
            "total_fees": round(self.total_fees, 2),
        }

    def equity_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(p) for p in self.equity_curve]).set_index("tick")

    def trades_frame(self) -> pd.DataFrame:
        columns = ["id", "tick", "side", "qty", "price", "balance", "fee", "pnl", "cumulative_pnl"]
        rows = [{**asdict(t), "side": t.side.value} for t in self.trades]
        return pd.DataFrame(rows, columns=columns)

    def monthly_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(m) for m in self.monthly_returns], columns=["label", "return_pct", "portfolio_value"])


class BacktestEngine:
    """Drive one strategy over a full price history with a fresh portfolio.

    Construction validates the configuration; nothing is simulated until
    ``run()``. An engine runs once.
    """

    def __init__(self, prices: Sequence[float], config: BacktestConfig | None = None) -> None:
        self.config = config or BacktestConfig()
        self.prices = list(prices)
        self.config.validate(self.prices)
        self.strategy = resolve_strategy(self.config.strategy)
        self._has_run = False

    def run(self) -> PerformanceReport:
        # Guard: broker state is mutated; running twice produces garbage results.
        if self._has_run:
            raise RuntimeError(
                "BacktestEngine.run() has already been called. "
                "Create a fresh BacktestEngine to re-run."
            )
        self._has_run = True

        try:
            report = self._simulate()
        except SandboxError:
            raise
        except Exception as exc:
            log.exception("backtest aborted")
            raise BacktestError(f"An error occurred during backtesting: {exc}") from exc

        log.info(
            "%s: %d trades, final value %.2f (%.2f%%)",
            report.strategy.value,
            report.trades_executed,
            report.final_portfolio_value,
            report.profit_loss_pct,
        )
        return report

    def _simulate(self) -> PerformanceReport:
        cfg = self.config
        prices = self.prices
        initial = cfg.initial_balance
        broker = PaperBroker(initial_cash=initial, fee_pct=cfg.fee_pct)
        fee_rate = broker.fee_rate

        streaks = StreakCounter()
        equity_curve: list[EquityPoint] = []
        monthly: list[MonthlyReturn] = []
        peak = initial
        last_buy_price = 0.0
        cumulative_pnl = 0.0
        last_index = len(prices) - 1

        for index, price in enumerate(prices):
            position = Position(cash=broker.cash, holdings=broker.position_qty, fee_rate=fee_rate)
            signal = evaluate(self.strategy, prices, index, position, cfg.params)

            if signal == Signal.BUY:
                shares = math.floor(broker.cash / (price * (1 + fee_rate)))
                if shares > 0:
                    broker.execute_market_order(
                        OrderSide.BUY, shares, price, index, cumulative_pnl=cumulative_pnl
                    )
                    last_buy_price = price
            elif signal == Signal.SELL:
                # always a full-position close
                qty = broker.position_qty
                trade_pnl = sell_proceeds(qty, price, fee_rate) - qty * last_buy_price
                cumulative_pnl += trade_pnl
                streaks.record(trade_pnl)
                broker.execute_market_order(
                    OrderSide.SELL, qty, price, index, pnl=trade_pnl, cumulative_pnl=cumulative_pnl
                )

            # Mark-to-market after each tick
            value = broker.equity(price)
            peak = max(peak, value)
            equity_curve.append(
                EquityPoint(
                    tick=index,
                    portfolio_value=value,
                    price=price,
                    cash=broker.cash,
                    holdings=broker.position_qty,
                    drawdown_pct=safe_div(peak - value, peak) * 100,
                    cumulative_return_pct=safe_div(value - initial, initial) * 100,
                )
            )

            if index % cfg.bucket_size == 0 or index == last_index:
                prev_value = monthly[-1].portfolio_value if monthly else initial
                monthly.append(
                    MonthlyReturn(
                        label=f"Month {len(monthly) + 1}",
                        return_pct=safe_div(value - prev_value, prev_value) * 100,
                        portfolio_value=value,
                    )
                )

        final_value = broker.equity(prices[-1])
        values = [p.portfolio_value for p in equity_curve]
        returns = period_returns(values)
        profit_loss = final_value - initial

        return PerformanceReport(
            strategy=self.strategy,
            start_balance=initial,
            end_balance=broker.cash,
            final_portfolio_value=final_value,
            trades_executed=len(broker.trades),
            closed_trades=streaks.closed,
            winning_trades=streaks.wins,
            losing_trades=streaks.losses,
            profit_loss=profit_loss,
            profit_loss_pct=safe_div(profit_loss, initial) * 100,
            win_rate=streaks.win_rate,
            max_drawdown_pct=compute_max_drawdown([initial, *values]),
            sharpe_ratio=sharpe_ratio(returns, cfg.risk_free_rate, cfg.periods_per_year),
            volatility_pct=annualized_volatility(returns, cfg.periods_per_year),
            annualized_return_pct=annualized_return(
                final_value, initial, len(prices), cfg.periods_per_year
            ) * 100,
            max_consecutive_wins=streaks.max_wins,
            max_consecutive_losses=streaks.max_losses,
            avg_win=streaks.avg_win,
            avg_loss=streaks.avg_loss,
            total_fees=sum(t.fee for t in broker.trades),
            equity_curve=tuple(equity_curve),
            trades=tuple(broker.trades),
            monthly_returns=tuple(monthly),
        )


def run_backtest(
    prices: Sequence[float] | None = None,
    strategy: StrategyName | str = StrategyName.BUY_LOW_SELL_HIGH,
    initial_balance: float = 10_000.0,
    fee_pct: float = 0.1,
    rng: RandomSource | None = None,
    params: StrategyParams | None = None,
) -> PerformanceReport:
    """Validate, simulate and report in one call.

    Without ``prices`` a one-year synthetic sample is generated from ``rng``.
    """
    if prices is None or len(prices) == 0:
        prices = sample_history(rng)
    config = BacktestConfig(
        initial_balance=initial_balance,
        fee_pct=fee_pct,
        strategy=strategy,
        params=params or StrategyParams(),
    )
    return BacktestEngine(prices, config).run()
