from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np


def safe_div(num: float, den: float, default: float = 0.0) -> float:
    """``num / den`` with ``default`` for a zero or non-finite result."""
    if den == 0:
        return default
    return finite_or(num / den, default)


def finite_or(value: float, default: float = 0.0) -> float:
    return value if math.isfinite(value) else default


def compute_max_drawdown(equity_curve: Sequence[float]) -> float:
    """Return the maximum peak-to-trough drawdown as a positive percentage."""
    if not equity_curve:
        return 0.0
    peak = equity_curve[0]
    max_dd = 0.0
    for eq in equity_curve:
        if eq > peak:
            peak = eq
        if peak > 0:
            dd = (peak - eq) / peak * 100
            if dd > max_dd:
                max_dd = dd
    return max_dd


def period_returns(equity_curve: Sequence[float]) -> list[float]:
    """Per-tick simple returns; the first tick contributes 0.

    Ticks whose previous value is not positive contribute 0 as well, and
    anything non-finite is dropped.
    """
    returns = [0.0] if equity_curve else []
    for prev, curr in zip(equity_curve, equity_curve[1:]):
        returns.append((curr - prev) / prev if prev > 0 else 0.0)
    return [r for r in returns if math.isfinite(r)]


def mean_std(values: Sequence[float]) -> tuple[float, float]:
    """Mean and population standard deviation (std is 0 below two values)."""
    if not values:
        return 0.0, 0.0
    arr = np.asarray(values, dtype=float)
    mean = float(arr.mean())
    std = float(arr.std(ddof=0)) if len(arr) > 1 else 0.0
    return mean, std


def sharpe_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.02,
    periods_per_year: int = 365,
) -> float:
    mean, std = mean_std(returns)
    if std <= 0:
        return 0.0
    excess = mean - risk_free_rate / periods_per_year
    return finite_or(excess / std * math.sqrt(periods_per_year))


def annualized_volatility(returns: Sequence[float], periods_per_year: int = 365) -> float:
    """Annualised standard deviation of returns, in percent."""
    _, std = mean_std(returns)
    return finite_or(std * math.sqrt(periods_per_year) * 100)


def annualized_return(
    final_value: float,
    initial_value: float,
    periods: int,
    periods_per_year: int = 365,
) -> float:
    """Compound annual growth as a fraction: ``(final/initial)^(ppy/periods) - 1``."""
    if initial_value <= 0 or periods <= 0:
        return 0.0
    growth = final_value / initial_value
    if growth <= 0:
        return -1.0
    try:
        return finite_or(growth ** (periods_per_year / periods) - 1)
    except OverflowError:
        return 0.0


@dataclass
class StreakCounter:
    """Running and maximum consecutive win/loss counts over closed trades."""

    wins: int = 0
    losses: int = 0
    current_wins: int = 0
    current_losses: int = 0
    max_wins: int = 0
    max_losses: int = 0
    total_win: float = 0.0
    total_loss: float = 0.0

    def record(self, pnl: float) -> None:
        # break-even counts as a loss
        if pnl > 0:
            self.wins += 1
            self.total_win += pnl
            self.current_wins += 1
            self.current_losses = 0
            self.max_wins = max(self.max_wins, self.current_wins)
        else:
            self.losses += 1
            self.total_loss += abs(pnl)
            self.current_losses += 1
            self.current_wins = 0
            self.max_losses = max(self.max_losses, self.current_losses)

    @property
    def closed(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        """Win rate as a percentage (0-100). Returns 0 if no closed trades."""
        return safe_div(self.wins, self.closed) * 100

    @property
    def avg_win(self) -> float:
        return safe_div(self.total_win, self.wins)

    @property
    def avg_loss(self) -> float:
        return safe_div(self.total_loss, self.losses)
