"""Portfolio state and the pure fill transitions shared by every simulator."""
from __future__ import annotations

from dataclasses import dataclass, replace

from .errors import InsufficientFunds, InsufficientShares

# float slack when a sized order spends the whole cash balance
_EPS = 1e-9


@dataclass(frozen=True)
class PortfolioState:
    cash: float
    holdings: float = 0.0
    total_invested: float = 0.0  # cumulative cash spent on buys, fees included
    realized_pnl: float = 0.0

    def value(self, mark_price: float) -> float:
        return self.cash + self.holdings * mark_price


def buy_cost(qty: float, price: float, fee_rate: float) -> float:
    return qty * price * (1 + fee_rate)


def sell_proceeds(qty: float, price: float, fee_rate: float) -> float:
    return qty * price * (1 - fee_rate)


def buy(state: PortfolioState, qty: float, price: float, fee_rate: float = 0.0) -> PortfolioState:
    """Debit ``qty * price * (1 + fee_rate)`` and credit the shares.

    Raises InsufficientFunds rather than partially filling.
    """
    cost = buy_cost(qty, price, fee_rate)
    if cost > state.cash + _EPS:
        raise InsufficientFunds(cost, state.cash)
    return replace(
        state,
        cash=max(0.0, state.cash - cost),
        holdings=state.holdings + qty,
        total_invested=state.total_invested + cost,
    )


def sell(state: PortfolioState, qty: float, price: float, fee_rate: float = 0.0) -> PortfolioState:
    if qty > state.holdings + _EPS:
        raise InsufficientShares(qty, state.holdings)
    return replace(
        state,
        cash=state.cash + sell_proceeds(qty, price, fee_rate),
        holdings=max(0.0, state.holdings - qty),
    )
