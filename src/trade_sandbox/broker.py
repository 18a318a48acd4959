from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from . import portfolio
from .errors import ValidationError
from .portfolio import PortfolioState
from .types import OrderSide, Trade

log = logging.getLogger(__name__)


@dataclass
class PaperBroker:
    """Mutable holder for one run's portfolio and trade log.

    Trade ids come from a per-instance counter, so independent brokers never
    share numbering.
    """

    initial_cash: float
    fee_pct: float = 0.0
    state: PortfolioState = field(init=False)
    trades: list[Trade] = field(default_factory=list, init=False)
    _next_id: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.initial_cash <= 0:
            raise ValidationError("initial_cash must be > 0")
        if self.fee_pct < 0:
            raise ValidationError("fee_pct must be >= 0")
        self.state = PortfolioState(cash=self.initial_cash)

    @property
    def fee_rate(self) -> float:
        return self.fee_pct / 100

    @property
    def cash(self) -> float:
        return self.state.cash

    @property
    def position_qty(self) -> float:
        return self.state.holdings

    def equity(self, mark_price: float) -> float:
        return self.state.value(mark_price)

    def execute_market_order(
        self,
        side: OrderSide,
        qty: float,
        price: float,
        tick: int,
        pnl: float | None = None,
        cumulative_pnl: float | None = None,
    ) -> Trade | None:
        if qty <= 0:
            return None

        notional = qty * price
        fee = notional * self.fee_rate
        if side == OrderSide.BUY:
            self.state = portfolio.buy(self.state, qty, price, self.fee_rate)
        else:
            self.state = portfolio.sell(self.state, qty, price, self.fee_rate)
        if pnl is not None:
            self.state = replace(self.state, realized_pnl=self.state.realized_pnl + pnl)

        trade = Trade(
            id=self._next_id,
            tick=tick,
            side=side,
            qty=qty,
            price=price,
            balance=self.state.cash,
            fee=fee,
            pnl=pnl,
            cumulative_pnl=cumulative_pnl,
        )
        self._next_id += 1
        self.trades.append(trade)
        log.debug("tick %d %s %g @ %.2f (cash %.2f)", tick, side.value, qty, price, self.state.cash)
        return trade
