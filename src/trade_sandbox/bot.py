"""Live paper-trading bot.

The simulation is a pure state machine: ``tick(state, config, price)`` returns
the next ``BotState`` after appending the price, evaluating the strategy,
applying a fixed-quantity trade and recomputing value and FIFO P&L, in that
order. ``TradingBot`` is the scheduler around it: two independent asyncio
loops (price only / price + decision) plus the manual order book.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable

from . import portfolio as pf
from .errors import BotError, ValidationError
from .market.prices import PRICE_FLOOR, default_rng, next_price
from .orders import OrderBook
from .pnl import Lot, match_fill
from .portfolio import PortfolioState
from .strategy import Position, StrategyParams, evaluate, resolve_strategy
from .types import Order, OrderSide, RandomSource, Signal, StrategyName, Trade

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotConfig:
    initial_price: float = 100.0
    initial_cash: float = 10_000.0
    trade_quantity: float = 5
    volatility_pct: float = 5.0
    trend_pct: float = 0.0
    fee_pct: float = 0.0
    strategy: StrategyName | str = StrategyName.MA_BAND
    params: StrategyParams = field(default_factory=StrategyParams)
    history_cap: int = 100
    min_history: int = 5
    market_interval: float = 1.0  # seconds
    trade_interval: float = 2.0  # seconds

    def __post_init__(self) -> None:
        errors: list[str] = []
        if self.initial_price < PRICE_FLOOR:
            errors.append(f"initial_price must be >= {PRICE_FLOOR}")
        if self.initial_cash < 0:
            errors.append("initial_cash must be >= 0")
        if self.trade_quantity <= 0:
            errors.append("trade_quantity must be > 0")
        if self.volatility_pct < 0:
            errors.append("volatility_pct must be >= 0")
        if not (0 <= self.fee_pct <= 5):
            errors.append("fee_pct must be between 0 and 5")
        if self.history_cap < 1:
            errors.append("history_cap must be >= 1")
        if not (1 <= self.min_history <= self.history_cap):
            errors.append("min_history must be between 1 and history_cap")
        if self.market_interval <= 0 or self.trade_interval <= 0:
            errors.append("intervals must be > 0")
        try:
            resolve_strategy(self.strategy)
        except ValidationError as exc:
            errors.extend(exc.errors)
        if errors:
            raise ValidationError(errors)

    @property
    def fee_rate(self) -> float:
        return self.fee_pct / 100


@dataclass(frozen=True)
class BotState:
    prices: tuple[float, ...]
    portfolio: PortfolioState
    trades: tuple[Trade, ...] = ()
    open_lots: tuple[Lot, ...] = ()
    next_trade_id: int = 0
    tick: int = 0
    last_signal: Signal = Signal.HOLD
    total_value: float = 0.0

    @property
    def current_price(self) -> float:
        return self.prices[-1]

    @property
    def realized_pnl(self) -> float:
        return self.portfolio.realized_pnl


# ── Pure transitions ────────────────────────────────────────────────────────


def initial_state(config: BotConfig) -> BotState:
    start = PortfolioState(cash=config.initial_cash)
    return BotState(
        prices=(config.initial_price,),
        portfolio=start,
        total_value=start.value(config.initial_price),
    )


def append_price(state: BotState, price: float, cap: int) -> BotState:
    """Add a price to the rolling history, evicting the oldest beyond ``cap``."""
    prices = (*state.prices, price)
    if len(prices) > cap:
        prices = prices[-cap:]
    return replace(
        state,
        prices=prices,
        tick=state.tick + 1,
        total_value=state.portfolio.value(price),
    )


def apply_trade(
    state: BotState,
    side: OrderSide,
    qty: float,
    price: float,
    fee_rate: float = 0.0,
) -> BotState:
    """Fill ``qty`` at ``price`` and update value and FIFO realized P&L.

    Raises InsufficientFunds / InsufficientShares with ``state`` untouched.
    """
    if side == OrderSide.BUY:
        held = pf.buy(state.portfolio, qty, price, fee_rate)
    else:
        held = pf.sell(state.portfolio, qty, price, fee_rate)

    trade = Trade(
        id=state.next_trade_id,
        tick=state.tick,
        side=side,
        qty=qty,
        price=price,
        balance=held.cash,
        fee=qty * price * fee_rate,
    )
    # only the new fill is matched, against the lots still open
    pnl, open_lots = match_fill(state.open_lots, trade)
    held = replace(held, realized_pnl=state.portfolio.realized_pnl + pnl)
    return replace(
        state,
        portfolio=held,
        trades=(*state.trades, trade),
        open_lots=open_lots,
        next_trade_id=state.next_trade_id + 1,
        total_value=held.value(state.current_price),
    )


def tick(state: BotState, config: BotConfig, price: float) -> BotState:
    """One decision step: price, strategy, trade, metrics."""
    state = append_price(state, price, config.history_cap)
    if len(state.prices) < config.min_history:
        return replace(state, last_signal=Signal.HOLD)

    position = Position(
        cash=state.portfolio.cash,
        holdings=state.portfolio.holdings,
        fee_rate=config.fee_rate,
        lot_size=config.trade_quantity,
    )
    signal = evaluate(config.strategy, state.prices, len(state.prices) - 1, position, config.params)
    if signal == Signal.BUY:
        state = apply_trade(state, OrderSide.BUY, config.trade_quantity, price, config.fee_rate)
    elif signal == Signal.SELL:
        state = apply_trade(state, OrderSide.SELL, config.trade_quantity, price, config.fee_rate)
    if signal != Signal.HOLD:
        log.info("Bot %s %g shares at $%.2f", signal.value.upper(), config.trade_quantity, price)
    return replace(state, last_signal=signal)


# ── Scheduler ───────────────────────────────────────────────────────────────


class TradingBot:
    """Runs the market and decision loops and owns the live state.

    ``start()`` must be called from inside a running event loop. ``stop()``
    cancels both loops; a later ``start()`` creates fresh ones.
    """

    def __init__(
        self,
        config: BotConfig | None = None,
        rng: RandomSource | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or BotConfig()
        self.rng = rng if rng is not None else default_rng()
        self.state = initial_state(self.config)
        self.orders = OrderBook(
            on_fill=self._apply_manual_fill,
            portfolio=lambda: self.state.portfolio,
            fee_rate=self.config.fee_rate,
            clock=clock,
        )
        self._tasks: list[asyncio.Task] = []
        self._generation = 0
        self._listeners: list[Callable[[BotState], None]] = []
        self.last_error: Exception | None = None  # set when a scheduled step fails

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def on_update(self, callback: Callable[[BotState], None]) -> Callable[[], None]:
        """Call ``callback(state)`` after every step. Returns an unsubscribe function."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    # ── Steps (also usable without the scheduler) ───────────────────────────

    def step_market(self) -> BotState:
        """Regenerate the price only."""
        self.state = append_price(self.state, self._next_price(), self.config.history_cap)
        return self._after_step()

    def step_trade(self) -> BotState:
        """Generate a price and run one full decision tick."""
        self.state = tick(self.state, self.config, self._next_price())
        return self._after_step()

    def place_market_order(self, side: OrderSide, qty: float) -> Order:
        return self.orders.place_market(side, qty, self.state.current_price)

    def place_limit_order(self, side: OrderSide, qty: float, limit_price: float) -> Order:
        return self.orders.place_limit(side, qty, limit_price, self.state.current_price)

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self.last_error = None
        generation = self._generation
        self._tasks = [
            loop.create_task(self._run(self.config.market_interval, self.step_market, generation)),
            loop.create_task(self._run(self.config.trade_interval, self.step_trade, generation)),
        ]
        log.info("Bot started")

    def stop(self) -> None:
        self._generation += 1
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            log.info("Bot stopped")

    async def shutdown(self) -> None:
        """Stop and wait until both loops have actually exited.

        Raises BotError if a scheduled step failed since the last ``start()``.
        """
        tasks = list(self._tasks)
        self.stop()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self.last_error is not None:
            raise BotError(f"Bot step failed: {self.last_error}") from self.last_error

    def reset(self) -> None:
        """Stop and return to the configured initial state, ids included."""
        self.stop()
        self.last_error = None
        self.state = initial_state(self.config)
        self.orders.reset()
        self._notify()

    # ── Internals ───────────────────────────────────────────────────────────

    async def _run(self, interval: float, step: Callable[[], BotState], generation: int) -> None:
        while True:
            await asyncio.sleep(interval)
            if generation != self._generation:
                return
            try:
                step()
            except Exception as exc:
                # one failed step ends both loops
                log.exception("Bot step failed, stopping")
                self.last_error = exc
                self.stop()
                return

    def _next_price(self) -> float:
        return next_price(
            self.state.current_price,
            self.config.volatility_pct,
            self.config.trend_pct,
            self.rng,
        )

    def _apply_manual_fill(self, order: Order, price: float) -> None:
        self.state = apply_trade(self.state, order.side, order.qty, price, self.config.fee_rate)

    def _after_step(self) -> BotState:
        self.orders.match(self.state.current_price)
        self._notify()
        return self.state

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self.state)
