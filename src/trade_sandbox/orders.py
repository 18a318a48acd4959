"""Manual market/limit orders matched against a live price.

The book never touches a portfolio directly: fills are handed to an
``on_fill(order, fill_price)`` callback owned by whoever holds the portfolio,
and funds are checked against a ``portfolio()`` snapshot before anything is
recorded.
"""
from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable

from .errors import InsufficientFunds, InsufficientShares, OrderError, ValidationError
from .portfolio import PortfolioState, buy_cost
from .types import Order, OrderSide, OrderStatus, OrderType

log = logging.getLogger(__name__)

FillHandler = Callable[[Order, float], None]

DEFAULT_RETENTION = 3.0  # seconds a filled/cancelled order stays visible


def limit_satisfied(side: OrderSide, limit_price: float, market_price: float) -> bool:
    if side == OrderSide.BUY:
        return market_price <= limit_price
    return market_price >= limit_price


class OrderBook:
    def __init__(
        self,
        on_fill: FillHandler,
        portfolio: Callable[[], PortfolioState],
        fee_rate: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        retention: float = DEFAULT_RETENTION,
    ) -> None:
        self._on_fill = on_fill
        self._portfolio = portfolio
        self.fee_rate = fee_rate
        self._clock = clock
        self.retention = retention
        self._orders: list[Order] = []
        self._processed: set[int] = set()
        self._next_id = 0

    # ── Views ───────────────────────────────────────────────────────────────

    @property
    def orders(self) -> tuple[Order, ...]:
        return tuple(self._orders)

    @property
    def pending(self) -> list[Order]:
        return [o for o in self._orders if o.status == OrderStatus.PENDING]

    @property
    def recently_filled(self) -> list[Order]:
        return [o for o in self._orders if o.status == OrderStatus.FILLED]

    def get(self, order_id: int) -> Order | None:
        return next((o for o in self._orders if o.id == order_id), None)

    # ── Placement ───────────────────────────────────────────────────────────

    def place_market(self, side: OrderSide, qty: float, market_price: float) -> Order:
        """Fill immediately at ``market_price`` or raise without changing state."""
        _validate(qty, market_price, "market price")
        self._check_funds(side, qty, market_price)
        now = self._clock()
        order = Order(
            id=self._take_id(),
            side=side,
            order_type=OrderType.MARKET,
            qty=qty,
            limit_price=None,
            status=OrderStatus.FILLED,
            placed_at=now,
            closed_at=now,
            fill_price=market_price,
        )
        self._fill(order, market_price)
        log.info("Market %s executed: %g shares at $%.2f", side.value, qty, market_price)
        return order

    def place_limit(
        self,
        side: OrderSide,
        qty: float,
        limit_price: float,
        market_price: float,
    ) -> Order:
        """Queue a limit order, or fill it at the market price if already marketable."""
        _validate(qty, limit_price, "limit price")
        self._check_funds(side, qty, limit_price)
        now = self._clock()

        if limit_satisfied(side, limit_price, market_price):
            order = Order(
                id=self._take_id(),
                side=side,
                order_type=OrderType.LIMIT,
                qty=qty,
                limit_price=limit_price,
                status=OrderStatus.FILLED,
                placed_at=now,
                closed_at=now,
                fill_price=market_price,
            )
            self._fill(order, market_price)
            log.info("Limit %s filled immediately: %g shares at $%.2f", side.value, qty, market_price)
            return order

        order = Order(
            id=self._take_id(),
            side=side,
            order_type=OrderType.LIMIT,
            qty=qty,
            limit_price=limit_price,
            status=OrderStatus.PENDING,
            placed_at=now,
        )
        self._orders.append(order)
        log.info("Limit %s order placed: %g shares at $%.2f", side.value, qty, limit_price)
        return order

    def cancel(self, order_id: int) -> Order | None:
        """Cancel a pending order. Returns None if it is not pending."""
        for i, order in enumerate(self._orders):
            if order.id == order_id and order.is_pending:
                cancelled = replace(order, status=OrderStatus.CANCELLED, closed_at=self._clock())
                self._orders[i] = cancelled
                self._processed.add(order_id)
                log.info("Order %d cancelled", order_id)
                return cancelled
        return None

    # ── Matching ────────────────────────────────────────────────────────────

    def match(self, market_price: float) -> list[Order]:
        """Fill every pending order whose limit the price has crossed.

        Fills happen at the limit price. Each order id is considered once; an
        order that can no longer be funded is cancelled instead.
        """
        self.purge()
        filled: list[Order] = []
        for i, order in enumerate(self._orders):
            if order.id in self._processed or not order.is_pending:
                continue
            if order.limit_price is None or not limit_satisfied(order.side, order.limit_price, market_price):
                continue

            self._processed.add(order.id)
            now = self._clock()
            try:
                self._check_funds(order.side, order.qty, order.limit_price)
                self._on_fill(order, order.limit_price)
            except OrderError as exc:
                log.warning("Limit order %d cancelled at fill time: %s", order.id, exc)
                self._orders[i] = replace(order, status=OrderStatus.CANCELLED, closed_at=now)
                continue

            done = replace(order, status=OrderStatus.FILLED, closed_at=now, fill_price=order.limit_price)
            self._orders[i] = done
            filled.append(done)
            log.info(
                "Limit %s order filled: %g shares at $%.2f",
                order.side.value,
                order.qty,
                order.limit_price,
            )
        return filled

    def purge(self, now: float | None = None) -> int:
        """Drop filled/cancelled orders older than the retention window."""
        now = self._clock() if now is None else now
        before = len(self._orders)
        self._orders = [
            o
            for o in self._orders
            if o.is_pending or o.closed_at is None or now - o.closed_at < self.retention
        ]
        return before - len(self._orders)

    def reset(self) -> None:
        self._orders.clear()
        self._processed.clear()
        self._next_id = 0

    # ── Internals ───────────────────────────────────────────────────────────

    def _take_id(self) -> int:
        order_id = self._next_id
        self._next_id += 1
        return order_id

    def _check_funds(self, side: OrderSide, qty: float, price: float) -> None:
        state = self._portfolio()
        if side == OrderSide.BUY:
            cost = buy_cost(qty, price, self.fee_rate)
            if cost > state.cash:
                raise InsufficientFunds(cost, state.cash)
        elif qty > state.holdings:
            raise InsufficientShares(qty, state.holdings)

    def _fill(self, order: Order, price: float) -> None:
        self._on_fill(order, price)
        self._processed.add(order.id)
        self._orders.append(order)


def _validate(qty: float, price: float, label: str) -> None:
    errors: list[str] = []
    if not qty > 0:
        errors.append("Please enter a valid quantity")
    if not price > 0:
        errors.append(f"Please enter a valid {label}")
    if errors:
        raise ValidationError(errors)
