"""Realized P&L by FIFO lot matching."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Sequence

from .types import OrderSide, Trade


@dataclass(frozen=True)
class Lot:
    price: float
    qty: float


@dataclass(frozen=True)
class FifoResult:
    realized_pnl: float
    open_lots: tuple[Lot, ...]

    @property
    def open_qty(self) -> float:
        return sum(lot.qty for lot in self.open_lots)

    @property
    def cost_basis(self) -> float:
        return sum(lot.qty * lot.price for lot in self.open_lots)


def match_fill(open_lots: Sequence[Lot], trade: Trade) -> tuple[float, tuple[Lot, ...]]:
    """Apply one fill to ``open_lots`` (oldest first).

    Returns the P&L realized by this fill and the lots left open. A BUY opens
    a new lot; a SELL consumes the oldest lots, splitting the last one it
    touches. Sell quantity with no lot left to match contributes nothing.
    Prices are gross of fees.
    """
    if trade.side == OrderSide.BUY:
        return 0.0, (*open_lots, Lot(price=trade.price, qty=trade.qty))

    lots = deque(open_lots)
    remaining = trade.qty
    realized = 0.0
    while remaining > 0 and lots:
        oldest = lots[0]
        matched = min(remaining, oldest.qty)
        realized += (trade.price - oldest.price) * matched
        remaining -= matched
        if matched >= oldest.qty:
            lots.popleft()
        else:
            lots[0] = Lot(price=oldest.price, qty=oldest.qty - matched)
    return realized, tuple(lots)


def fifo_realized_pnl(trades: Iterable[Trade]) -> FifoResult:
    """Replay a whole trade log through ``match_fill``."""
    lots: tuple[Lot, ...] = ()
    realized = 0.0
    for trade in trades:
        pnl, lots = match_fill(lots, trade)
        realized += pnl
    return FifoResult(realized_pnl=realized, open_lots=lots)
