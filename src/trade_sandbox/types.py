from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class Signal(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    FILLED = "Filled"
    CANCELLED = "Cancelled"


class StrategyName(str, Enum):
    BUY_LOW_SELL_HIGH = "BUY_LOW_SELL_HIGH"
    TREND_FOLLOWING = "TREND_FOLLOWING"
    MEAN_REVERSION = "MEAN_REVERSION"
    MOMENTUM = "MOMENTUM"
    BOLLINGER_BANDS = "BOLLINGER_BANDS"
    MA_BAND = "MA_BAND"


@dataclass(frozen=True)
class Candle:
    tick: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def __post_init__(self) -> None:
        if self.high < max(self.open, self.close):
            raise ValueError(f"high={self.high} must be >= open and close")
        if self.low > min(self.open, self.close):
            raise ValueError(f"low={self.low} must be <= open and close")

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def total_range(self) -> float:
        return self.high - self.low


@dataclass(frozen=True)
class Trade:
    id: int
    tick: int
    side: OrderSide
    qty: float
    price: float
    balance: float  # cash after the fill
    fee: float = 0.0
    pnl: float | None = None
    cumulative_pnl: float | None = None

    @property
    def notional(self) -> float:
        return self.qty * self.price


@dataclass(frozen=True)
class Order:
    id: int
    side: OrderSide
    order_type: OrderType
    qty: float
    limit_price: float | None
    status: OrderStatus
    placed_at: float
    closed_at: float | None = None  # when it left Pending
    fill_price: float | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == OrderStatus.PENDING


# ── Structural Protocols (avoid concrete coupling between modules) ──────────


class RandomSource(Protocol):
    """Anything with ``uniform``: ``random.Random`` or ``numpy.random.Generator``."""

    def uniform(self, low: float, high: float) -> float: ...

