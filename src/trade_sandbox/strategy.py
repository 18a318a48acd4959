"""Per-tick trading rules.

Every rule is a pure function of the price history, the index being decided,
and the current position. A rule yields a ``(should_buy, should_sell)`` pair;
``evaluate`` applies the affordability/availability guards and the tie-break
and returns a single Signal.

Tie-break: if both flags survive the guards, SELL wins whenever shares are
held and BUY is only honoured from a flat position.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from .analysis.indicators import bollinger_bands, momentum, moving_average, rsi
from .errors import ValidationError
from .types import Signal, StrategyName

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyParams:
    """Knobs for the moving-average band rule used by the live bot."""

    band_period: int = 5
    buy_threshold_pct: float = 3.0
    sell_threshold_pct: float = 3.0

    def __post_init__(self) -> None:
        errors: list[str] = []
        if self.band_period < 1:
            errors.append("band_period must be >= 1")
        if not (0 <= self.buy_threshold_pct < 100):
            errors.append("buy_threshold_pct must be in [0, 100)")
        if self.sell_threshold_pct < 0:
            errors.append("sell_threshold_pct must be >= 0")
        if errors:
            raise ValidationError(errors)


DEFAULT_PARAMS = StrategyParams()


@dataclass(frozen=True)
class Position:
    cash: float
    holdings: float
    fee_rate: float = 0.0
    lot_size: float = 1.0

    def can_afford(self, price: float) -> bool:
        return self.cash >= price * self.lot_size * (1 + self.fee_rate)

    def can_sell(self) -> bool:
        return self.holdings > 0 and self.holdings >= self.lot_size


Rule = Callable[[Sequence[float], int, StrategyParams], tuple[bool, bool]]


# ── Rules ───────────────────────────────────────────────────────────────────


def _buy_low_sell_high(prices: Sequence[float], index: int, params: StrategyParams) -> tuple[bool, bool]:
    price = prices[index]
    ma20 = moving_average(prices, 20, index)
    ma50 = moving_average(prices, 50, index)
    return price < ma20 * 0.95 and ma20 > ma50, price > ma20 * 1.05


def _trend_following(prices: Sequence[float], index: int, params: StrategyParams) -> tuple[bool, bool]:
    if index < 20:
        return False, False
    ma10 = moving_average(prices, 10, index)
    ma20 = moving_average(prices, 20, index)
    ma50 = moving_average(prices, 50, index)
    return ma10 > ma20 > ma50, ma10 < ma20


def _mean_reversion(prices: Sequence[float], index: int, params: StrategyParams) -> tuple[bool, bool]:
    value = rsi(prices, 14, index)
    ma20 = moving_average(prices, 20, index)
    return value < 25 and prices[index] < ma20, value > 75


def _momentum(prices: Sequence[float], index: int, params: StrategyParams) -> tuple[bool, bool]:
    if index < 10:
        return False, False
    m = momentum(prices, index, short_lag=5, long_lag=10)
    return m.short > 0.03 and m.long > 0.05, m.short < -0.03


def _bollinger(prices: Sequence[float], index: int, params: StrategyParams) -> tuple[bool, bool]:
    price = prices[index]
    bands = bollinger_bands(prices, 20, index)
    return price < bands.lower, price > bands.upper


def _ma_band(prices: Sequence[float], index: int, params: StrategyParams) -> tuple[bool, bool]:
    price = prices[index]
    ma = moving_average(prices, params.band_period, index)
    buy_threshold = ma * (1 - params.buy_threshold_pct / 100)
    sell_threshold = ma * (1 + params.sell_threshold_pct / 100)
    return price < buy_threshold, price > sell_threshold


RULES: dict[StrategyName, Rule] = {
    StrategyName.BUY_LOW_SELL_HIGH: _buy_low_sell_high,
    StrategyName.TREND_FOLLOWING: _trend_following,
    StrategyName.MEAN_REVERSION: _mean_reversion,
    StrategyName.MOMENTUM: _momentum,
    StrategyName.BOLLINGER_BANDS: _bollinger,
    StrategyName.MA_BAND: _ma_band,
}

STRATEGY_DESCRIPTIONS: dict[StrategyName, str] = {
    StrategyName.BUY_LOW_SELL_HIGH: (
        "Buy when price is 5% below the 20-day MA (with trend confirmation), sell when 5% above"
    ),
    StrategyName.TREND_FOLLOWING: "Buy when 10-day MA > 20-day MA > 50-day MA, sell when the trend reverses",
    StrategyName.MEAN_REVERSION: "Buy when RSI < 25 and price is below the 20-day MA, sell when RSI > 75",
    StrategyName.MOMENTUM: "Buy on strong momentum (3% in 5 days, 5% in 10 days), sell on reversal",
    StrategyName.BOLLINGER_BANDS: "Buy below the lower Bollinger Band, sell above the upper band",
    StrategyName.MA_BAND: "Buy below the short MA minus a threshold, sell above the MA plus a threshold",
}


def resolve_strategy(name: StrategyName | str) -> StrategyName:
    if isinstance(name, StrategyName):
        return name
    key = str(name).strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return StrategyName(key)
    except ValueError:
        valid = ", ".join(s.value for s in StrategyName)
        raise ValidationError(f"Unknown strategy {name!r}. Expected one of: {valid}") from None


def decide(should_buy: bool, should_sell: bool, position: Position, price: float) -> Signal:
    """Apply the guards and the tie-break to a pair of raw rule flags."""
    should_buy = should_buy and position.can_afford(price)
    should_sell = should_sell and position.can_sell()

    if should_buy and should_sell:
        return Signal.SELL if position.holdings > 0 else Signal.BUY
    if should_buy:
        return Signal.BUY
    if should_sell:
        return Signal.SELL
    return Signal.HOLD


def evaluate(
    strategy: StrategyName | str,
    prices: Sequence[float],
    index: int,
    position: Position,
    params: StrategyParams | None = None,
) -> Signal:
    """Decide BUY / SELL / HOLD for ``prices[index]``."""
    if not 0 <= index < len(prices):
        return Signal.HOLD
    rule = RULES[resolve_strategy(strategy)]
    should_buy, should_sell = rule(prices, index, params or DEFAULT_PARAMS)
    signal = decide(should_buy, should_sell, position, prices[index])
    if signal != Signal.HOLD:
        log.debug("%s at index %d (price %.2f)", signal.value, index, prices[index])
    return signal
