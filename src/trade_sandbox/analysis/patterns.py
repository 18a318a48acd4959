"""Candlestick pattern recognition for single candles and two-candle engulfing."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from ..types import Candle

Strength = Literal["weak", "moderate", "strong"]

BULLISH = frozenset({"Hammer", "Inverted Hammer", "Bullish Engulfing"})
BEARISH = frozenset({"Shooting Star", "Hanging Man", "Bearish Engulfing"})


@dataclass(frozen=True)
class PatternMatch:
    pattern: str | None
    strength: Strength = "weak"

    @property
    def bias(self) -> str:
        if self.pattern in BULLISH:
            return "bullish"
        if self.pattern in BEARISH:
            return "bearish"
        return "neutral"


NO_PATTERN = PatternMatch(None, "weak")


def _wick_strength(wick: float, body: float) -> Strength:
    return "strong" if wick > body * 3 else "moderate"


def identify_pattern(candle: Candle, prev: Candle | None = None) -> PatternMatch:
    """Classify ``candle``; ``prev`` enables the engulfing checks.

    Checks run in a fixed order and the first match wins.
    """
    o, c = candle.open, candle.close
    body = candle.body
    total_range = candle.total_range
    if total_range <= 0:
        return NO_PATTERN

    upper_wick = candle.high - max(o, c)
    lower_wick = min(o, c) - candle.low
    body_ratio = body / total_range

    if body < total_range * 0.1 and upper_wick > body * 1.5 and lower_wick > body * 1.5:
        strong = upper_wick > body * 3 and lower_wick > body * 3
        return PatternMatch("Doji", "strong" if strong else "moderate")

    long_lower = body_ratio > 0.3 and lower_wick > body * 2 and upper_wick < body * 0.5
    long_upper = body_ratio > 0.3 and upper_wick > body * 2 and lower_wick < body * 0.5

    if long_lower and c > o:
        return PatternMatch("Hammer", _wick_strength(lower_wick, body))
    if long_upper and c > o:
        return PatternMatch("Inverted Hammer", _wick_strength(upper_wick, body))
    if long_upper and c < o:
        return PatternMatch("Shooting Star", _wick_strength(upper_wick, body))
    if long_lower and c < o:
        return PatternMatch("Hanging Man", _wick_strength(lower_wick, body))

    if prev is not None:
        prev_body = prev.body
        strength: Strength = "strong" if body > prev_body * 1.5 else "moderate"
        if (
            c > o
            and prev.close < prev.open
            and o < prev.close
            and c > prev.open
            and body > prev_body * 1.2
        ):
            return PatternMatch("Bullish Engulfing", strength)
        if (
            c < o
            and prev.close > prev.open
            and o > prev.close
            and c < prev.open
            and body > prev_body * 1.2
        ):
            return PatternMatch("Bearish Engulfing", strength)

    # three-candle stars simplified to a small, balanced body
    if body < total_range * 0.2 and abs(upper_wick - lower_wick) < total_range * 0.3:
        return PatternMatch("Star", "weak")

    return NO_PATTERN


def scan_patterns(candles: Sequence[Candle]) -> list[PatternMatch]:
    """Label every candle, each against its predecessor."""
    out: list[PatternMatch] = []
    prev: Candle | None = None
    for candle in candles:
        out.append(identify_pattern(candle, prev))
        prev = candle
    return out
