"""CLI: generate a synthetic candle feed, label candlestick patterns and print
an indicator snapshot of the closes.

Usage:
    scan-patterns --candles 100 --seed 3
    scan-patterns --candles 300 --only-strong
"""

from __future__ import annotations

import argparse
import logging
import math

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from trade_sandbox.analysis.indicators import indicator_frame
from trade_sandbox.analysis.patterns import scan_patterns
from trade_sandbox.market.prices import default_rng, synthetic_candle
from trade_sandbox.types import Candle, RandomSource

console = Console()
logging.basicConfig(
    level=logging.WARNING,
    handlers=[RichHandler(console=console, show_path=False)],
)

BASE_PRICE = 1500.0
SWING = 200.0


def build_feed(count: int, rng: RandomSource, volatility: float = 30.0) -> list[Candle]:
    """Candles around a slow sine-wave base price, one per tick."""
    return [
        synthetic_candle(i, BASE_PRICE + math.sin(i / 10) * SWING, rng, volatility)
        for i in range(count)
    ]


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Detect candlestick patterns on synthetic candles")
    p.add_argument("--candles", type=int, default=100)
    p.add_argument("--volatility", type=float, default=30.0, help="Absolute price width")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--only-strong", action="store_true")
    p.add_argument("--last", type=int, default=10, help="Indicator rows to show")
    return p


def main() -> None:
    args = build_parser().parse_args()
    candles = build_feed(args.candles, default_rng(args.seed), args.volatility)
    matches = scan_patterns(candles)

    tbl = Table(title=f"Patterns in {len(candles)} candles")
    for col in ("Tick", "Open", "High", "Low", "Close", "Pattern", "Strength", "Bias"):
        tbl.add_column(col)
    hits = 0
    for candle, match in zip(candles, matches):
        if match.pattern is None:
            continue
        if args.only_strong and match.strength != "strong":
            continue
        hits += 1
        color = {"bullish": "green", "bearish": "red"}.get(match.bias, "yellow")
        tbl.add_row(
            str(candle.tick),
            f"{candle.open:,.2f}",
            f"{candle.high:,.2f}",
            f"{candle.low:,.2f}",
            f"{candle.close:,.2f}",
            f"[{color}]{match.pattern}[/]",
            match.strength,
            match.bias,
        )
    console.print(tbl)
    console.print(f"[cyan]{hits}[/] pattern(s) detected")

    frame = indicator_frame([c.close for c in candles]).tail(args.last).round(2)
    snap = Table(title="Indicators (closes)")
    snap.add_column("tick")
    for col in frame.columns:
        snap.add_column(col, justify="right")
    for tick, row in frame.iterrows():
        snap.add_row(str(tick), *(f"{v:,.2f}" for v in row))
    console.print(snap)


if __name__ == "__main__":
    main()
