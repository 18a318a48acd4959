"""CLI: run the live paper-trading bot against a synthetic price stream.

Usage:
    run-bot --ticks 200 --seed 1
    run-bot --live --seconds 10 --market-interval 0.5 --trade-interval 1
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from trade_sandbox.bot import BotConfig, BotState, TradingBot
from trade_sandbox.errors import SandboxError
from trade_sandbox.market.prices import default_rng
from trade_sandbox.strategy import StrategyParams
from trade_sandbox.types import StrategyName

console = Console()
log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Run the paper-trading bot on synthetic prices")
    p.add_argument("--ticks", type=int, default=200, help="Market steps in stepped mode (default: 200)")
    p.add_argument("--trade-every", type=int, default=2, help="Decision tick every N market steps")
    p.add_argument("--live", action="store_true", help="Use the asyncio scheduler instead of stepping")
    p.add_argument("--seconds", type=float, default=10.0, help="Run time in --live mode")
    p.add_argument("--market-interval", type=float, default=1.0)
    p.add_argument("--trade-interval", type=float, default=2.0)
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--strategy", default=StrategyName.MA_BAND.value, choices=[s.value for s in StrategyName])
    p.add_argument("--quantity", type=float, default=5)
    p.add_argument("--cash", type=float, default=10_000.0)
    p.add_argument("--volatility", type=float, default=5.0, help="Percent")
    p.add_argument("--trend", type=float, default=0.0, help="Percent")
    p.add_argument("--buy-threshold", type=float, default=3.0, help="Percent below MA")
    p.add_argument("--sell-threshold", type=float, default=3.0, help="Percent above MA")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def _stepped(bot: TradingBot, ticks: int, trade_every: int) -> None:
    for i in range(1, ticks + 1):
        if trade_every > 0 and i % trade_every == 0:
            bot.step_trade()
        else:
            bot.step_market()


async def _live(bot: TradingBot, seconds: float) -> None:
    bot.start()
    try:
        await asyncio.sleep(seconds)
    finally:
        await bot.shutdown()


def render_state(state: BotState) -> None:
    tbl = Table(title="Bot trades", show_header=True)
    for col in ("#", "Tick", "Side", "Qty", "Price", "Cash"):
        tbl.add_column(col, justify="right")
    for t in state.trades[-20:]:
        color = "green" if t.side.value == "BUY" else "red"
        tbl.add_row(
            str(t.id),
            str(t.tick),
            f"[{color}]{t.side.value}[/]",
            f"{t.qty:g}",
            f"{t.price:,.2f}",
            f"{t.balance:,.2f}",
        )
    console.print(tbl)

    pnl = state.realized_pnl
    color = "green" if pnl >= 0 else "red"
    console.print(
        f"Price [cyan]{state.current_price:,.2f}[/] | "
        f"Cash {state.portfolio.cash:,.2f} | "
        f"Shares {state.portfolio.holdings:g} | "
        f"Total {state.total_value:,.2f} | "
        f"Realized P&L [{color}]{pnl:,.2f}[/] | "
        f"Trades {len(state.trades)}"
    )


def main() -> None:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        config = BotConfig(
            initial_cash=args.cash,
            trade_quantity=args.quantity,
            volatility_pct=args.volatility,
            trend_pct=args.trend,
            strategy=args.strategy,
            params=StrategyParams(
                buy_threshold_pct=args.buy_threshold,
                sell_threshold_pct=args.sell_threshold,
            ),
            market_interval=args.market_interval,
            trade_interval=args.trade_interval,
        )
    except SandboxError as exc:
        console.print(f"[red]{exc}[/]")
        raise SystemExit(1)

    bot = TradingBot(config, rng=default_rng(args.seed))
    if args.live:
        console.print(f"[cyan]Running bot live for {args.seconds:g}s[/] (Ctrl+C to stop)")
        try:
            asyncio.run(_live(bot, args.seconds))
        except KeyboardInterrupt:
            log.warning("Interrupted")
        except SandboxError as exc:
            console.print(f"[red]ERROR: {exc}[/]")
            render_state(bot.state)
            raise SystemExit(1)
    else:
        _stepped(bot, args.ticks, args.trade_every)

    render_state(bot.state)


if __name__ == "__main__":
    main()
